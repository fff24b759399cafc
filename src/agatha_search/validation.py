"""Query validation, input sanitising and stable query keys."""

import hashlib
import json
import re

from .models import SearchQuery

MAX_PROMPT_LENGTH = 1000
MAX_RESULTS_LIMIT = 50

_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$")


def is_valid_domain(domain: str) -> bool:
    return bool(_DOMAIN_RE.match(domain))


def validate_search_query(
    query: SearchQuery,
    max_prompt_length: int = MAX_PROMPT_LENGTH,
    max_results_limit: int = MAX_RESULTS_LIMIT,
) -> list[str]:
    """Return a list of problems with the query; empty when it is valid."""
    errors: list[str] = []

    if not query.prompt:
        errors.append("Search prompt is required")
    elif not query.prompt.strip():
        errors.append("Search prompt cannot be empty")
    elif len(query.prompt) > max_prompt_length:
        errors.append(f"Search prompt is too long (max {max_prompt_length} characters)")

    if not 1 <= query.max_results <= max_results_limit:
        errors.append(f"Max results must be between 1 and {max_results_limit}")

    if query.filters and query.filters.domains:
        invalid = sorted(d for d in query.filters.domains if not is_valid_domain(d))
        if invalid:
            errors.append(f"Invalid domains: {', '.join(invalid)}")

    return errors


def sanitize_input(text: str) -> str:
    """Strip angle brackets and script/data URL schemes from user input."""
    text = text.strip().replace("<", "").replace(">", "")
    text = re.sub(r"javascript:", "", text, flags=re.IGNORECASE)
    return re.sub(r"data:", "", text, flags=re.IGNORECASE)


def search_id(query: SearchQuery) -> str:
    """Stable identifier for a query, independent of filter set ordering."""
    data = query.model_dump(mode="json")
    filters = data.get("filters")
    if filters:
        filters["domains"] = sorted(filters["domains"])
        filters["content_types"] = sorted(filters["content_types"])
    payload = json.dumps(data, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def cache_key(query: SearchQuery) -> str:
    """Key under which cached results and history entries for a query are addressed."""
    return f"search_{search_id(query)}"
