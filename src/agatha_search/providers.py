"""Collaborator interfaces the workflow depends on.

Concrete discovery (search + scraping) and enrichment (LLM scoring) live
outside this package. Implementations are injected into ``SearchWorkflow``;
they must raise classified ``AgathaError`` variants rather than arbitrary
exceptions wherever they can.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from .config import PreferenceSettings, get_settings
from .models import AnalysisOutcome, DiscoveryConfig, ProgressEvent, ResultContent, SearchQuery, SearchResult

ProgressCallback = Callable[[ProgressEvent], None]


@runtime_checkable
class DiscoveryProvider(Protocol):
    """Produces the initial, rank-ordered candidate results for a query."""

    async def discover(
        self,
        query: SearchQuery,
        config: DiscoveryConfig,
        on_progress: ProgressCallback,
    ) -> Sequence[SearchResult]: ...


@runtime_checkable
class EnrichmentProvider(Protocol):
    """Re-scores results against the query prompt."""

    async def enhance(self, results: Sequence[SearchResult], prompt: str) -> Sequence[SearchResult]:
        """Return a possibly partial set of results, keyed by id, with updated scores."""
        ...

    async def analyze_one(self, content: ResultContent, prompt: str, opts: Mapping[str, Any]) -> AnalysisOutcome: ...


@runtime_checkable
class PreferencesSource(Protocol):
    """Read-only view of user preferences."""

    @property
    def auto_analyze(self) -> bool: ...

    @property
    def theme(self) -> str: ...


class SettingsPreferences:
    """PreferencesSource backed by PreferenceSettings (env + config file)."""

    def __init__(self, preferences: PreferenceSettings | None = None):
        self._preferences = preferences or get_settings().preferences

    @property
    def auto_analyze(self) -> bool:
        return self._preferences.auto_analyze

    @property
    def theme(self) -> str:
        return self._preferences.theme

    @property
    def max_results(self) -> int:
        return self._preferences.max_results
