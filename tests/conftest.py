"""Pytest configuration and fixtures for agatha-search tests."""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from agatha_search.config import WorkflowSettings
from agatha_search.models import (
    AnalysisOutcome,
    DiscoveryConfig,
    ProgressEvent,
    ResultContent,
    SearchQuery,
    SearchResult,
)
from agatha_search.retry import RetryOptions
from agatha_search.store import WorkflowStore
from agatha_search.workflow import SearchWorkflow

# Retry policy with no backoff so failing attempts don't slow the suite down
FAST_RETRY = RetryOptions(max_attempts=3, base_delay=0, max_delay=0, backoff_factor=2, jitter=False)


def make_result(result_id: str, relevance: float = 0.5, confidence: float = 0.5, **kwargs: Any) -> SearchResult:
    return SearchResult(
        id=result_id,
        url=kwargs.pop("url", f"https://example.com/{result_id}"),
        title=kwargs.pop("title", f"Result {result_id}"),
        description=kwargs.pop("description", f"Description of {result_id}"),
        relevance_score=relevance,
        confidence_score=confidence,
        **kwargs,
    )


class FakeDiscovery:
    """Discovery provider double with scripted failures and optional gates."""

    def __init__(self) -> None:
        self.results: dict[str, list[SearchResult]] = {}
        self.default_results: list[SearchResult] = []
        self.errors: list[BaseException] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.progress: list[ProgressEvent] = []
        self.calls: list[SearchQuery] = []
        self.configs: list[DiscoveryConfig] = []
        self.started = asyncio.Event()

    async def discover(self, query: SearchQuery, config: DiscoveryConfig, on_progress) -> Sequence[SearchResult]:
        self.calls.append(query)
        self.configs.append(config)
        self.started.set()
        for event in self.progress:
            on_progress(event)
        gate = self.gates.get(query.prompt)
        if gate is not None:
            await gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return list(self.results.get(query.prompt, self.default_results))


class FakeEnrichment:
    """Enrichment provider double recording its calls."""

    def __init__(self) -> None:
        self.enhanced: list[SearchResult] = []
        self.outcome = AnalysisOutcome(relevance_score=0.8, confidence_score=0.9, description="Enhanced description")
        self.errors: list[BaseException] = []
        self.enhance_calls: list[tuple[list[SearchResult], str]] = []
        self.analyze_calls: list[tuple[ResultContent, str, Mapping[str, Any]]] = []

    async def enhance(self, results: Sequence[SearchResult], prompt: str) -> Sequence[SearchResult]:
        self.enhance_calls.append((list(results), prompt))
        if self.errors:
            raise self.errors.pop(0)
        return list(self.enhanced)

    async def analyze_one(self, content: ResultContent, prompt: str, opts: Mapping[str, Any]) -> AnalysisOutcome:
        self.analyze_calls.append((content, prompt, opts))
        if self.errors:
            raise self.errors.pop(0)
        return self.outcome


class StaticPreferences:
    def __init__(self, auto_analyze: bool = True, theme: str = "dark") -> None:
        self.auto_analyze = auto_analyze
        self.theme = theme


@pytest.fixture
def discovery() -> FakeDiscovery:
    return FakeDiscovery()


@pytest.fixture
def enrichment() -> FakeEnrichment:
    return FakeEnrichment()


@pytest.fixture
def preferences() -> StaticPreferences:
    return StaticPreferences(auto_analyze=False)


@pytest.fixture
def store() -> WorkflowStore:
    return WorkflowStore()


@pytest.fixture
def workflow(store, discovery, enrichment, preferences) -> SearchWorkflow:
    return SearchWorkflow(
        store,
        discovery,
        enrichment,
        preferences,
        WorkflowSettings(timeout=5.0),
        network_retry=FAST_RETRY,
        api_retry=FAST_RETRY.merged(max_attempts=2),
    )


@pytest.fixture
def result_factory():
    """Factory building SearchResult instances with sensible defaults."""
    return make_result
