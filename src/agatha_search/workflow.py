"""Search workflow orchestrator: discovery, enrichment, cancellation and retry.

State machine driven through the WorkflowStore::

    idle --execute_search--> searching
    searching --discovered--> analyzing (auto-analyze, results)  | complete
    analyzing --enriched--> complete
    searching, analyzing --failure--> error
    any non-idle --cancel--> idle
    error --retry--> searching

Only one run is current at a time. Starting a run supersedes the previous
one; a superseded or cancelled run keeps executing until its pending provider
call returns, but its results, errors and progress are discarded.
"""

import asyncio
import itertools
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from .config import WorkflowSettings, get_settings
from .errors import render_error
from .events import Emitter, Listener, Unsubscribe
from .exceptions import ContentErrorReason, SearchCancelledError, create_content_error
from .models import (
    PHASE_STATUS,
    DiscoveryConfig,
    ProgressEvent,
    ProgressPhase,
    ResultContent,
    SearchQuery,
    SearchResult,
    SearchWorkflowOptions,
    WorkflowState,
    WorkflowStatus,
)
from .observability import bind_run_context, clear_run_context, get_run_logger
from .providers import DiscoveryProvider, EnrichmentProvider, PreferencesSource, SettingsPreferences
from .retry import API_RETRY, NETWORK_RETRY, RetryCallback, RetryEvent, RetryOptions, with_retry
from .store import WorkflowStore
from .validation import validate_search_query

logger = logging.getLogger(__name__)
run_logger = get_run_logger(__name__)

T = TypeVar("T")

CANCELLED_MESSAGE = "Search cancelled"
ANALYSIS_FAILED_PREFIX = "Analysis failed: "
ENHANCE_FAILED_PREFIX = "Failed to enhance result: "


@dataclass
class _Run:
    """Identity token of one workflow run."""

    token: int
    query: SearchQuery
    operation: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)


def rank_results(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Order results by descending relevance; ties keep their current order."""
    return sorted(results, key=lambda r: r.relevance_score, reverse=True)


def merge_enriched(results: Sequence[SearchResult], enriched: Iterable[SearchResult]) -> list[SearchResult]:
    """Replace results by id with their enriched versions and re-rank.

    Enriched entries whose id is not in ``results`` are ignored; results the
    enrichment did not return are kept unchanged.
    """
    by_id = {r.id: r for r in enriched}
    return rank_results(by_id.get(r.id, r) for r in results)


class SearchWorkflow:
    """Drives a search session through discovery and enrichment.

    Args:
        store: Store holding the session's WorkflowState.
        discovery: Provider producing candidate results.
        enrichment: Provider scoring results against the prompt.
        preferences: Source of the auto-analyze default. Defaults to settings.
        settings: Workflow settings. Defaults to the loaded application settings.
        network_retry: Retry policy for discovery calls.
        api_retry: Retry policy for enrichment calls.
        on_retry: Optional callback receiving every scheduled retry.
    """

    def __init__(
        self,
        store: WorkflowStore,
        discovery: DiscoveryProvider,
        enrichment: EnrichmentProvider,
        preferences: PreferencesSource | None = None,
        settings: WorkflowSettings | None = None,
        *,
        network_retry: RetryOptions = NETWORK_RETRY,
        api_retry: RetryOptions = API_RETRY,
        on_retry: RetryCallback | None = None,
    ):
        self.store = store
        self.discovery = discovery
        self.enrichment = enrichment
        self.preferences = preferences or SettingsPreferences()
        self.settings = settings or get_settings().workflow
        self.network_retry = network_retry
        self.api_retry = api_retry
        self.on_retry = on_retry

        self._tokens = itertools.count(1)
        self._active: _Run | None = None
        self._last_query: SearchQuery | None = None
        self._last_options: SearchWorkflowOptions | None = None
        self._progress: ProgressEvent | None = None
        self._progress_listeners: Emitter[ProgressEvent | None] = Emitter("progress")
        self._disposed = asyncio.Event()

    # --- Read-only views ---

    @property
    def state(self) -> WorkflowState:
        return self.store.state

    @property
    def progress(self) -> ProgressEvent | None:
        return self._progress

    @property
    def error(self) -> str | None:
        return self.store.state.error

    @property
    def notice(self) -> str | None:
        """Non-fatal message such as a cancellation or a failed enhancement."""
        return self.store.state.notice

    @property
    def is_searching(self) -> bool:
        return self.store.state.is_searching

    @property
    def is_analyzing(self) -> bool:
        return self.store.state.is_analyzing

    @property
    def can_cancel(self) -> bool:
        return self._active is not None

    @property
    def in_flight_query(self) -> SearchQuery | None:
        return self._active.query if self._active else None

    @property
    def last_query(self) -> SearchQuery | None:
        return self._last_query

    def subscribe_progress(self, listener: Listener[ProgressEvent | None]) -> Unsubscribe:
        """Receive progress events; ``None`` signals that progress was cleared."""
        return self._progress_listeners.subscribe(listener)

    # --- Operations ---

    async def execute_search(self, query: SearchQuery, options: SearchWorkflowOptions | None = None) -> None:
        """Run discovery (and enrichment when enabled) for a query.

        Provider failures end the run in the ``error`` status with a rendered
        message; they are never raised to the caller.

        Raises:
            ContentError: If the query is invalid. Raised before any state change.
        """
        problems = validate_search_query(query, self.settings.max_prompt_length, self.settings.max_results_limit)
        if problems:
            raise create_content_error(f"Invalid search query: {', '.join(problems)}", "", ContentErrorReason.INVALID)

        options = options or self._default_options()
        auto_analyze = options.auto_analyze if options.auto_analyze is not None else self.preferences.auto_analyze

        run = self._begin_run(query, "execute_search")
        self._last_query = query
        self._last_options = options
        run_logger.info("run_started", prompt=query.prompt[:100], auto_analyze=auto_analyze)

        try:
            self.store.set_query(query)
            self._set_progress(ProgressEvent(phase=ProgressPhase.DISCOVERING, message="Discovering relevant websites..."))

            config = DiscoveryConfig(
                use_cache=options.use_cache,
                timeout=options.timeout,
                max_concurrent_scrapes=options.max_concurrent_analysis,
            )
            try:
                results = await self._call(
                    lambda: self.discovery.discover(query, config, lambda event: self._report(run, event)),
                    options.timeout,
                    self.network_retry,
                    run.cancelled,
                )
            except SearchCancelledError:
                return
            except Exception as e:
                self._fail(run, render_error(e), e)
                return

            if not self._is_current(run):
                logger.debug(f"Discarding discovery results of stale run {run.run_id}")
                return

            results = list(results)
            logger.info(f"Discovered {len(results)} results")
            self.store.set_results(results)

            if auto_analyze and results:
                await self._analyze(run, None, options.timeout)
            else:
                self.store.set_status(WorkflowStatus.COMPLETE)
                self._set_progress(ProgressEvent(phase=ProgressPhase.COMPLETE, progress=100, message=f"Found {len(results)} results"))

            if self._is_current(run) and self.store.state.status == WorkflowStatus.COMPLETE:
                run_logger.info("run_completed", result_count=len(self.store.state.results))
        finally:
            self._finish_run(run)

    def cancel_search(self) -> bool:
        """Cancel the run in flight. Returns False (and does nothing) when there is none."""
        run = self._active
        if run is None:
            return False

        run.cancelled.set()
        self._active = None
        self._set_progress(None)
        self.store.clear()
        self.store.set_notice(CANCELLED_MESSAGE)
        run_logger.info("run_cancelled", cancelled_run=run.run_id)
        clear_run_context()
        return True

    async def retry_search(self) -> None:
        """Replay the last submitted query with its original options."""
        if self._last_query is None:
            return
        await self.execute_search(self._last_query, self._last_options)

    async def analyze_results(self, result_ids: Iterable[str] | None = None) -> None:
        """Enrich the given results (all by default) and re-rank the list."""
        state = self.store.state
        if state.query is None or not state.results:
            return

        run = self._begin_run(state.query, "analyze_results")
        try:
            await self._analyze(run, result_ids, self.settings.timeout)
        finally:
            self._finish_run(run)

    async def enhance_result(self, result_id: str) -> None:
        """Score a single result in detail and update it in place.

        Failures are recorded as a notice and leave the workflow status alone.
        Ignored while a run is in flight, since the listed results may belong
        to the previous query.
        """
        if self._active is not None:
            logger.debug(f"Ignoring enhance request for {result_id} while a run is in flight")
            return

        state = self.store.state
        query = state.query
        result = next((r for r in state.results if r.id == result_id), None)
        if result is None or query is None:
            return

        content = ResultContent.from_result(result)
        try:
            outcome = await self._call(
                lambda: self.enrichment.analyze_one(content, query.prompt, {"include_reasoning": True}),
                self.settings.timeout,
                self.api_retry,
                self._disposed,
            )
        except SearchCancelledError:
            return
        except Exception as e:
            if self.store.state.query is query:
                self.store.set_notice(f"{ENHANCE_FAILED_PREFIX}{render_error(e)}")
            logger.warning(f"Enhancing result {result_id} failed: {e}")
            return

        if self.store.state.query is not query or self._active is not None:
            return

        updated = []
        for r in self.store.state.results:
            if r.id == result_id:
                r = r.model_copy(
                    update={
                        "relevance_score": max(r.relevance_score, outcome.relevance_score),
                        "confidence_score": outcome.confidence_score,
                        "description": outcome.description or r.description,
                    }
                )
            updated.append(r)
        self.store.set_results(rank_results(updated))

    async def aclose(self) -> None:
        """Dispose the workflow, cancelling anything still in flight."""
        self._disposed.set()
        self.cancel_search()
        self._progress_listeners.clear()

    async def __aenter__(self) -> "SearchWorkflow":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Internals ---

    def _default_options(self) -> SearchWorkflowOptions:
        return SearchWorkflowOptions(
            use_cache=self.settings.use_cache,
            max_concurrent_analysis=self.settings.max_concurrent_analysis,
            timeout=self.settings.timeout,
        )

    def _begin_run(self, query: SearchQuery, operation: str) -> _Run:
        previous = self._active
        if previous is not None:
            previous.cancelled.set()
            run_logger.info("run_superseded", superseded_run=previous.run_id)

        run = _Run(token=next(self._tokens), query=query, operation=operation)
        self._active = run
        bind_run_context(run.run_id, operation)
        return run

    def _finish_run(self, run: _Run) -> None:
        if self._active is not run:
            return
        self._active = None
        self._set_progress(None)
        clear_run_context()

    def _is_current(self, run: _Run) -> bool:
        return self._active is run and not run.cancelled.is_set()

    def _fail(self, run: _Run, message: str, error: BaseException) -> None:
        if not self._is_current(run):
            logger.debug(f"Discarding failure of stale run {run.run_id}: {error}")
            return
        self.store.set_error(message)
        run_logger.error("run_failed", error=message)

    def _set_progress(self, event: ProgressEvent | None) -> None:
        if event is None and self._progress is None:
            return
        self._progress = event
        self._progress_listeners.emit(event)

    def _report(self, run: _Run, event: ProgressEvent) -> None:
        """Progress callback handed to the discovery provider."""
        if not self._is_current(run):
            return
        self._set_progress(event)
        status = PHASE_STATUS[event.phase]
        if self.store.state.status != status:
            self.store.set_status(status)

    def _handle_retry(self, event: RetryEvent) -> None:
        run_logger.warning("retry_scheduled", attempt=event.attempt, max_attempts=event.max_attempts, delay_ms=event.delay)
        if self.on_retry is not None:
            self.on_retry(event)

    async def _call(
        self,
        factory: Callable[[], Awaitable[T]],
        timeout: float,
        policy: RetryOptions,
        cancel_event: asyncio.Event,
    ) -> T:
        """Call a provider with a per-attempt timeout under a retry policy."""

        async def attempt() -> T:
            try:
                return await asyncio.wait_for(factory(), timeout)
            except TimeoutError as e:
                raise create_content_error(f"Request timed out after {timeout:g}s", "", ContentErrorReason.TIMEOUT) from e

        return await with_retry(attempt, policy, cancel_event=cancel_event, on_retry=self._handle_retry)

    async def _analyze(self, run: _Run, result_ids: Iterable[str] | None, timeout: float) -> None:
        state = self.store.state
        if state.query is None or not state.results:
            return

        # Error first: an error must never be visible outside the error status
        self.store.set_error(None)
        self.store.set_status(WorkflowStatus.ANALYZING)
        self._set_progress(ProgressEvent(phase=ProgressPhase.ANALYZING, progress=70, message="Analyzing results..."))

        wanted = set(result_ids) if result_ids is not None else None
        subset = [r for r in state.results if wanted is None or r.id in wanted]
        if not subset:
            self.store.set_status(WorkflowStatus.COMPLETE)
            return

        prompt = state.query.prompt
        try:
            enriched = await self._call(lambda: self.enrichment.enhance(subset, prompt), timeout, self.api_retry, run.cancelled)
        except SearchCancelledError:
            return
        except Exception as e:
            self._fail(run, f"{ANALYSIS_FAILED_PREFIX}{render_error(e)}", e)
            return

        if not self._is_current(run):
            logger.debug(f"Discarding enrichment of stale run {run.run_id}")
            return

        self._set_progress(ProgressEvent(phase=ProgressPhase.RANKING, progress=90, message="Ranking results..."))
        self.store.set_results(merge_enriched(self.store.state.results, enriched))
        self._set_progress(ProgressEvent(phase=ProgressPhase.COMPLETE, progress=100, message=f"Analyzed {len(subset)} results"))
