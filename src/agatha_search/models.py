"""Data models for search queries, results and workflow state."""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class WorkflowStatus(str, Enum):
    """Lifecycle status of the search workflow."""

    IDLE = "idle"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class ProgressPhase(str, Enum):
    """Phase reported by a running search."""

    DISCOVERING = "discovering"
    SCRAPING = "scraping"
    ANALYZING = "analyzing"
    RANKING = "ranking"
    COMPLETE = "complete"


# Status the workflow takes while a phase is being reported
PHASE_STATUS: dict[ProgressPhase, WorkflowStatus] = {
    ProgressPhase.DISCOVERING: WorkflowStatus.SEARCHING,
    ProgressPhase.SCRAPING: WorkflowStatus.SEARCHING,
    ProgressPhase.ANALYZING: WorkflowStatus.ANALYZING,
    ProgressPhase.RANKING: WorkflowStatus.ANALYZING,
    ProgressPhase.COMPLETE: WorkflowStatus.COMPLETE,
}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DateRange(_Frozen):
    start: datetime
    end: datetime


class SearchFilters(_Frozen):
    domains: frozenset[str] = frozenset()
    content_types: frozenset[str] = frozenset()
    date_range: DateRange | None = None


class SearchQuery(_Frozen):
    """A query submitted to the workflow. Immutable once submitted."""

    prompt: str
    max_results: int = Field(default=10, gt=0)
    filters: SearchFilters | None = None


class ResultMetadata(_Frozen):
    domain: str = ""
    content_type: str = ""
    load_status: Literal["loading", "loaded", "error"] = "loaded"


class SearchResult(_Frozen):
    """A ranked candidate result. Identity is ``id``."""

    id: str
    url: str
    title: str = ""
    description: str = ""
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)


class WorkflowState(_Frozen):
    """Authoritative session state, owned by WorkflowStore."""

    query: SearchQuery | None = None
    results: tuple[SearchResult, ...] = ()
    status: WorkflowStatus = WorkflowStatus.IDLE
    error: str | None = None
    selected_result_id: str | None = None
    cursor_index: int = 0
    notice: str | None = None  # informational, never changes status

    @property
    def is_searching(self) -> bool:
        return self.status in (WorkflowStatus.SEARCHING, WorkflowStatus.ANALYZING)

    @property
    def is_analyzing(self) -> bool:
        return self.status == WorkflowStatus.ANALYZING

    @property
    def has_results(self) -> bool:
        return len(self.results) > 0

    @property
    def current_result_index(self) -> int:
        """Index of the selected result, or -1 when nothing is selected."""
        if self.selected_result_id is None:
            return -1
        for index, result in enumerate(self.results):
            if result.id == self.selected_result_id:
                return index
        return -1

    @property
    def selected_result(self) -> SearchResult | None:
        index = self.current_result_index
        return self.results[index] if index >= 0 else None


class ProgressEvent(_Frozen):
    """Transient progress notification; never persisted."""

    phase: ProgressPhase
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    message: str = ""
    current_url: str | None = None


class SearchWorkflowOptions(_Frozen):
    """Per-run options. ``auto_analyze=None`` falls back to user preferences."""

    auto_analyze: bool | None = None
    use_cache: bool = True
    max_concurrent_analysis: int = Field(default=3, ge=1)
    timeout: float = Field(default=30.0, gt=0)  # seconds, per provider call


class DiscoveryConfig(_Frozen):
    """Options handed to the discovery provider."""

    use_cache: bool = True
    timeout: float = 30.0
    max_concurrent_scrapes: int = 3


class ResultContent(_Frozen):
    """Content of a single result, as consumed by single-result analysis."""

    url: str
    title: str
    content: str
    description: str
    domain: str
    content_type: str
    timestamp: datetime
    word_count: int = 0

    @classmethod
    def from_result(cls, result: SearchResult) -> "ResultContent":
        return cls(
            url=result.url,
            title=result.title,
            content=result.description,
            description=result.description,
            domain=result.metadata.domain,
            content_type=result.metadata.content_type,
            timestamp=result.timestamp,
            word_count=len(result.description.split()),
        )


class AnalysisOutcome(_Frozen):
    """Scores returned by single-result analysis."""

    relevance_score: float = Field(ge=0.0, le=1.0)
    confidence_score: float = Field(ge=0.0, le=1.0)
    description: str | None = None
    reasoning: str | None = None
