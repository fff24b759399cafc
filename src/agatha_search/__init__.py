"""Cancellable search-and-enrichment workflow with classified retry."""

from .config import AppSettings, get_settings
from .observability import configure_logging
from .errors import ErrorHandler, classify, render_error, should_retry
from .exceptions import (
    AgathaError,
    APIError,
    ConfigurationError,
    ContentError,
    ContentErrorReason,
    ErrorKind,
    NetworkError,
    RetryExhaustedError,
    SearchCancelledError,
    UnknownError,
    create_api_error,
    create_configuration_error,
    create_content_error,
    create_network_error,
)
from .models import (
    AnalysisOutcome,
    DiscoveryConfig,
    ProgressEvent,
    ProgressPhase,
    ResultContent,
    SearchFilters,
    SearchQuery,
    SearchResult,
    SearchWorkflowOptions,
    WorkflowState,
    WorkflowStatus,
)
from .providers import DiscoveryProvider, EnrichmentProvider, PreferencesSource, SettingsPreferences
from .retry import (
    API_RETRY,
    CONTENT_RETRY,
    DEFAULT_RETRY_OPTIONS,
    NETWORK_RETRY,
    RetryEvent,
    RetryOptions,
    compute_delay,
    retry_api_operation,
    retry_content_operation,
    retry_network_operation,
    with_retry,
)
from .store import WorkflowStore
from .workflow import SearchWorkflow

__all__ = [
    "AgathaError",
    "APIError",
    "AnalysisOutcome",
    "API_RETRY",
    "AppSettings",
    "CONTENT_RETRY",
    "ConfigurationError",
    "ContentError",
    "ContentErrorReason",
    "DEFAULT_RETRY_OPTIONS",
    "DiscoveryConfig",
    "DiscoveryProvider",
    "EnrichmentProvider",
    "ErrorHandler",
    "ErrorKind",
    "NETWORK_RETRY",
    "NetworkError",
    "PreferencesSource",
    "ProgressEvent",
    "ProgressPhase",
    "ResultContent",
    "RetryEvent",
    "RetryExhaustedError",
    "RetryOptions",
    "SearchCancelledError",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SearchWorkflow",
    "SearchWorkflowOptions",
    "SettingsPreferences",
    "UnknownError",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowStore",
    "classify",
    "compute_delay",
    "configure_logging",
    "create_api_error",
    "create_configuration_error",
    "create_content_error",
    "create_network_error",
    "get_settings",
    "render_error",
    "retry_api_operation",
    "retry_content_operation",
    "retry_network_operation",
    "should_retry",
    "with_retry",
]
