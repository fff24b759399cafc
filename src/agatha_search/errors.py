"""Failure classification, retry eligibility and user-facing error messages."""

import logging
from collections.abc import Callable

from .exceptions import (
    AgathaError,
    APIError,
    ConfigurationError,
    ContentError,
    ContentErrorReason,
    NetworkError,
    RetryExhaustedError,
    SearchCancelledError,
    UnknownError,
)

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


def classify(failure: BaseException | object) -> AgathaError:
    """Map an arbitrary failure to exactly one AgathaError variant.

    Already-classified errors are returned unchanged so that a failure is
    classified once at the boundary where it happened.
    """
    if isinstance(failure, AgathaError):
        return failure
    if isinstance(failure, TimeoutError):
        return ContentError(str(failure) or "Request timeout", url="", reason=ContentErrorReason.TIMEOUT)
    if isinstance(failure, ConnectionError):
        return NetworkError(str(failure) or "Connection failed")
    message = str(failure) if failure is not None else ""
    return UnknownError(message or UNKNOWN_ERROR_MESSAGE)


def should_retry(error: AgathaError) -> bool:
    """Decide whether a classified failure may be retried."""
    match error:
        case NetworkError(status=status):
            # 4xx is the caller's fault; everything else may be transient
            return status is None or status >= 500
        case APIError(rate_limited=True):
            return False
        case APIError(status_code=status_code):
            return status_code is None or status_code >= 500
        case ContentError(reason=reason):
            return reason == ContentErrorReason.TIMEOUT
        case ConfigurationError():
            return False
        case _:
            return False


def _render_tagged(error: AgathaError) -> str:
    match error:
        case NetworkError(status=status):
            suffix = f" ({status})" if status else ""
            return f"Network error: {error.message}{suffix}"
        case APIError(provider=provider):
            return f"API error from {provider}: {error.message}"
        case ContentError(url=url):
            return f"Content error for {url}: {error.message}"
        case ConfigurationError(field=field):
            return f"Configuration error in {field}: {error.message}"
        case _:
            return error.message or UNKNOWN_ERROR_MESSAGE


def render_error(failure: BaseException | object) -> str:
    """Render any failure as the single user-visible error string."""
    if isinstance(failure, RetryExhaustedError):
        return f"{failure}: {render_error(failure.last_error)}"
    if isinstance(failure, SearchCancelledError):
        return failure.message
    return _render_tagged(classify(failure))


class ErrorHandler:
    """Normalizes failures, tracks their frequency and suggests recovery.

    Args:
        on_error: Optional callback invoked with every handled error and its context.
            Exceptions raised by the callback are logged and ignored.
    """

    def __init__(self, on_error: Callable[[AgathaError, str | None], None] | None = None):
        self.on_error = on_error
        self._error_counts: dict[str, int] = {}

    def handle_error(self, failure: BaseException | object, context: str | None = None) -> AgathaError:
        """Classify a failure, record it and notify the callback."""
        error = classify(failure)

        key = f"{error.kind.value}:{error.message}"
        self._error_counts[key] = self._error_counts.get(key, 0) + 1

        if self.on_error:
            try:
                self.on_error(error, context)
            except Exception:
                logger.exception("Error callback failed")

        logger.error(f"{error.kind.value} error in {context or 'unknown context'}: {error.message}")
        if isinstance(error, APIError) and error.rate_limited:
            logger.warning(f"Rate limited by {error.provider}, consider reducing request frequency")

        return error

    def user_friendly_message(self, error: AgathaError) -> str:
        """Longer guidance text for an error, tailored to status codes and reasons."""
        match error:
            case NetworkError(status=404):
                return "The requested resource was not found. Please check the URL and try again."
            case NetworkError(status=403):
                return "Access to this resource is forbidden. Please check your permissions."
            case NetworkError(status=int(status)) if status >= 500:
                return "The server is experiencing issues. Please try again later."
            case NetworkError():
                return "Network connection failed. Please check your internet connection and try again."
            case APIError(rate_limited=True):
                return f"Too many requests to {error.provider}. Please wait a moment before trying again."
            case APIError(status_code=401):
                return f"Invalid API key for {error.provider}. Please check your configuration."
            case APIError(status_code=403):
                return f"Access denied by {error.provider}. Please check your API key permissions."
            case APIError():
                return f"AI service ({error.provider}) is currently unavailable. Please try again later."
            case ContentError(reason=ContentErrorReason.BLOCKED):
                return "This website cannot be displayed due to security restrictions."
            case ContentError(reason=ContentErrorReason.CORS):
                return "This website blocks cross-origin requests. Content preview is not available."
            case ContentError(reason=ContentErrorReason.TIMEOUT):
                return "The website took too long to load. Please try again."
            case ContentError(reason=ContentErrorReason.INVALID):
                return "The website content could not be processed."
            case ConfigurationError():
                return f"Configuration issue: {error.message}. Please check your settings."
            case _:
                return "An unexpected error occurred. Please try again."

    def recovery_actions(self, error: AgathaError) -> list[str]:
        """Labels of the actions a user can take to recover from an error."""
        match error:
            case NetworkError():
                return ["Retry"]
            case APIError(status_code=401):
                return ["Update API Key"]
            case APIError(rate_limited=True):
                return []
            case APIError():
                return ["Retry"]
            case ContentError(reason=ContentErrorReason.TIMEOUT):
                return ["Retry", "Open in New Tab"]
            case ContentError():
                return ["Open in New Tab"]
            case ConfigurationError():
                return ["Open Settings"]
            case _:
                return []

    def error_stats(self) -> dict[str, int]:
        return dict(self._error_counts)

    def clear_error_stats(self) -> None:
        self._error_counts.clear()
