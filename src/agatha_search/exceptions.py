"""Error taxonomy for the search workflow.

Every failure that crosses a provider boundary is represented by exactly one
``AgathaError`` variant. The variant's ``kind`` tag drives retry eligibility
and message rendering (see ``errors.py``). Errors are never mutated after
creation.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Tag of an AgathaError variant."""

    NETWORK = "network"
    API = "api"
    CONTENT = "content"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ContentErrorReason(str, Enum):
    """Why a piece of content could not be loaded."""

    BLOCKED = "blocked"
    CORS = "cors"
    TIMEOUT = "timeout"
    INVALID = "invalid"


class AgathaError(Exception):
    """Base exception for search workflow errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(AgathaError):
    """Raised when a network request fails."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.url = url


class APIError(AgathaError):
    """Raised when an upstream provider API rejects or fails a call."""

    kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        rate_limited: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.rate_limited = rate_limited


class ContentError(AgathaError):
    """Raised when content cannot be retrieved or processed."""

    kind = ErrorKind.CONTENT

    def __init__(self, message: str, url: str, reason: ContentErrorReason | str):
        super().__init__(message)
        self.url = url
        self.reason = ContentErrorReason(reason)


class ConfigurationError(AgathaError):
    """Raised when configuration is missing or invalid. Never retried."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, field: str, reason: str):
        super().__init__(message)
        self.field = field
        self.reason = reason


class UnknownError(AgathaError):
    """Generic classification for failures that match no other variant."""

    kind = ErrorKind.UNKNOWN


class RetryExhaustedError(Exception):
    """Raised when every allowed attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Operation failed after {attempts} attempts")
        self.attempts = attempts
        self.last_error = last_error


class SearchCancelledError(Exception):
    """Raised when a run is cancelled while an operation is being retried."""

    def __init__(self, message: str = "Search cancelled"):
        super().__init__(message)
        self.message = message


def create_network_error(message: str, status: int | None = None, url: str | None = None) -> NetworkError:
    return NetworkError(message, status=status, url=url)


def create_api_error(
    message: str,
    provider: str,
    status_code: int | None = None,
    rate_limited: bool = False,
) -> APIError:
    return APIError(message, provider=provider, status_code=status_code, rate_limited=rate_limited)


def create_content_error(message: str, url: str, reason: ContentErrorReason | str) -> ContentError:
    return ContentError(message, url=url, reason=ContentErrorReason(reason))


def create_configuration_error(message: str, field: str, reason: str) -> ConfigurationError:
    return ConfigurationError(message, field=field, reason=reason)
