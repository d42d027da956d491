"""
Error taxonomy for calls against the flashcards API.

HTTP failures are classified by status code so callers can branch on the
exception type instead of inspecting responses.
"""

from flashgen.domain.schemas import ErrorDetail, ErrorResponse


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_response: ErrorResponse | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_response = error_response


class AuthenticationError(ApiError):
    """401: the session is missing or expired. Not retryable."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_response: ErrorResponse | None = None,
    ):
        super().__init__(message, 401, error_response)


class RateLimitError(ApiError):
    """429: carries the number of seconds to wait before trying again."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        error_response: ErrorResponse | None = None,
    ):
        super().__init__(message, 429, error_response)
        self.retry_after = retry_after


class ServiceUnavailableError(ApiError):
    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        error_response: ErrorResponse | None = None,
    ):
        super().__init__(message, 503, error_response)


class ValidationError(ApiError):
    """400: the server rejected the input. Field-level details may be attached."""

    def __init__(
        self,
        message: str = "Validation failed",
        error_response: ErrorResponse | None = None,
    ):
        super().__init__(message, 400, error_response)

    @property
    def details(self) -> list[ErrorDetail]:
        if self.error_response and self.error_response.details:
            return self.error_response.details
        return []


class NetworkError(Exception):
    """No usable response from the server."""

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message)
        self.message = message


def get_error_message(error: BaseException | None) -> str:
    """Extract a user-presentable message from any error."""
    if isinstance(error, (ApiError, NetworkError)):
        return error.message
    if isinstance(error, Exception) and str(error):
        return str(error)
    return "An unexpected error occurred"


def is_recoverable_error(error: BaseException | None) -> bool:
    """Whether repeating the same action may succeed."""
    if isinstance(error, (NetworkError, ServiceUnavailableError, RateLimitError)):
        return True
    if isinstance(error, ApiError):
        return error.status_code >= 500
    return False
