"""
Errors raised while walking shared queries and resolving work items.

Every REST failure surfaces as an AzureDevOpsError subclass chosen by HTTP
status, see map_status_code_to_error.
"""

from typing import Optional, Any


class AzureDevOpsError(Exception):
    """
    Base exception for Azure DevOps REST errors.

    Subclasses set ``default_status`` and ``default_message``; callers may
    still override either one.
    """

    default_status: Optional[int] = None
    default_message = "Azure DevOps API error"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        self.message = message or self.default_message
        self.status_code = status_code if status_code is not None else self.default_status
        self.original_error = original_error
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON serialization."""
        return {
            'error': self.__class__.__name__,
            'status_code': self.status_code,
            'message': self.message,
            'details': str(self.details) if self.details else None
        }


class ResourceNotFoundError(AzureDevOpsError):
    """A query, folder or work item url returned 404."""

    default_status = 404
    default_message = "Resource not found. The query folder may have been renamed or removed."

    def __init__(self, url: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Resource not found at {url}" if url else None,
            original_error=original_error,
            details={'url': url} if url else None
        )


class AuthenticationError(AzureDevOpsError):
    default_status = 401
    default_message = "Authentication failed. The token may have expired."


class PermissionDeniedError(AzureDevOpsError):
    """Reading shared queries needs the 'vso.work' scope."""

    default_status = 403
    default_message = "Permission denied. Check the project permissions of these credentials."

    def __init__(self, operation: Optional[str] = None, original_error: Optional[Exception] = None):
        message = None
        if operation:
            message = f"Permission denied for {operation}. The credentials need 'vso.work' scope."
        super().__init__(message=message, original_error=original_error)


class RateLimitError(AzureDevOpsError):
    """HTTP 429; ``retry_after`` is the parsed Retry-After header, in seconds."""

    default_status = 429
    default_message = "Rate limit exceeded."

    def __init__(self, retry_after: Optional[float] = None, original_error: Optional[Exception] = None):
        message = f"Rate limit exceeded, retry after {retry_after} seconds." if retry_after else None
        super().__init__(message=message, original_error=original_error)
        self.retry_after = retry_after


class TransientError(AzureDevOpsError):
    """5xx responses, retried by retry_on_transient_error."""

    def __init__(self, status_code: int, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Service unavailable (HTTP {status_code}), will be retried.",
            status_code=status_code,
            original_error=original_error
        )


class BadRequestError(AzureDevOpsError):
    default_status = 400
    default_message = "Bad request. Check the query path and parameters."


class TimeoutError(AzureDevOpsError):
    default_status = 408

    def __init__(self, timeout_seconds: float = 30, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"No response within {timeout_seconds} seconds.",
            original_error=original_error,
            details={'timeout_seconds': timeout_seconds}
        )


TRANSIENT_STATUS_CODES = (500, 502, 503, 504)

_ERROR_FACTORIES = {
    400: lambda cause, url, retry_after: BadRequestError(
        original_error=cause, details={'url': url} if url else None
    ),
    401: lambda cause, url, retry_after: AuthenticationError(original_error=cause),
    403: lambda cause, url, retry_after: PermissionDeniedError(operation=url, original_error=cause),
    404: lambda cause, url, retry_after: ResourceNotFoundError(url=url, original_error=cause),
    408: lambda cause, url, retry_after: TimeoutError(original_error=cause),
    429: lambda cause, url, retry_after: RateLimitError(retry_after=retry_after, original_error=cause),
}


def map_status_code_to_error(
    status_code: int,
    original_error: Optional[Exception] = None,
    url: Optional[str] = None,
    retry_after: Optional[float] = None
) -> AzureDevOpsError:
    """
    Build the error for an HTTP status code.

    ``url`` ends up in 400/403/404 errors, ``retry_after`` in 429 errors.
    Unlisted codes give a plain AzureDevOpsError.
    """
    if status_code in TRANSIENT_STATUS_CODES:
        return TransientError(status_code=status_code, original_error=original_error)

    factory = _ERROR_FACTORIES.get(status_code)
    if factory is not None:
        return factory(original_error, url, retry_after)

    return AzureDevOpsError(
        message=f"Azure DevOps API error: HTTP {status_code}",
        status_code=status_code,
        original_error=original_error
    )
