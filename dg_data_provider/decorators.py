"""
Decorators for error handling, retry logic, and request management.

Wraps every outbound Azure DevOps call made while walking the shared
query hierarchy so that transient failures are retried and HTTP errors
surface as AzureDevOpsError subclasses.
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, TypeVar, Optional

from .errors import (
    AzureDevOpsError,
    BadRequestError,
    map_status_code_to_error,
    RateLimitError,
    TransientError,
    TimeoutError as ADOTimeoutError
)
from .log_sanitizer import sanitize_url

T = TypeVar('T')

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


def _parse_retry_after(response) -> Optional[float]:
    """Read the Retry-After header (seconds) from a response, if any."""
    headers = getattr(response, 'headers', None) or {}
    retry_after_header = headers.get('Retry-After') or headers.get('retry-after')
    if not retry_after_header:
        return None
    try:
        return float(retry_after_header)
    except (ValueError, TypeError):
        # HTTP-date format is not parsed
        logger.warning(f"Could not parse Retry-After header: {retry_after_header}")
        return DEFAULT_RETRY_AFTER_SECONDS


def handle_ado_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator mapping HTTP and SDK exceptions to AzureDevOpsError subclasses.

    Works with requests.HTTPError (status on ``e.response``) and with
    azure-devops SDK errors (status on ``e.status_code``).

    Example:
        @handle_ado_error
        async def fetch_json(self, url: str):
            ...
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except AzureDevOpsError:
            raise
        except Exception as e:
            status_code = getattr(e, 'status_code', None)
            response = getattr(e, 'response', None)

            if not status_code and response is not None:
                status_code = getattr(response, 'status_code', None)

            if status_code:
                retry_after = _parse_retry_after(response) if status_code == 429 else None
                url = getattr(response, 'url', None)
                error = map_status_code_to_error(
                    status_code,
                    original_error=e,
                    url=sanitize_url(url) if url else None,
                    retry_after=retry_after
                )
                logger.error(f"Azure DevOps API error in {func.__name__}: {error}")
                raise error from e

            logger.error(
                f"Unexpected error in {func.__name__}: {type(e).__name__}: {e}",
                exc_info=True
            )
            raise AzureDevOpsError(
                message=f"Unexpected error in {func.__name__}: {e}",
                original_error=e
            ) from e

    return wrapper


def retry_on_transient_error(
    max_retries: int = 3,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator retrying rate-limit (429) and server (5xx) errors with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        max_delay: Maximum delay between retries (default: 60.0)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except (RateLimitError, TransientError) as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func.__name__}"
                        )
                        raise

                    if isinstance(e, RateLimitError) and e.retry_after:
                        delay = min(e.retry_after, max_delay)
                    else:
                        delay = min(
                            base_delay * (exponential_base ** attempt),
                            max_delay
                        )

                    logger.warning(
                        f"Transient error in {func.__name__} (attempt {attempt + 1}/{max_retries}): "
                        f"{e}. Retrying in {delay:.1f}s..."
                    )

                    await asyncio.sleep(delay)

        return wrapper
    return decorator


def with_timeout(timeout_seconds: float = 30) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator adding a timeout to an async operation.

    Args:
        timeout_seconds: Timeout in seconds (default: 30)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(
                    func(*args, **kwargs),
                    timeout=timeout_seconds
                )
            except asyncio.TimeoutError as e:
                logger.error(
                    f"Timeout after {timeout_seconds}s in {func.__name__}"
                )
                raise ADOTimeoutError(
                    timeout_seconds=timeout_seconds,
                    original_error=e
                )

        return wrapper
    return decorator


def azure_devops_operation(
    timeout_seconds: float = 30,
    max_retries: int = 3,
    base_delay: float = 1.0
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Convenience decorator combining timeout, retry, and error handling.

    Order (outermost first): timeout, retry on transient errors, error mapping.

    Example:
        @azure_devops_operation(timeout_seconds=60, max_retries=5)
        async def fetch_json(self, url: str):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        decorated = func
        decorated = handle_ado_error(decorated)
        decorated = retry_on_transient_error(
            max_retries=max_retries,
            base_delay=base_delay
        )(decorated)
        decorated = with_timeout(timeout_seconds)(decorated)
        return decorated

    return decorator


class PerformanceMonitor:
    """
    Async context manager and decorator logging slow operations.

    Used around whole doc-type resolutions, which may fan out into many
    folder fetches.
    """

    def __init__(self, operation_name: str, warn_threshold_ms: float = 1000.0):
        self.operation_name = operation_name
        self.warn_threshold_ms = warn_threshold_ms
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    async def __aenter__(self):
        self.start_time = asyncio.get_running_loop().time()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.end_time = asyncio.get_running_loop().time()
        duration_ms = self.duration_ms

        if duration_ms > self.warn_threshold_ms:
            logger.warning(
                f"Slow operation: {self.operation_name} took {duration_ms:.1f}ms "
                f"(threshold: {self.warn_threshold_ms:.1f}ms)"
            )
        else:
            logger.debug(
                f"Operation {self.operation_name} completed in {duration_ms:.1f}ms"
            )

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with PerformanceMonitor(
                operation_name=func.__name__,
                warn_threshold_ms=self.warn_threshold_ms
            ):
                return await func(*args, **kwargs)
        return wrapper


def validate_work_item_id(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator rejecting invalid ``work_item_id`` arguments before any request.

    Looks for ``work_item_id`` in kwargs, then in the first positional
    argument after ``self``.

    Example:
        @validate_work_item_id
        async def get_work_item_type(self, work_item_id: int):
            ...
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        if 'work_item_id' in kwargs:
            work_item_id = kwargs['work_item_id']
        elif len(args) > 1:
            work_item_id = args[1]
        else:
            return await func(*args, **kwargs)

        if isinstance(work_item_id, bool) or not isinstance(work_item_id, int) or work_item_id <= 0:
            raise BadRequestError(
                message=f"Invalid work item ID: {work_item_id}. Must be a positive integer."
            )

        return await func(*args, **kwargs)

    return wrapper
