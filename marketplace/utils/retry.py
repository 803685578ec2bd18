"""
Retry utility with exponential backoff for transient errors.
Used for object storage calls.
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar
from google.api_core import exceptions as google_exceptions
import requests

logger = logging.getLogger(__name__)

T = TypeVar('T')

_TRANSIENT_STATUS_MARKERS = ('500', '502', '503', '504', '429')


def is_transient_error(error: Exception) -> bool:
    """
    Determine if an error is transient and should be retried.

    Transient errors include network timeouts, connection errors,
    HTTP 5xx/429 responses and Google API availability errors.
    """
    if isinstance(error, (
        google_exceptions.ServiceUnavailable,
        google_exceptions.DeadlineExceeded,
        google_exceptions.InternalServerError,
        google_exceptions.TooManyRequests,
        google_exceptions.BadGateway,
    )):
        return True

    if isinstance(error, (
        requests.exceptions.Timeout,
        requests.exceptions.ConnectionError,
        TimeoutError,
        ConnectionError,
    )):
        return True

    if isinstance(error, google_exceptions.GoogleAPICallError):
        return False

    error_str = str(error).lower()
    return any(code in error_str for code in _TRANSIENT_STATUS_MARKERS)


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    operation_name: str = "operation",
    **kwargs
) -> T:
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async function to retry
        *args: Arguments to pass to func
        max_retries: Maximum number of retry attempts after the first try
        base_delay: Base delay in seconds (doubled each retry)
        operation_name: Name of operation for logging
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result from the first successful call

    Raises:
        Exception: The last exception if all retries fail, or the first
            non-transient one
    """
    for attempt in range(max_retries + 1):
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if attempt >= max_retries:
                logger.error(
                    f"{operation_name} failed after {max_retries + 1} attempts: {type(e).__name__}: {e}"
                )
                raise

            if not is_transient_error(e):
                logger.error(
                    f"{operation_name} failed with non-transient error: {type(e).__name__}: {e}"
                )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{operation_name} attempt {attempt + 1}/{max_retries + 1} failed: "
                f"{type(e).__name__}: {e}. Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 0:
            logger.info(f"{operation_name} succeeded on attempt {attempt + 1}/{max_retries + 1}")
        return result

    raise RuntimeError(f"{operation_name}: retry loop exited without a result")
