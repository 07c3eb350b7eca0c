"""Retry decorator with exponential backoff for outbound HTTP calls.

Connectors and the billing client wrap their raw request helpers with
:func:`retry_with_backoff` so that dropped connections, timeouts and
provider-side 429/5xx answers are retried a few times before the error
reaches the sync or billing flow.
"""

import logging
import time
from functools import wraps
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)


class TransientHTTPError(RuntimeError):
    """Raised for HTTP answers worth retrying (429 and 5xx)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (ConnectionError, TimeoutError),
) -> Callable[[F], F]:
    """Retry the decorated function when it raises one of ``exceptions``.

    The n-th retry waits ``initial_delay * backoff_factor ** (n - 1)`` seconds,
    so the defaults give waits of 1s, 2s and 4s before the last error is
    re-raised.

    Args:
        max_retries: Retries after the first attempt (default: 3)
        initial_delay: Wait before the first retry, in seconds (default: 1.0)
        backoff_factor: Multiplier applied to the wait after each retry
        exceptions: Exception types that trigger a retry

    Example:
        @retry_with_backoff(exceptions=(requests.exceptions.RequestException,))
        def _get(self, url):
            return requests.get(url, timeout=30)
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts = max_retries + 1
            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts - 1:
                        logger.error(
                            "%s failed after %d attempts",
                            func.__name__,
                            attempts,
                            extra={
                                "function": func.__name__,
                                "total_attempts": attempts,
                                "exception_type": type(e).__name__,
                            },
                        )
                        raise

                    delay = initial_delay * (backoff_factor**attempt)
                    logger.warning(
                        "%s failed (attempt %d/%d): %s. Retrying in %.1f seconds",
                        func.__name__,
                        attempt + 1,
                        attempts,
                        e,
                        delay,
                        extra={
                            "function": func.__name__,
                            "retry_attempt": attempt + 1,
                            "delay_seconds": delay,
                            "exception_type": type(e).__name__,
                        },
                    )
                    time.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper  # type: ignore

    return decorator
