"""Retry helpers with exponential backoff.

Provides:
- ``retry_with_backoff`` decorator used for push contention
- ``is_network_error`` classifier for exceptions and git error output
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

NETWORK_ERROR_KEYWORDS = (
    "network",
    "connection refused",
    "connection reset",
    "connection timed out",
    "timed out",
    "temporary failure in name resolution",
    "could not resolve host",
    "could not read from remote repository",
    "unable to access",
    "authentication failed",
    "permission denied (publickey",
    "host key verification failed",
    "the remote end hung up unexpectedly",
    "503",
    "502",
    "504",
)


def is_network_error(error: BaseException | str) -> bool:
    """Check whether an error looks like remote unavailability.

    Args:
        error: Exception instance or raw error output (e.g. git stderr)

    Returns:
        True if the error indicates an unreachable or refusing remote

    """
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    message = str(error).lower()
    return any(keyword in message for keyword in NETWORK_ERROR_KEYWORDS)


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    logger: Callable[[str], Any] | None = None,
) -> Callable[[F], F]:
    """Retry the decorated function with exponential backoff.

    The function is called at most ``max_retries + 1`` times. After the last
    failure the exception propagates unchanged.

    Args:
        max_retries: Number of retries after the first attempt
        initial_delay: Delay in seconds before the first retry
        backoff_factor: Multiplier applied to the delay after each retry
        retry_on: Exception types that trigger a retry
        logger: Optional callable receiving a message before each retry

    Returns:
        Decorator

    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_retries:
                        raise
                    if logger is not None:
                        logger(
                            f"Retry {attempt + 1}/{max_retries} after "
                            f"{type(e).__name__}: {e} (waiting {delay:.1f}s)"
                        )
                    if delay > 0:
                        time.sleep(delay)
                    delay *= backoff_factor

        return wrapper  # type: ignore[return-value]

    return decorator
