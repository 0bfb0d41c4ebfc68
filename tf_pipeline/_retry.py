"""Retry GitHub calls that were rejected by a rate limit.

Only :class:`~tf_pipeline._pipeline_errors.GitHubRateLimitError` is retried;
every other failure propagates on the first attempt.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from tf_pipeline._pipeline_errors import GitHubRateLimitError

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY_SECONDS = 60.0


def retry_on_rate_limit(
    retries: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Retry the decorated call when GitHub reports a rate limit.

    Parameters
    ----------
    retries
        Maximum number of attempts, including the first.
    delay
        Base delay in seconds; doubled after every failed attempt unless
        GitHub supplied ``retry-after``.
    sleep
        Sleep function, replaceable in tests.

    Returns
    -------
    Callable
        Decorator wrapping a synchronous callable.

    Examples
    --------
    >>> @retry_on_rate_limit(retries=2, delay=0)
    ... def ping() -> str:
    ...     return "pong"
    >>> ping()
    'pong'
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            attempt = 1
            wait = delay
            while True:
                try:
                    return func(*args, **kwargs)
                except GitHubRateLimitError as exc:
                    if attempt >= retries:
                        raise
                    pause = exc.retry_after if exc.retry_after is not None else wait
                    pause = min(pause, MAX_RETRY_DELAY_SECONDS)
                    logger.warning(
                        "Rate limited during %s (attempt %d/%d); retrying in %.1fs",
                        exc.operation,
                        attempt,
                        retries,
                        pause,
                    )
                    sleep(pause)
                    attempt += 1
                    wait *= 2

        return wrapper

    return decorator
