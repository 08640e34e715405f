"""Per-request retry policy.

Client errors (the request itself is wrong) fail on the first attempt;
anything else is retried with capped exponential backoff.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .errors import ClientError, IngestError

LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMES = 5
BASE_SECONDS = 1.0
MAX_SECONDS = 30.0


def capped_backoff(attempt: int, base: float = BASE_SECONDS, cap: float = MAX_SECONDS) -> float:
    """Seconds to wait after the ``attempt``-th failure (0-based)."""
    return min(base * (2 ** attempt), cap)


def backoff_from_settings(settings) -> Callable[[int], float]:
    base = settings.retry_base_seconds
    cap = settings.retry_max_seconds
    return lambda attempt: capped_backoff(attempt, base, cap)


def retry_with_skip(
    fn: Callable[[], T],
    *,
    times: int = DEFAULT_TIMES,
    backoff: Callable[[int], float] = capped_backoff,
) -> T:
    """Call ``fn`` up to ``times`` times and return its first result.

    A ClientError is re-raised immediately. After the last failed attempt
    the last error propagates.
    """
    if times < 1:
        raise ValueError("times must be at least 1")

    last_error: Exception | None = None
    for attempt in range(times):
        try:
            return fn()
        except ClientError as e:
            LOG.error("Client error (HTTP %s), not retrying: %s", e.status, e)
            raise
        except IngestError as e:
            last_error = e
            if attempt < times - 1:
                delay = backoff(attempt)
                LOG.warning("Attempt %d/%d failed (%s); retrying in %.1fs", attempt + 1, times, e, delay)
                time.sleep(delay)
            else:
                LOG.warning("Attempt %d/%d failed (%s); giving up", attempt + 1, times, e)

    raise last_error  # type: ignore[misc]
