"""
Retrying executor for upstream GETs.

Every fetch that backs a cache entry goes through ``RetryExecutor``. It retries
rate limiting (429), server errors (5xx), connection failures and timeouts with
exponential backoff plus jitter, and defers to the server's ``Retry-After``
directive whenever one is present.

Caller cancellation (``asyncio.CancelledError``) is never retried: it passes
straight through, including out of a backoff sleep.
"""

import asyncio
import logging
import math
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional, Tuple

import aiohttp

from config.settings import (
    MAX_FETCH_ATTEMPTS,
    RETRY_BASE_DELAY,
    RETRY_JITTER_MAX,
    RETRY_JITTER_MIN,
)
from dexcore.constants import RETRY_AFTER_HEADER, STATUS_TOO_MANY_REQUESTS
from dexcore.transport import UpstreamResponse

logger = logging.getLogger("dexcore.retry")

# Transport-level failures worth another attempt. asyncio.TimeoutError is the
# client-side timeout; cancellation is a BaseException and is not listed.
TRANSIENT_EXCEPTIONS: Tuple[type, ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
)


def is_retriable_status(status: int) -> bool:
    return status == STATUS_TOO_MANY_REQUESTS or 500 <= status <= 599


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_retry_after(value: Optional[str], now: datetime) -> Optional[float]:
    """
    Convert a ``Retry-After`` header value into a wait in seconds.

    The header is either a non-negative integer number of seconds or an
    HTTP-date. Waits computed from a date are measured from ``now``; a date
    in the past clamps to 0.

    Args:
        value: Raw header value.
        now: Current time (timezone-aware).

    Returns:
        Seconds to wait, or None if the header is absent, unparseable or
        not finite.
    """
    if value is None:
        return None

    value = value.strip()
    if not value:
        return None

    # Delta-seconds is 1*DIGIT; anything else must be an HTTP-date
    if value.isascii() and value.isdigit():
        delay = float(value)
        return delay if math.isfinite(delay) else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if when is None:
        return None

    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    return max(0.0, (when - now).total_seconds())


class RetryExecutor:
    """
    Wraps a transport GET with bounded retries.

    The delay before attempt ``n + 1`` is the response's Retry-After, if any,
    otherwise ``base_delay * 2**(n - 1)`` plus a random jitter drawn from
    ``jitter`` (250, 500, 1000, 2000 ms plus 50-200 ms with the defaults).

    On the final attempt a retriable-looking response is returned as-is so the
    caller can decide what it means; a transport exception on the final
    attempt propagates.
    """

    def __init__(
        self,
        transport,
        max_attempts: int = MAX_FETCH_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
        jitter: Tuple[float, float] = (RETRY_JITTER_MIN, RETRY_JITTER_MAX),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._transport = transport
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.jitter = jitter
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._now = now

    def compute_delay(
        self, attempt: int, response: Optional[UpstreamResponse] = None
    ) -> float:
        """
        Seconds to wait after ``attempt`` (1-based) failed.

        Args:
            attempt: The attempt number that just failed.
            response: The failed response, consulted for Retry-After.
        """
        if response is not None:
            retry_after = parse_retry_after(
                response.header(RETRY_AFTER_HEADER), self._now()
            )
            if retry_after is not None:
                return retry_after

        backoff = self.base_delay * (2 ** (attempt - 1))
        low, high = self.jitter
        return backoff + self._rng.uniform(low, high)

    async def fetch_with_retry(self, path: str) -> UpstreamResponse:
        """
        GET ``path``, retrying transient failures.

        Args:
            path: Resource path relative to the catalog base URL.

        Returns:
            The first non-retriable response, or the last response received
            once attempts are exhausted.

        Raises:
            aiohttp.ClientError, asyncio.TimeoutError, ConnectionError: If the
                final attempt fails at the transport level.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._transport.get(path)
            except TRANSIENT_EXCEPTIONS as e:
                if attempt == self.max_attempts:
                    logger.error(
                        f"GET {path} failed after {self.max_attempts} attempts: {e!r}"
                    )
                    raise

                delay = self.compute_delay(attempt)
                logger.warning(
                    f"GET {path} attempt {attempt}/{self.max_attempts} failed: {e!r}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await self._sleep(delay)
                continue

            if not is_retriable_status(response.status):
                return response

            if attempt == self.max_attempts:
                logger.error(
                    f"GET {path} still returning {response.status} after "
                    f"{self.max_attempts} attempts",
                    extra={"path": path, "status_code": response.status},
                )
                return response

            delay = self.compute_delay(attempt, response)
            logger.warning(
                f"GET {path} attempt {attempt}/{self.max_attempts} returned "
                f"{response.status}. Retrying in {delay:.2f}s...",
                extra={"path": path, "status_code": response.status},
            )
            await self._sleep(delay)

        # Unreachable: the loop always returns or raises on the final attempt
        raise RuntimeError("retry loop exited without a result")
