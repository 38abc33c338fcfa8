"""
Retry, Backoff and Key Rotation

Wraps a single provider request with per-key retries and rotation across the
configured credentials.

Design Decisions:
- Retries run on tenacity's AsyncRetrying with a Retry-After aware wait
- Statuses 429/500/502/503/504 and transport timeouts are retried per key
- 401/403 and exhausted retries move on to the next key
- Any other 4xx is raised immediately
- A per-provider minimum interval spaces out dispatches across all jobs
"""

import asyncio
import random
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from qa_extractor.errors import ConfigurationError, ProviderError, ProviderHTTPError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
AUTH_STATUSES = frozenset({401, 403})
DEFAULT_MAX_WAIT = 30.0


def parse_retry_after(value: str | None) -> float | None:
    """Return the Retry-After header as positive seconds, or None."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def compute_retry_wait(
    attempt: int,
    retry_after: str | None = None,
    max_wait: float = DEFAULT_MAX_WAIT,
    rand: Callable[[], float] = random.random,
) -> float:
    """Seconds to wait before retry number ``attempt`` (zero-based)."""
    header_seconds = parse_retry_after(retry_after)
    if header_seconds is not None:
        return min(header_seconds, max_wait)
    return min(2 ** attempt + rand() * 0.7 + 0.2, max_wait)


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, ProviderHTTPError):
        return error.status in RETRYABLE_STATUSES
    return isinstance(error, (httpx.TimeoutException, httpx.TransportError))


class wait_retry_after(wait_base):
    """tenacity wait strategy honouring the provider's Retry-After header."""

    def __init__(self, max_wait: float = DEFAULT_MAX_WAIT, rand: Callable[[], float] = random.random):
        self.max_wait = max_wait
        self.rand = rand

    def __call__(self, retry_state: RetryCallState) -> float:
        retry_after = None
        if retry_state.outcome is not None:
            error = retry_state.outcome.exception()
            if isinstance(error, ProviderHTTPError):
                retry_after = error.retry_after
        return compute_retry_wait(
            retry_state.attempt_number - 1,
            retry_after,
            max_wait=self.max_wait,
            rand=self.rand,
        )


# =============================================================================
# Key rotation
# =============================================================================

class KeyRotator:
    """Round-robin cursor over a deduplicated credential list."""

    def __init__(self, keys: Sequence[str]):
        unique: list[str] = []
        for key in keys:
            key = (key or "").strip()
            if key and key not in unique:
                unique.append(key)
        self._keys = unique
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> list[str]:
        return list(self._keys)

    def take(self) -> str:
        """Return the next key in round-robin order."""
        if not self._keys:
            raise ConfigurationError("No API keys configured.")
        with self._lock:
            key = self._keys[self._cursor % len(self._keys)]
            self._cursor += 1
        return key

    def ordered_keys(self, pinned: str | None = None) -> list[str]:
        """Keys to try for one call.

        Without ``pinned`` the list starts at the next rotation offset. A
        pinned key is tried first and the rest follow as fallback.
        """
        if pinned:
            rest = [key for key in self._keys if key != pinned]
            return [pinned, *rest]

        if not self._keys:
            return []
        with self._lock:
            offset = self._cursor % len(self._keys)
            self._cursor += 1
        return self._keys[offset:] + self._keys[:offset]


# =============================================================================
# Throttling
# =============================================================================

class MinIntervalThrottle:
    """Enforces a minimum spacing between dispatches.

    Each caller reserves the next free slot before sleeping, so concurrent
    callers on one event loop queue up without a lock.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(min_interval, 0.0)
        self._clock = clock
        self._sleep = sleep
        self._next_slot = 0.0

    async def wait(self) -> None:
        if self.min_interval <= 0:
            return
        now = self._clock()
        slot = max(now, self._next_slot)
        self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            await self._sleep(delay)


_throttles: dict[str, MinIntervalThrottle] = {}


def get_throttle(provider: str, min_interval: float) -> MinIntervalThrottle:
    """Process-wide throttle for a provider, shared by all jobs."""
    throttle = _throttles.get(provider)
    if throttle is None or throttle.min_interval != min_interval:
        throttle = MinIntervalThrottle(min_interval)
        _throttles[provider] = throttle
    return throttle


# =============================================================================
# Call wrapper
# =============================================================================

async def call_with_retry(
    send: Callable[[str], Awaitable[T]],
    keys: Sequence[str],
    *,
    provider: str = "provider",
    max_attempts_per_key: int = 4,
    throttle: MinIntervalThrottle | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    max_wait: float = DEFAULT_MAX_WAIT,
    rand: Callable[[], float] = random.random,
) -> T:
    """Run ``send(key)`` with retries, rotating through ``keys``.

    Args:
        send: Performs one request with the given key. Raises
            ProviderHTTPError for non-success responses.
        keys: Keys in the order they should be tried.
        provider: Provider name for logs and errors.
        max_attempts_per_key: Attempts before moving to the next key.
        throttle: Optional minimum-interval throttle applied per attempt.
        sleep: Backoff sleep, injectable for tests.
        max_wait: Cap on a single backoff wait.
        rand: Jitter source in [0, 1).

    Returns:
        Whatever ``send`` returns on the first success.

    Raises:
        ConfigurationError: No keys were supplied.
        ProviderHTTPError: A non-retryable, non-auth status was returned.
        ProviderError: Every key was exhausted.
    """
    if not keys:
        raise ConfigurationError(f"Missing {provider.upper()} API key in settings.")

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "provider_retry",
            provider=provider,
            attempt=retry_state.attempt_number,
            wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
            error=str(error),
        )

    last_error: BaseException | None = None

    for key_index, key in enumerate(keys):
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(max_attempts_per_key, 1)),
            retry=retry_if_exception(is_retryable),
            wait=wait_retry_after(max_wait=max_wait, rand=rand),
            sleep=sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if throttle is not None:
                        await throttle.wait()
                    return await send(key)
        except ProviderHTTPError as e:
            last_error = e
            if e.status in AUTH_STATUSES or e.status in RETRYABLE_STATUSES:
                logger.warning(
                    "provider_key_exhausted",
                    provider=provider,
                    key_index=key_index,
                    status=e.status,
                )
                continue
            raise
        except (httpx.TimeoutException, httpx.TransportError) as e:
            last_error = e
            logger.warning("provider_key_exhausted", provider=provider, key_index=key_index, error=str(e))
            continue

    raise ProviderError(
        f"{provider} request failed after trying {len(keys)} key(s): {last_error}"
    )
