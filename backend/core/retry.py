"""
Bounded retry loop for single upstream calls.

Only the generic envelope is inspected: the HTTP status the response arrived
with and a numeric `error.code` in its body. 429 and 5xx are retryable;
anything else, success included, is returned at once. Exceptions raised by
the call are retried on the same schedule and re-raised once attempts run out.
"""
import asyncio
import random
from typing import Awaitable, Callable, Optional

from models.provider import ProviderResponse

JITTER_SECONDS = 0.2

Sleep = Callable[[float], Awaitable[None]]


def is_retryable_status(code: Optional[int]) -> bool:
    return code is not None and (code == 429 or 500 <= code < 600)


def should_retry(response: ProviderResponse) -> bool:
    return is_retryable_status(response.status_code) or is_retryable_status(response.error_code)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    rand: Callable[[], float] = random.random,
) -> float:
    """Seconds to wait after 0-indexed `attempt`: capped exponential plus up to 200ms jitter."""
    return min(base_delay * (2 ** attempt), max_delay) + rand() * JITTER_SECONDS


async def with_retries(
    call: Callable[[], Awaitable[ProviderResponse]],
    max_retries: int = 2,
    base_delay: float = 0.4,
    max_delay: float = 2.0,
    sleep: Sleep = asyncio.sleep,
    label: str = "upstream",
) -> ProviderResponse:
    """Run `call` up to `1 + max_retries` times.

    Returns the first non-retryable response, or the last response when every
    attempt came back retryable. Raises the last exception when the final
    attempt raised.
    """
    attempts = 1 + max(0, max_retries)
    for attempt in range(attempts):
        is_last = attempt == attempts - 1
        try:
            response = await call()
        except Exception as error:
            if is_last:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            print(f"[RETRY] {label} attempt {attempt + 1}/{attempts} raised {error!r}, retrying in {delay:.2f}s")
            await sleep(delay)
            continue

        if not should_retry(response) or is_last:
            return response

        delay = backoff_delay(attempt, base_delay, max_delay)
        print(f"[RETRY] {label} attempt {attempt + 1}/{attempts} returned {response.status_code}, retrying in {delay:.2f}s")
        await sleep(delay)

    # Unreachable: the final attempt always returns or raises
    raise RuntimeError("retry loop exited without a result")
