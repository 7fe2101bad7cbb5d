import asyncio
import functools
import random
from typing import Callable, Optional
import httpx
from storefront import logger
from storefront.common.circuit_breaker import CircuitBreaker


TRANSIENT_HTTP_EXCEPTIONS = (httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError, httpx.NetworkError)


def is_transient_http_error(exc: BaseException) -> bool:
    """Network blips and 5xx answers are worth another try, 4xx never are."""
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, TRANSIENT_HTTP_EXCEPTIONS):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response is not None and 500 <= exc.response.status_code < 600
    return False


async def _sleep_with_jitter(delay: float, jitter: float) -> None:
    jitter_val = random.uniform(-jitter * delay, jitter * delay)
    await asyncio.sleep(max(0.0, delay + jitter_val))


def retry_async(
    *,
    attempts: int = 3,
    base_delay: float = 0.1,
    factor: float = 2.0,
    max_delay: float = 8.0,
    jitter: float = 0.15,
    if_retryable: Optional[Callable[[BaseException], bool]] = None,
    per_attempt_timeout: Optional[float] = None,
    circuit: Optional[CircuitBreaker] = None,
):
    """Retry an async callable with exponential backoff and jitter.

    When a circuit is given every attempt first asks it for permission, so an open
    circuit fails fast with CircuitOpenError instead of hammering a dead upstream.
    Only retryable failures count against the circuit.
    """
    if if_retryable is None:
        if_retryable = is_transient_http_error

    def deco(fn: Callable):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, attempts + 1):
                acquired_probe = False
                if circuit is not None:
                    await circuit.before_call()
                    if circuit.state == "HALF_OPEN":
                        acquired_probe = await circuit.acquire_half_open_probe(timeout=0.1)

                try:
                    if per_attempt_timeout:
                        result = await asyncio.wait_for(fn(*args, **kwargs), timeout=per_attempt_timeout)
                    else:
                        result = await fn(*args, **kwargs)
                except Exception as exc:
                    retryable = if_retryable(exc)
                    if circuit is not None and retryable:
                        await circuit.record_failure()
                    if not retryable or attempt == attempts:
                        raise

                    delay = min(max_delay, base_delay * (factor ** (attempt - 1)))
                    logger.debug("retry attempt %d of %s failed; retrying in %.2fs: %s", attempt, fn.__name__, delay, exc)
                    await _sleep_with_jitter(delay, jitter)
                else:
                    if circuit is not None:
                        await circuit.record_success()
                    return result
                finally:
                    if acquired_probe:
                        circuit.release_half_open_probe()
        return wrapper
    return deco
