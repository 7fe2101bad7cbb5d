import asyncio
import time
from typing import Optional


class CircuitOpenError(RuntimeError):
    pass


class CircuitBreaker:
    """
    Async in-memory circuit breaker guarding calls to an external dependency.

    CLOSED: calls pass, consecutive failures are counted.
    OPEN: `before_call()` raises CircuitOpenError until `recovery_timeout` elapses.
    HALF_OPEN: a limited number of probe calls go through; enough successes close
    the circuit, any failure opens it again.
    """
    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_success_threshold: int = 1,
        max_concurrent_half_open_probes: int = 1,
    ):
        self.name = name
        self.failure_threshold = max(1, int(failure_threshold))
        self.recovery_timeout = float(recovery_timeout)
        self.half_open_success_threshold = max(1, int(half_open_success_threshold))

        self._state = "CLOSED"
        self._fail_count = 0
        self._opened_at: Optional[float] = None
        self._half_open_success_count = 0

        self._lock = asyncio.Lock()
        self._half_open_semaphore = asyncio.Semaphore(max_concurrent_half_open_probes)

    @property
    def state(self) -> str:
        return self._state

    def _maybe_half_open(self):
        if self._state == "OPEN" and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = "HALF_OPEN"
                self._half_open_success_count = 0

    def _open(self):
        self._state = "OPEN"
        self._opened_at = time.monotonic()
        self._fail_count = 0
        self._half_open_success_count = 0

    async def before_call(self):
        async with self._lock:
            self._maybe_half_open()
            if self._state == "OPEN":
                raise CircuitOpenError(f"circuit {self.name} is open")

    async def record_success(self):
        async with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_success_count += 1
                if self._half_open_success_count < self.half_open_success_threshold:
                    return
            self._state = "CLOSED"
            self._fail_count = 0
            self._opened_at = None
            self._half_open_success_count = 0

    async def record_failure(self):
        async with self._lock:
            if self._state == "HALF_OPEN":
                self._open()
            elif self._state == "CLOSED":
                self._fail_count += 1
                if self._fail_count >= self.failure_threshold:
                    self._open()

    async def acquire_half_open_probe(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._half_open_semaphore.acquire(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def release_half_open_probe(self):
        self._half_open_semaphore.release()
