# mcstatus_http/pipeline/gate.py
import asyncio


class AdmissionGate:
    """Caps simultaneously running probes; waiting for a slot is bounded."""

    def __init__(self, limit: int, wait: float):
        self.limit = limit
        self.wait = wait
        self._sem = asyncio.Semaphore(limit)
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    async def acquire(self) -> bool:
        try:
            await asyncio.wait_for(self._sem.acquire(), self.wait)
        except asyncio.TimeoutError:
            return False
        self._in_use += 1
        return True

    def release(self) -> None:
        self._in_use -= 1
        self._sem.release()
