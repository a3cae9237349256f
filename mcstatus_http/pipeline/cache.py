# mcstatus_http/pipeline/cache.py
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from mcstatus_http.pipeline.gate import AdmissionGate
from mcstatus_http.prober.base import Prober
from mcstatus_http.schemas import Overloaded, ProbeError, ProbeOutcome, Timeout
from mcstatus_http.target import Target

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    # in flight while outcome is None; task is the shared probe
    task: Optional[asyncio.Task] = None
    outcome: Optional[ProbeOutcome] = None
    expires_at: float = 0.0

    @property
    def in_flight(self) -> bool:
        return self.outcome is None


class ResultCache:
    """
    Target key -> finished outcome or in-flight probe.

    Every mutation happens between awaits on the event loop thread, so the
    check-then-install in lookup_or_start is atomic per key: concurrent callers
    for one target share a single probe task.
    """

    def __init__(self, prober: Prober, gate: AdmissionGate,
                 probe_timeout: float, freshness: float,
                 max_entries: int = 1024,
                 clock: Callable[[], float] = time.monotonic):
        self.prober = prober
        self.gate = gate
        self.probe_timeout = probe_timeout
        self.freshness = freshness
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

        # counters
        self.hits = 0
        self.misses = 0
        self.coalesced = 0
        self.invocations = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def in_flight(self) -> int:
        return sum(1 for e in self._entries.values() if e.in_flight)

    async def lookup_or_start(self, target: Target) -> ProbeOutcome:
        key = target.key
        entry = self._entries.get(key)

        if entry is not None and not entry.in_flight and entry.expires_at <= self._clock():
            del self._entries[key]
            entry = None

        if entry is None:
            self.misses += 1
            entry = CacheEntry()
            self._entries[key] = entry
            entry.task = asyncio.get_running_loop().create_task(self._run(target, entry))
            self._sweep()
            logger.debug("cache miss for %s, probing", key)
        elif not entry.in_flight:
            self.hits += 1
            logger.debug("cache hit for %s", key)
            return entry.outcome
        else:
            self.coalesced += 1
            logger.debug("joining in-flight probe for %s", key)

        # a waiter going away must not cancel the shared probe
        return await asyncio.shield(entry.task)

    async def _run(self, target: Target, entry: CacheEntry) -> ProbeOutcome:
        try:
            outcome = await self._invoke(target)
        except asyncio.CancelledError:
            self._discard(target.key, entry)
            raise

        if isinstance(outcome, Overloaded):
            # not a property of the target; let the next request retry
            self._discard(target.key, entry)
        else:
            entry.outcome = outcome
            entry.expires_at = self._clock() + self.freshness
        entry.task = None
        return outcome

    async def _invoke(self, target: Target) -> ProbeOutcome:
        if not await self.gate.acquire():
            logger.warning("admission gate full (%d probes running), rejecting %s",
                           self.gate.in_use, target)
            return Overloaded()
        try:
            self.invocations += 1
            return await asyncio.wait_for(
                self.prober.probe(target, self.probe_timeout), self.probe_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("probe for %s exceeded %.1fs", target, self.probe_timeout)
            return Timeout()
        except Exception:
            logger.exception("prober raised for %s", target)
            return ProbeError("probe failed unexpectedly")
        finally:
            self.gate.release()

    def _discard(self, key: str, entry: CacheEntry) -> None:
        if self._entries.get(key) is entry:
            del self._entries[key]

    def _sweep(self) -> None:
        if len(self._entries) <= self.max_entries:
            return
        now = self._clock()
        for key in [k for k, e in self._entries.items() if not e.in_flight and e.expires_at <= now]:
            del self._entries[key]

        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            done = sorted(
                (e.expires_at, k) for k, e in self._entries.items() if not e.in_flight
            )
            for _, key in done[:overflow]:
                del self._entries[key]

    async def close(self) -> None:
        """Cancel in-flight probes (killing their children) and drop everything."""
        tasks = [e.task for e in self._entries.values() if e.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()
