# mcstatus_http/prober/fake.py
import asyncio
from collections import deque

from mcstatus_http.prober.base import Prober
from mcstatus_http.schemas import Offline, ProbeOutcome
from mcstatus_http.target import Target


class FakeProber(Prober):
    """
    script: dict[target key] -> list of outcomes to return on successive calls.
    If no scripted outcome is left, returns `default` (Offline unless given).
    delay: seconds to sleep before answering; hang=True never answers.
    """
    def __init__(self, script=None, default: ProbeOutcome = None,
                 delay: float = 0.0, hang: bool = False):
        self.script = {}
        if script:
            for k, v in script.items():
                self.script[k] = deque(v)
        self.default = default if default is not None else Offline()
        self.delay = delay
        self.hang = hang
        self.calls = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def probe(self, target: Target, timeout: float) -> ProbeOutcome:
        self.calls.append(target.key)
        if self.hang:
            await asyncio.Event().wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        dq = self.script.get(target.key)
        if dq:
            outcome = dq.popleft()
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return self.default
