# mcstatus_http/prober/base.py
from abc import ABC, abstractmethod

from mcstatus_http.schemas import ProbeOutcome
from mcstatus_http.target import Target


class Prober(ABC):
    @abstractmethod
    async def probe(self, target: Target, timeout: float) -> ProbeOutcome:
        """Run exactly one status check against target and classify the result."""
        raise NotImplementedError
