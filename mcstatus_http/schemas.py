# mcstatus_http/schemas.py
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Probe outcomes: exactly one is produced per invocation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Online:
    version: str
    motd: str
    players_online: int
    players_max: int
    latency_ms: Optional[float] = None


@dataclass(frozen=True)
class Offline:
    pass


@dataclass(frozen=True)
class Timeout:
    pass


@dataclass(frozen=True)
class ProbeError:
    message: str


@dataclass(frozen=True)
class MalformedOutput:
    raw: str = ""  # kept for logs only, never serialized


@dataclass(frozen=True)
class Overloaded:
    pass


ProbeOutcome = Union[Online, Offline, Timeout, ProbeError, MalformedOutput, Overloaded]


# ---------------------------------------------------------------------------
# HTTP bodies
# ---------------------------------------------------------------------------

class Players(BaseModel):
    online: int = Field(..., ge=0)
    max: int = Field(..., ge=0)


class ServerStatus(BaseModel):
    target: str
    online: bool
    version: Optional[str] = None
    motd: Optional[str] = None
    players: Optional[Players] = None
    latency_ms: Optional[float] = None


class ErrorBody(BaseModel):
    error: str
    target: Optional[str] = None
    detail: Optional[str] = None


class Health(BaseModel):
    status: str = "ok"
    entries: int
    in_flight: int
    hits: int
    misses: int
    coalesced: int
    invocations: int
    probes_running: int
