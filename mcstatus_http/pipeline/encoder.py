# mcstatus_http/pipeline/encoder.py
from typing import Tuple

from pydantic import BaseModel

from mcstatus_http.schemas import (
    ErrorBody,
    MalformedOutput,
    Offline,
    Online,
    Overloaded,
    Players,
    ProbeError,
    ProbeOutcome,
    ServerStatus,
    Timeout,
)
from mcstatus_http.target import Target

Encoded = Tuple[int, BaseModel]


def encode(target: Target, outcome: ProbeOutcome) -> Encoded:
    key = target.key
    if isinstance(outcome, Online):
        return 200, ServerStatus(
            target=key,
            online=True,
            version=outcome.version,
            motd=outcome.motd,
            players=Players(online=outcome.players_online, max=outcome.players_max),
            latency_ms=outcome.latency_ms,
        )
    if isinstance(outcome, Offline):
        return 200, ServerStatus(target=key, online=False)
    if isinstance(outcome, Timeout):
        return 504, ErrorBody(error="probe timed out", target=key)
    if isinstance(outcome, ProbeError):
        return 502, ErrorBody(error="probe failed", target=key, detail=outcome.message)
    if isinstance(outcome, MalformedOutput):
        return 502, ErrorBody(error="probe returned malformed output", target=key)
    if isinstance(outcome, Overloaded):
        return 503, ErrorBody(error="service overloaded", target=key)
    return 500, ErrorBody(error="unclassified probe outcome", target=key)


def encode_invalid(message: str) -> Encoded:
    return 400, ErrorBody(error="invalid target", detail=message)


def to_json(body: BaseModel) -> dict:
    return body.model_dump(exclude_none=True)
