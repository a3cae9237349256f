# mcstatus_http/config.py
import os
import shutil
from dataclasses import dataclass, field, fields
from typing import Optional

from uvicorn.config import LOG_LEVELS

DEFAULT_MC_MONITOR = "mc-monitor"
ENV_PREFIX = "MCSTATUS_HTTP_"

# fields whose variable is not ENV_PREFIX + NAME
ENV_NAMES = {
    "mc_monitor_executable": "MC_MONITOR_EXECUTABLE",
    "default_port": ENV_PREFIX + "DEFAULT_MC_PORT",
}


class ConfigError(Exception):
    """Fatal misconfiguration detected at startup."""


def _default_executable() -> str:
    return os.environ.get("MC_MONITOR_EXECUTABLE") or shutil.which(DEFAULT_MC_MONITOR) or ""


@dataclass
class Settings:
    mc_monitor_executable: str = field(default_factory=_default_executable)
    host: str = "0.0.0.0"
    port: int = 3789

    probe_timeout: float = 5.0
    # None -> admission_wait + probe_timeout + request_slack
    request_timeout: Optional[float] = None
    request_slack: float = 2.0

    freshness: float = 30.0           # seconds a finished probe is served from cache
    max_entries: int = 1024

    # admission gate
    max_probes: int = 16
    admission_wait: float = 1.0

    max_connections: int = 256
    default_port: int = 25565
    log_level: str = "INFO"

    def __post_init__(self):
        if self.request_timeout is None:
            self.request_timeout = self.derived_request_timeout()

    def derived_request_timeout(self) -> float:
        return self.admission_wait + self.probe_timeout + self.request_slack

    def validate(self) -> "Settings":
        if not self.mc_monitor_executable:
            raise ConfigError(
                "MC_MONITOR_EXECUTABLE is not set and mc-monitor was not found on PATH"
            )
        for name in ("probe_timeout", "request_timeout", "freshness", "admission_wait"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        # a request may wait for a gate slot and then for the whole probe
        if self.request_timeout <= self.admission_wait + self.probe_timeout:
            raise ConfigError(
                "request_timeout must exceed admission_wait + probe_timeout"
            )
        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigError(
                f"log_level {self.log_level!r} is not one of {', '.join(LOG_LEVELS)}"
            )
        for name in ("port", "default_port"):
            value = getattr(self, name)
            if not 1 <= value <= 65535:
                raise ConfigError(f"{name} {value} is outside 1-65535")
        for name in ("max_probes", "max_entries", "max_connections"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1")
        return self

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from MCSTATUS_HTTP_* variables (and MC_MONITOR_EXECUTABLE)."""
        environ = os.environ if environ is None else environ
        kwargs = {}
        for f in fields(cls):
            raw = environ.get(ENV_NAMES.get(f.name, ENV_PREFIX + f.name.upper()))
            if raw is None or raw == "":
                continue
            kwargs[f.name] = _coerce(f.name, raw, _CASTS.get(f.type, str))
        return cls(**kwargs)


_CASTS = {int: int, float: float, Optional[float]: float}


def _coerce(name: str, raw: str, cast):
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"invalid value for {name}: {raw!r}") from None
