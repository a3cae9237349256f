# mcstatus_http/prober/mc_monitor.py
import asyncio
import logging
import math
import os
import re
import shutil
from typing import Optional

from mcstatus_http.config import ConfigError
from mcstatus_http.prober.base import Prober
from mcstatus_http.schemas import MalformedOutput, Offline, Online, ProbeError, ProbeOutcome, Timeout
from mcstatus_http.target import Target

logger = logging.getLogger(__name__)

DIAGNOSTIC_LIMIT = 200

# network-level failures reported by mc-monitor when nothing answers
OFFLINE_MARKERS = (
    "connection refused",
    "no route to host",
    "i/o timeout",
    "no such host",
    "connection reset",
    "host is down",
    "network is unreachable",
    "deadline exceeded",
)

_TOKEN_RE = re.compile(r"""(\w+)=('[^']*'|"[^"]*"|\S*)""")
_MOTD_RE = re.compile(r"(?:^|\s)motd=(.*)$")
_VERSION_RE = re.compile(r"(?:^|\s)version=(.*?)(?=\s+\w+=|$)")
_COUNT_RE = re.compile(r"^[0-9]+$")
_DURATION_PART_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_MS = {"ns": 1e-6, "us": 1e-3, "µs": 1e-3, "ms": 1.0, "s": 1e3, "m": 60e3, "h": 3600e3}


class McMonitorProber(Prober):
    """
    Runs `mc-monitor status -host H -port P` once per probe and classifies its
    exit status and output. The child is killed and reaped on timeout and on
    cancellation of the awaiting task.
    """

    def __init__(self, executable: str):
        resolved = executable if os.sep in executable else shutil.which(executable)
        if not resolved or not os.path.isfile(resolved):
            raise ConfigError(f"mc-monitor executable not found at {executable!r}")
        if not os.access(resolved, os.X_OK):
            raise ConfigError(f"mc-monitor at {resolved!r} is not executable")
        self.executable = resolved

    def _build_cmd(self, target: Target) -> list:
        return [self.executable, "status", "-host", target.host, "-port", str(target.port)]

    async def probe(self, target: Target, timeout: float) -> ProbeOutcome:
        cmd = self._build_cmd(target)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("could not start %s: %s", self.executable, e)
            return ProbeError(f"could not start mc-monitor: {e.strerror or e}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
        except asyncio.TimeoutError:
            logger.warning("mc-monitor timed out after %.1fs for %s", timeout, target)
            return Timeout()
        finally:
            if proc.returncode is None:
                await _kill(proc)

        return classify(proc.returncode, stdout, stderr)


async def _kill(proc) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()


def classify(returncode: int, stdout: bytes, stderr: bytes) -> ProbeOutcome:
    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")

    if returncode != 0:
        if looks_offline(out, err):
            return Offline()
        diagnostic = summarize(err) or summarize(out) or "no output"
        logger.warning("mc-monitor exited with status %s: %s", returncode, diagnostic)
        return ProbeError(f"mc-monitor exited with status {returncode}: {diagnostic}")

    status = parse_status_output(out)
    if status is not None:
        return status
    if looks_offline(out, err):
        return Offline()
    logger.warning("unparseable mc-monitor output (%d bytes)", len(stdout))
    return MalformedOutput(raw=out[:DIAGNOSTIC_LIMIT])


def looks_offline(*texts: str) -> bool:
    blob = " ".join(texts).lower()
    return any(marker in blob for marker in OFFLINE_MARKERS)


def summarize(text: str, limit: int = DIAGNOSTIC_LIMIT) -> str:
    """Last non-empty line, printable characters only, at most `limit` long."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return ""
    line = "".join(ch if ch.isprintable() else "?" for ch in lines[-1])
    if len(line) > limit:
        line = line[:limit - 3] + "..."
    return line


def parse_status_output(out: str) -> Optional[Online]:
    """
    Parse a line like
        host:25565 : version=Paper 1.20.4 online=3 max=20 motd='A Minecraft Server'
    mc-monitor prints version and motd unquoted/unescaped: version runs up to
    the next key=, and a multi-line motd continues on the following lines
    until its closing quote. Returns None when required fields are missing.
    """
    lines = out.splitlines()
    for i, line in enumerate(lines):
        line = line.strip()
        if "version=" not in line:
            continue

        motd = ""
        m = _MOTD_RE.search(line)
        if m:
            motd = _join_motd(m.group(1).strip(), lines[i + 1:])
            line = line[:m.start()]

        version = ""
        m = _VERSION_RE.search(line)
        if m:
            version = _unquote(m.group(1).strip())
            line = line[:m.start()] + " " + line[m.end():]

        fields = {k: _unquote(v) for k, v in _TOKEN_RE.findall(line)}
        online = fields.get("online", "")
        maximum = fields.get("max", "")
        if not version or not _COUNT_RE.match(online) or not _COUNT_RE.match(maximum):
            return None

        latency_ms = None
        raw_latency = fields.get("latency") or fields.get("ping")
        if raw_latency:
            latency_ms = parse_duration_ms(raw_latency)

        return Online(
            version=version,
            motd=motd,
            players_online=int(online),
            players_max=int(maximum),
            latency_ms=latency_ms,
        )
    return None


def _join_motd(first: str, rest: list) -> str:
    quote = first[:1]
    if quote not in ("'", '"') or (len(first) >= 2 and first.endswith(quote)):
        return _unquote(first)
    parts = [first[1:]]
    for line in rest:
        line = line.rstrip()
        if line.endswith(quote):
            parts.append(line[:-1])
            break
        parts.append(line)
    # an unterminated quote keeps whatever followed
    return "\n".join(parts)


def parse_duration_ms(text: str) -> Optional[float]:
    """Go-style duration ("12ms", "1.5s", "1m2s") or bare milliseconds."""
    try:
        value = float(text)
    except ValueError:
        pass
    else:
        return value if math.isfinite(value) and value >= 0 else None
    pos, total = 0, 0.0
    for m in _DURATION_PART_RE.finditer(text):
        if m.start() != pos:
            return None
        total += float(m.group(1)) * _DURATION_MS[m.group(2)]
        pos = m.end()
    if pos == 0 or pos != len(text):
        return None
    return total


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value
