# mcstatus_http/target.py
import ipaddress
import re
import unicodedata
from dataclasses import dataclass

DEFAULT_MC_PORT = 25565
MAX_HOST_LEN = 253

_HOSTNAME_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_.-]*[a-z0-9_])?$")


class InvalidTarget(ValueError):
    """Client supplied an address that cannot be probed."""


@dataclass(frozen=True)
class Target:
    host: str
    port: int

    @property
    def key(self) -> str:
        # normalized form; doubles as the cache key
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.key


def parse_target(raw, default_port: int = DEFAULT_MC_PORT) -> Target:
    """
    Parse and normalize host[:port]. Hostnames are lowercased (IDNA encoded when
    needed), IPv6 literals go in brackets when a port is given, and a missing
    port becomes default_port so equivalent spellings compare equal.
    """
    if raw is None or not raw.strip():
        raise InvalidTarget("target address is empty")
    if any(ch.isspace() or unicodedata.category(ch).startswith("C") for ch in raw):
        raise InvalidTarget("target address contains whitespace or control characters")

    host, port_text = _split(raw)
    port = _parse_port(port_text, default_port)
    return Target(host=_normalize_host(host), port=port)


def _split(raw: str):
    if raw.startswith("["):
        end = raw.find("]")
        if end == -1:
            raise InvalidTarget("unterminated '[' in IPv6 address")
        host, rest = raw[1:end], raw[end + 1:]
        if ":" not in host:
            raise InvalidTarget("brackets are only valid around IPv6 addresses")
        if not rest:
            return host, None
        if not rest.startswith(":"):
            raise InvalidTarget("unexpected characters after IPv6 address")
        return host, rest[1:]

    if raw.count(":") > 1:
        # bare IPv6 literal, no room for a port
        return raw, None
    if ":" in raw:
        host, _, port_text = raw.partition(":")
        return host, port_text
    return raw, None


def _parse_port(port_text, default_port: int) -> int:
    if port_text is None:
        return default_port
    if not port_text.isdigit() or not port_text.isascii():
        raise InvalidTarget(f"port {port_text!r} is not a number")
    port = int(port_text)
    if not 1 <= port <= 65535:
        raise InvalidTarget(f"port {port} is outside 1-65535")
    return port


def _normalize_host(host: str) -> str:
    if not host:
        raise InvalidTarget("host is empty")

    if ":" in host:
        try:
            return ipaddress.IPv6Address(host).compressed
        except ValueError:
            raise InvalidTarget(f"{host!r} is not a valid IPv6 address") from None

    host = host.lower()
    if host.endswith("."):
        host = host[:-1]
    if host.startswith("-"):
        raise InvalidTarget("host must not start with '-'")
    if not host.isascii():
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError:
            raise InvalidTarget("host is not a valid internationalized name") from None
    if len(host) > MAX_HOST_LEN:
        raise InvalidTarget(f"host is longer than {MAX_HOST_LEN} characters")
    if not _HOSTNAME_RE.match(host) or ".." in host:
        raise InvalidTarget(f"{host!r} is not a valid hostname")
    return host
