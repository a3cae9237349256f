# tests/test_mc_monitor.py
import asyncio
import os
import time

import pytest

from mcstatus_http.config import ConfigError
from mcstatus_http.prober.mc_monitor import (
    McMonitorProber,
    classify,
    parse_duration_ms,
    parse_status_output,
    summarize,
)
from mcstatus_http.schemas import MalformedOutput, Offline, Online, ProbeError, Timeout
from mcstatus_http.target import parse_target


def make_stub(tmp_path, body: str, name: str = "mc-monitor") -> str:
    """Write an executable shell script standing in for mc-monitor."""
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755)
    return str(path)


# -------------------------------
# output parsing
# -------------------------------

def test_parse_typical_status_line():
    out = "mc.example.com:25565 : version=1.20.4 online=3 max=20 motd='A Minecraft Server'\n"
    assert parse_status_output(out) == Online(
        version="1.20.4", motd="A Minecraft Server", players_online=3, players_max=20
    )


def test_parse_unquoted_version_with_spaces():
    out = "mc.example.com:25565 : version=Paper 1.20.4 online=3 max=20 motd='hi'"
    assert parse_status_output(out) == Online(
        version="Paper 1.20.4", motd="hi", players_online=3, players_max=20
    )


@pytest.mark.parametrize("version", [
    "Velocity 3.3.0-SNAPSHOT (git-8a5b1fa2-b387)",
    "Spigot 1.8.8",
    "1.20.4",
])
def test_parse_keeps_whole_version(version):
    out = f"h:1 : version={version} online=1 max=2 motd='x'"
    assert parse_status_output(out).version == version


def test_parse_quoted_version_and_motd_with_equals():
    out = "h:1 : version='Paper 1.20' online=0 max=100 motd='it's a=b server'"
    status = parse_status_output(out)
    assert status.version == "Paper 1.20"
    assert status.motd == "it's a=b server"


def test_parse_multiline_motd():
    out = (
        "h:1 : version=Paper 1.20.4 online=3 max=20 motd='Welcome to\n"
        "  the best server\n"
        "ever'\n"
    )
    status = parse_status_output(out)
    assert status.motd == "Welcome to\n  the best server\never"
    assert status.players_online == 3


def test_parse_optional_latency():
    out = "h:1 : version=1.8 online=1 max=2 latency=12.5ms motd=''"
    assert parse_status_output(out).latency_ms == 12.5


@pytest.mark.parametrize("out", [
    "",
    "garbage",
    "h:1 : version=1.8 online=-1 max=20 motd='x'",
    "h:1 : version=1.8 online=many max=20 motd='x'",
    "h:1 : version= online=1 max=20 motd='x'",
    "h:1 : version=1.8 max=20 motd='x'",
])
def test_parse_rejects_incomplete(out):
    assert parse_status_output(out) is None


def test_parse_duration():
    assert parse_duration_ms("1.5s") == 1500.0
    assert parse_duration_ms("1m2s") == 62000.0
    assert parse_duration_ms("250us") == 0.25
    assert parse_duration_ms("40") == 40.0
    assert parse_duration_ms("fast") is None
    assert parse_duration_ms("nan") is None


def test_summarize_truncates_and_strips_control_bytes():
    text = "first\n" + "\x1b[31m" + "x" * 500 + "\n\n"
    line = summarize(text)
    assert len(line) == 200
    assert "\x1b" not in line
    assert line.endswith("...")


# -------------------------------
# exit status classification
# -------------------------------

def test_classify_nonzero_connection_refused_is_offline():
    err = b'{"level":"error","error":"dial tcp 10.0.0.1:25565: connect: connection refused"}\n'
    assert classify(1, b"", err) == Offline()


def test_classify_nonzero_other_is_probe_error():
    outcome = classify(3, b"", b"unexpected EOF\n")
    assert isinstance(outcome, ProbeError)
    assert "status 3" in outcome.message
    assert "unexpected EOF" in outcome.message


def test_classify_empty_stdout_is_malformed():
    assert isinstance(classify(0, b"", b""), MalformedOutput)


def test_classify_invalid_utf8_does_not_raise():
    outcome = classify(0, b"\xff\xfe version=1 online=1 max=1 motd='\xff'", b"")
    assert isinstance(outcome, Online)


# -------------------------------
# real subprocess runs
# -------------------------------

def test_constructor_rejects_missing_or_non_executable(tmp_path):
    with pytest.raises(ConfigError):
        McMonitorProber(str(tmp_path / "nope"))
    plain = tmp_path / "plain"
    plain.write_text("")
    plain.chmod(0o644)
    with pytest.raises(ConfigError):
        McMonitorProber(str(plain))


def test_probe_passes_host_and_port(tmp_path):
    exe = make_stub(tmp_path, "echo \"$3:$5 : version=1.20.4 online=$5 max=20 motd='hi'\"")
    outcome = asyncio.run(McMonitorProber(exe).probe(parse_target("mc.test:7"), 5.0))
    assert outcome == Online(version="1.20.4", motd="hi", players_online=7, players_max=20)


def test_probe_offline(tmp_path):
    exe = make_stub(tmp_path, "echo 'dial tcp: lookup mc.test: no such host' >&2; exit 1")
    assert asyncio.run(McMonitorProber(exe).probe(parse_target("mc.test"), 5.0)) == Offline()


def test_probe_malformed(tmp_path):
    exe = make_stub(tmp_path, "exit 0")
    outcome = asyncio.run(McMonitorProber(exe).probe(parse_target("mc.test"), 5.0))
    assert isinstance(outcome, MalformedOutput)


def test_probe_kills_hung_process(tmp_path):
    exe = make_stub(tmp_path, "exec sleep 30")
    started = time.monotonic()
    outcome = asyncio.run(McMonitorProber(exe).probe(parse_target("mc.test"), 0.3))
    elapsed = time.monotonic() - started
    assert outcome == Timeout()
    assert elapsed < 3.0


def test_probe_kills_child_on_cancel(tmp_path):
    pidfile = tmp_path / "pid"
    exe = make_stub(tmp_path, f"echo $$ > {pidfile}; exec sleep 30")

    async def run():
        task = asyncio.ensure_future(McMonitorProber(exe).probe(parse_target("mc.test"), 10.0))
        for _ in range(100):
            await asyncio.sleep(0.02)
            if pidfile.exists() and pidfile.read_text().strip():
                break
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    pid = int(pidfile.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_probe_spawn_failure_is_probe_error(tmp_path):
    exe = make_stub(tmp_path, "exit 0")
    prober = McMonitorProber(exe)
    os.remove(exe)
    outcome = asyncio.run(prober.probe(parse_target("mc.test"), 1.0))
    assert isinstance(outcome, ProbeError)
    assert outcome.message.startswith("could not start mc-monitor")
