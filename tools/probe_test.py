# tools/probe_test.py
# Usage: python3 tools/probe_test.py mc.example.com[:25565] [timeout_s]
import asyncio
import json
import sys

from mcstatus_http.config import Settings
from mcstatus_http.pipeline.encoder import encode, to_json
from mcstatus_http.prober.mc_monitor import McMonitorProber
from mcstatus_http.target import parse_target

def main():
    if len(sys.argv) < 2:
        print("Usage: python tools/probe_test.py <host[:port]> [timeout_s]")
        return
    target = parse_target(sys.argv[1])
    timeout = float(sys.argv[2]) if len(sys.argv) > 2 else 5.0
    p = McMonitorProber(Settings().validate().mc_monitor_executable)
    outcome = asyncio.run(p.probe(target, timeout))
    status, body = encode(target, outcome)
    print(json.dumps({"http_status": status, "body": to_json(body)}, indent=2))

if __name__ == "__main__":
    main()
