# mcstatus_http/server.py
# Usage:
#   MC_MONITOR_EXECUTABLE=/usr/local/bin/mc-monitor mcstatus-http
#   mcstatus-http --port 8080 --probe-timeout 3 --log-level debug
import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from uvicorn.config import LOG_LEVELS
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from mcstatus_http.config import ConfigError, Settings
from mcstatus_http.pipeline.cache import ResultCache
from mcstatus_http.pipeline.encoder import encode_invalid, to_json
from mcstatus_http.pipeline.gate import AdmissionGate
from mcstatus_http.pipeline.router import StatusRouter
from mcstatus_http.prober.base import Prober
from mcstatus_http.prober.mc_monitor import McMonitorProber
from mcstatus_http.schemas import Health

logger = logging.getLogger(__name__)


def create_app(settings: Settings, prober: Optional[Prober] = None) -> FastAPI:
    """
    Wire prober -> gate -> cache -> router behind FastAPI. Without an explicit
    prober the mc-monitor executable from settings is used (and validated).
    """
    if prober is None:
        prober = McMonitorProber(settings.mc_monitor_executable)

    cache = ResultCache(
        prober,
        AdmissionGate(settings.max_probes, settings.admission_wait),
        probe_timeout=settings.probe_timeout,
        freshness=settings.freshness,
        max_entries=settings.max_entries,
    )
    router = StatusRouter(cache, settings.request_timeout, settings.default_port)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info(
            "mcstatus-http ready: probe_timeout=%.1fs freshness=%.1fs max_probes=%d",
            settings.probe_timeout, settings.freshness, settings.max_probes,
        )
        yield
        logger.info("shutting down, dropping %d cached targets", len(cache))
        await cache.close()

    app = FastAPI(title="mcstatus-http", lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = cache
    app.state.router = router

    @app.get("/healthz")
    async def healthz():
        return Health(
            entries=len(cache),
            in_flight=cache.in_flight,
            hits=cache.hits,
            misses=cache.misses,
            coalesced=cache.coalesced,
            invocations=cache.invocations,
            probes_running=cache.gate.in_use,
        )

    @app.get("/status")
    async def status_by_query(address: Optional[str] = None):
        if address is None:
            code, body = encode_invalid("missing 'address' query parameter")
        else:
            code, body = await router.handle(address)
        return JSONResponse(status_code=code, content=to_json(body))

    @app.get("/{address}")
    async def status_by_path(address: str):
        code, body = await router.handle(address)
        return JSONResponse(status_code=code, content=to_json(body))

    return app


def build_argparser():
    ap = argparse.ArgumentParser(description="HTTP status service for Minecraft servers")
    ap.add_argument("--host", help="Interface to bind (default 0.0.0.0)")
    ap.add_argument("--port", type=int, help="Port to listen on (default 3789)")
    ap.add_argument("--mc-monitor", dest="mc_monitor_executable",
                    help="Path to the mc-monitor executable (default $MC_MONITOR_EXECUTABLE)")
    ap.add_argument("--probe-timeout", type=float, help="Seconds before a probe is killed")
    ap.add_argument("--freshness", type=float, help="Seconds a result is served from cache")
    ap.add_argument("--max-probes", type=int, help="Concurrent mc-monitor processes allowed")
    ap.add_argument("--log-level", help="critical, error, warning, info, debug or trace")
    return ap


def load_settings(argv=None) -> Settings:
    args = build_argparser().parse_args(argv)
    settings = Settings.from_env()
    for name, value in vars(args).items():
        if value is not None:
            setattr(settings, name, value)
    if args.probe_timeout is not None and "MCSTATUS_HTTP_REQUEST_TIMEOUT" not in os.environ:
        settings.request_timeout = settings.derived_request_timeout()
    return settings.validate()


def main(argv=None) -> int:
    try:
        settings = load_settings(argv)
        logging.basicConfig(
            level=LOG_LEVELS[settings.log_level.lower()],
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        app = create_app(settings)
    except (ConfigError, ValueError) as e:
        print(f"mcstatus-http: {e}", file=sys.stderr)
        return 2

    logger.info("listening on %s:%d, mc-monitor at %s",
                settings.host, settings.port, app.state.cache.prober.executable)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        limit_concurrency=settings.max_connections,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
