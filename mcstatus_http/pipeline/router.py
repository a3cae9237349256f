# mcstatus_http/pipeline/router.py
import asyncio
import logging

from mcstatus_http.pipeline.cache import ResultCache
from mcstatus_http.pipeline.encoder import Encoded, encode, encode_invalid
from mcstatus_http.schemas import Timeout
from mcstatus_http.target import DEFAULT_MC_PORT, InvalidTarget, parse_target

logger = logging.getLogger(__name__)


class StatusRouter:
    def __init__(self, cache: ResultCache, request_timeout: float,
                 default_port: int = DEFAULT_MC_PORT):
        self.cache = cache
        self.request_timeout = request_timeout
        self.default_port = default_port

    async def handle(self, raw_address) -> Encoded:
        try:
            target = parse_target(raw_address, self.default_port)
        except InvalidTarget as e:
            logger.debug("rejected address %r: %s", raw_address, e)
            return encode_invalid(str(e))

        logger.debug("status requested for %s", target)
        try:
            outcome = await asyncio.wait_for(
                self.cache.lookup_or_start(target), self.request_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("request for %s exceeded %.1fs", target, self.request_timeout)
            outcome = Timeout()
        return encode(target, outcome)
