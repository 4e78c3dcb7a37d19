# kwacha_gateway/middleware_logging.py
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("kwacha_gateway.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One line per request that got past the rejection gates.

    Records go through the queue handler set up by configure_logging(), so
    emitting here never waits on the output stream.
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        client = request.client.host if request.client else "-"
        target = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        resp = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            '%s "%s %s" %d %s %.1fms ua="%s"',
            client, request.method, target, resp.status_code,
            resp.headers.get("content-length", "-"), elapsed_ms,
            request.headers.get("user-agent", "-"),
        )
        return resp
