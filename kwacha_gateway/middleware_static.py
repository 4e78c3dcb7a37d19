# kwacha_gateway/middleware_static.py
import logging
from pathlib import Path

from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

log = logging.getLogger("kwacha_gateway.static")


class StaticAssetsMiddleware(BaseHTTPMiddleware):
    """Serves files from the public directory verbatim; anything else falls through to the router."""

    def __init__(self, app, directory: str):
        super().__init__(app)
        self.directory = Path(directory)
        self.enabled = self.directory.is_dir()
        if not self.enabled:
            log.info("public dir %s not found, static assets disabled", self.directory)
        self.files = StaticFiles(directory=str(self.directory), check_dir=False)

    async def dispatch(self, request, call_next):
        if not self.enabled or request.method not in ("GET", "HEAD"):
            return await call_next(request)
        rel = request.url.path.lstrip("/")
        if not rel:
            return await call_next(request)
        try:
            return await self.files.get_response(rel, request.scope)
        except HTTPException:
            # 404 and 405 from StaticFiles just mean "not a public asset"
            return await call_next(request)
