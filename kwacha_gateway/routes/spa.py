# routes/spa.py
import logging
import os

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from ..errors import error_response

router = APIRouter()
log = logging.getLogger("kwacha_gateway.spa")

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]


@router.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
async def spa_fallback(full_path: str, request: Request):
    """Last entry of the route table: the single-page app owns every other GET."""
    if request.method not in ("GET", "HEAD"):
        return error_response("NOT_FOUND", f"Cannot {request.method} /{full_path}", 404)
    entry = request.app.state.settings.spa_entry
    if not os.path.isfile(entry):
        log.warning("SPA entry document missing: %s", entry)
        return error_response("NOT_FOUND", "Not found", 404)
    return FileResponse(entry, media_type="text/html")
