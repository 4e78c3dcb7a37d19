# kwacha_gateway/middleware_cors.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .config import CORS_HEADERS, CORS_METHODS
from .errors import OriginRejected

log = logging.getLogger("kwacha_gateway.cors")

ORIGIN_REJECTED_MESSAGE = "Not allowed by CORS"


@dataclass(frozen=True)
class OriginPolicy:
    allowed_origins: FrozenSet[str]
    allow_credentials: bool = True
    allow_methods: List[str] = field(default_factory=lambda: list(CORS_METHODS))
    allow_headers: List[str] = field(default_factory=lambda: list(CORS_HEADERS))

    def admits(self, origin: Optional[str]) -> bool:
        # non-browser clients (curl, mobile apps, server-to-server) send no Origin
        if not origin:
            return True
        return origin in self.allowed_origins


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Rejects a disallowed Origin with 403 before anything downstream runs."""

    def __init__(self, app, policy: OriginPolicy):
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        if not self.policy.admits(origin):
            log.warning("origin rejected origin=%s method=%s path=%s",
                        origin, request.method, request.url.path)
            # the allowed list is never echoed back
            return OriginRejected(ORIGIN_REJECTED_MESSAGE).to_response()
        return await call_next(request)


def install_origin_policy(app, policy: OriginPolicy) -> None:
    """Add the origin stage: the guard outside, Starlette's CORS negotiation inside it.

    Must be called in the innermost-first order used by create_app().
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(policy.allowed_origins),
        allow_credentials=policy.allow_credentials,
        allow_methods=policy.allow_methods,
        allow_headers=policy.allow_headers,
    )
    app.add_middleware(OriginGuardMiddleware, policy=policy)
