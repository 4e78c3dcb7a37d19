# kwacha_gateway/middleware_security.py
from starlette.middleware.base import BaseHTTPMiddleware

# Permitted content sources per category
CSP_DIRECTIVES = {
    "default-src": ["'self'"],
    "style-src": ["'self'", "'unsafe-inline'", "https://fonts.googleapis.com"],
    "font-src": ["'self'", "https://fonts.gstatic.com"],
    "img-src": ["'self'", "data:", "https:"],
    "script-src": ["'self'"],
    "connect-src": ["'self'"],
}


def build_csp(directives=None) -> str:
    directives = CSP_DIRECTIVES if directives is None else directives
    return "; ".join(f"{name} {' '.join(sources)}" for name, sources in directives.items())


HARDENING_HEADERS = {
    "Content-Security-Policy": build_csp(),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecureHeaders(BaseHTTPMiddleware):
    """Outermost stage: annotates every response, including rejections from later stages."""

    def __init__(self, app, headers: dict | None = None):
        super().__init__(app)
        self.headers = dict(HARDENING_HEADERS if headers is None else headers)

    async def dispatch(self, request, call_next):
        resp = await call_next(request)
        for name, value in self.headers.items():
            resp.headers.setdefault(name, value)
        return resp
