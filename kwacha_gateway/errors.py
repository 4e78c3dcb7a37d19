# -*- coding: utf-8 -*-
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import uuid
import logging

log = logging.getLogger("kwacha_gateway.errors")


class GatewayError(Exception):
    """Error produced by the gateway itself, rendered with error_response()."""

    status = 500
    code = "SERVER_ERROR"
    retryable = False

    def __init__(self, message: str, status: int | None = None, code: str | None = None,
                 details: dict | None = None, headers: dict | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code
        self.details = details or {}
        self.headers = headers or {}

    def to_response(self) -> JSONResponse:
        return error_response(self.code, self.message, self.status, self.details,
                              retryable=self.retryable, headers=self.headers)


class PolicyRejection(GatewayError):
    status = 403
    code = "POLICY_REJECTED"


class RateLimitExceeded(PolicyRejection):
    status = 429
    code = "RATE_LIMITED"
    retryable = True


class OriginRejected(PolicyRejection):
    status = 403
    code = "CORS_REJECTED"


class PayloadError(GatewayError):
    status = 400
    code = "MALFORMED_BODY"


class PayloadTooLarge(PayloadError):
    status = 413
    code = "PAYLOAD_TOO_LARGE"


def error_response(code: str, message: str, status: int, details: dict | None = None,
                   retryable: bool = False, headers: dict | None = None):
    return JSONResponse(
        status_code=status,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
                "request_id": f"req_{uuid.uuid4().hex[:12]}",
                "retryable": retryable
            }
        },
        headers=headers,
    )


async def unhandled_exception_response(request: Request, exc):
    # Generic fallback: never echo exception text or traceback to the client
    log.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return error_response("SERVER_ERROR", "Unexpected server error", 500)


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Terminal stage in front of the router.

    Converts anything a route collaborator raises into the generic 500 envelope
    while still inside the middleware chain, so outer stages keep annotating the
    response (security and rate-limit headers, access log).
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except GatewayError as exc:
            return exc.to_response()
        except Exception as exc:
            return await unhandled_exception_response(request, exc)


def install_exception_handlers(app):
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_handler(request: Request, exc: StarletteHTTPException):
        code = "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR"
        return error_response(code, exc.detail or "HTTP error", exc.status_code,
                              headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError):
        return error_response("VALIDATION_ERROR", "Invalid request", 422,
                              {"errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(GatewayError)
    async def _gateway_handler(request: Request, exc: GatewayError):
        return exc.to_response()

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        return await unhandled_exception_response(request, exc)
