import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

from .collaborators import Collaborators
from .config import Settings, settings as default_settings
from .database import Database
from .errors import ErrorBoundaryMiddleware, install_exception_handlers
from .lifecycle import LifecycleManager
from .middleware_cors import OriginPolicy, install_origin_policy
from .middleware_logging import AccessLogMiddleware
from .middleware_payload import BodyLimitMiddleware
from .middleware_ratelimit import FixedWindowLimiter, RateLimitMiddleware, WindowStore
from .middleware_security import SecureHeaders
from .middleware_static import StaticAssetsMiddleware
from .routes.health import HealthReporter
from .routing import mount_routes, route_table

logger = logging.getLogger("kwacha_gateway")


def create_app(
    settings: Optional[Settings] = None,
    collaborators: Optional[Collaborators] = None,
    database=None,
    rate_limit_store: Optional[WindowStore] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    settings = settings or default_settings
    collaborators = collaborators or Collaborators()
    database = database if database is not None else Database(settings.DATABASE_URL)
    lifecycle = LifecycleManager(database, grace_s=settings.SHUTDOWN_GRACE_S)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await database.connect()
        yield
        await lifecycle.release()

    app = FastAPI(
        title="KwachaNow Gateway",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.lifecycle = lifecycle
    app.state.health = HealthReporter(database, settings.NODE_ENV, settings.HEALTH_DB_TIMEOUT_S)
    app.state.limiter = FixedWindowLimiter(
        settings.RATE_LIMIT_MAX_REQUESTS,
        settings.rate_limit_window_s,
        store=rate_limit_store,
        clock=clock,
    )
    app.state.origin_policy = OriginPolicy(settings.allowed_origins())

    # Starlette wraps in reverse: register innermost first. Request order is
    # SecureHeaders -> RateLimit -> OriginGuard -> CORS -> BodyLimit -> GZip
    # -> AccessLog -> Static -> ErrorBoundary -> routes.
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(StaticAssetsMiddleware, directory=settings.PUBLIC_DIR)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=settings.COMPRESSION_MIN_BYTES)
    app.add_middleware(BodyLimitMiddleware, limit_bytes=settings.BODY_LIMIT_BYTES)
    install_origin_policy(app, app.state.origin_policy)
    app.add_middleware(RateLimitMiddleware, limiter=app.state.limiter)
    app.add_middleware(SecureHeaders)

    install_exception_handlers(app)
    mount_routes(app, route_table(collaborators), collaborators)
    return app


def log_banner(settings: Settings) -> None:
    base = f"http://{settings.HOST}:{settings.PORT}"
    logger.info("KwachaNow server running on %s", base)
    logger.info("Environment: %s", settings.NODE_ENV)
    logger.info("API Docs: %s/api/docs", base)
    logger.info("Health Check: %s/health", base)


_default_app: Optional[FastAPI] = None


def __getattr__(name):
    # ``kwacha_gateway.app:app`` for ASGI servers and tests, built on first access.
    # Served this way the lifecycle never reaches Accepting; ``python -m
    # kwacha_gateway`` runs GatewayServer, which owns signals and the lifecycle.
    global _default_app
    if name == "app":
        if _default_app is None:
            _default_app = create_app()
        return _default_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
