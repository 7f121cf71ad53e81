"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Error handlers, middleware, CORS, and routers all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from trellone import __version__
from trellone.api import api_router
from trellone.config import settings
from trellone.errors import register_error_handlers

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs
    at shutdown.
    """
    logger.info(
        "trellone.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from trellone.realtime.pubsub import close_redis, init_redis
    try:
        await init_redis()
        logger.info("trellone.redis_connected", url=settings.redis_url)
    except (RedisError, OSError) as e:
        logger.warning("trellone.redis_unavailable", error=str(e))
        await close_redis()
        # Redis is optional — boards work without real-time fan-out

    from trellone.db.engine import async_session_factory
    from trellone.services.refresh_tokens import RefreshTokenStore
    try:
        async with async_session_factory() as db:
            purged = await RefreshTokenStore(db).purge_expired()
        logger.info("trellone.refresh_tokens_purged", count=purged)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("trellone.database_unavailable", error=str(e))

    yield

    logger.info("trellone.shutdown")
    await close_redis()

    from trellone.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Trellone",
        description="Kanban board collaboration backend",
        version=__version__,
        lifespan=lifespan,
    )

    register_error_handlers(app)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from trellone.middleware.rate_limit import RateLimitMiddleware
    from trellone.middleware.request_id import RequestIdMiddleware
    from trellone.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from trellone.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: trellone.main:app)
app = create_app()
