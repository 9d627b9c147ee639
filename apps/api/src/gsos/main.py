"""
GSOS API entry point.

Builds the FastAPI app for the admissions and student records service.
Startup connects the database and, when reachable, the Redis instance
used for request rate limits. Outside production a failed connection is
logged and the process keeps serving so local development works
without the full stack.
"""

import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gsos.api import api_router
from gsos.core.config import settings
from gsos.core.database import close_db, init_db
from gsos.core.logging_config import configure_logging
from gsos.core.redis import close_redis, init_redis, is_redis_available

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


async def _connect(name: str, connect: Callable[[], Awaitable[object]]) -> bool:
    try:
        await connect()
    except Exception as e:
        if settings.is_production:
            logger.critical(f"{name} unavailable, refusing to start: {e}")
            raise
        logger.warning(f"{name} unavailable, continuing without it: {e}")
        return False
    logger.info(f"{name} connected")
    return True


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(f"Starting GSOS API ({settings.python_env})")
    await _connect("Database", init_db)
    if not await _connect("Redis", init_redis):
        logger.warning("Rate limits are per process until Redis is reachable")

    yield

    await close_redis()
    await close_db()
    logger.info("GSOS API stopped")


def create_app() -> FastAPI:
    application = FastAPI(
        title="GSOS API",
        description="Admission applications, guardian tracking and student enrollment",
        version="0.1.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness probe, reporting where rate-limit windows are kept."""
    return {
        "status": "ready",
        "environment": settings.python_env,
        "rate_limit_backend": "redis" if is_redis_available() else "memory",
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    return {"service": "GSOS API", "status": "running"}
