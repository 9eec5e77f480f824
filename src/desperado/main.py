"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from desperado.background import close_detached, init_detached
from desperado.comments.router import router as comments_router
from desperado.config import get_settings
from desperado.database import close_db, get_session, init_db
from desperado.gamification.router import router as gamification_router
from desperado.gamification.seed import seed_gamification
from desperado.health.router import router as health_router
from desperado.middleware import setup_middleware
from desperado.notifications.router import router as notifications_router
from desperado.onboarding.router import router as onboarding_router
from desperado.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
    await init_redis(settings.redis_url, settings.redis_max_connections)
    init_detached()

    if settings.seed_on_startup:
        try:
            async for db in get_session():
                await seed_gamification(db)
                break
        except Exception:
            logger.warning("Config seeding failed (tables may not exist yet)", exc_info=True)

    yield

    # Let in-flight webhook deliveries finish before the pools go away
    await close_detached(settings.detached_drain_timeout_seconds)
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Desperado Club API",
        description="Gamification and notification engine for the Desperado Club household app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(notifications_router)
    app.include_router(comments_router)
    app.include_router(onboarding_router)

    return app


app = create_app()
