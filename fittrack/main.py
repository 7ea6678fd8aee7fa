from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from fittrack.api.routes.health import router as health_router
from fittrack.api.routes.internal_streaks import router as internal_streaks_router
from fittrack.api.routes.streaks import router as streaks_router
from fittrack.core.config import get_settings
from fittrack.core.logging import configure_logging
from fittrack.db.session import dispose_engine

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("api_started", app_env=settings.app_env, app_timezone=settings.app_timezone)
    try:
        yield
    finally:
        await dispose_engine()
        logger.info("api_stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="FitTrack Continuity API",
        version="0.1.0",
        docs_url="/docs" if settings.app_env != "prod" else None,
        redoc_url=None,
        lifespan=_lifespan,
    )
    for router in (health_router, streaks_router, internal_streaks_router):
        app.include_router(router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "fittrack.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
