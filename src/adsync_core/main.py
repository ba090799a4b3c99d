"""Ad-metrics sync FastAPI application entry point."""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import aiohttp
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from .api.routes import router as api_router
from .config import Settings
from .providers.base import redact_text
from .storage import DataStore, SQLiteDataStore


# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open shared resources for the process and close them on shutdown."""
    settings: Settings = app.state.settings
    logging.getLogger().setLevel(settings.log_level)
    if app.state.store is None:
        app.state.store = SQLiteDataStore(settings.db_path)

    timeout = aiohttp.ClientTimeout(total=300, connect=30)
    app.state.http_session = aiohttp.ClientSession(timeout=timeout)
    app.state.redis = (
        Redis.from_url(settings.redis_url, decode_responses=False)
        if settings.redis_url
        else None
    )
    logger.info(
        "Started: db=%s, batch_lock=%s",
        settings.db_path,
        "redis" if app.state.redis is not None else "disabled",
    )

    try:
        yield
    finally:
        await app.state.http_session.close()
        if app.state.redis is not None:
            await app.state.redis.aclose()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DataStore] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Ad Metrics Sync",
        version="0.1.0",
        description="Scheduled sync of Meta, Google Ads and GA4 daily metrics",
        lifespan=lifespan,
    )
    app.state.settings = settings or Settings.from_env()
    app.state.store = store

    app.include_router(api_router)

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(request: Request, exc: RuntimeError) -> JSONResponse:
        # Deployment faults (e.g. CRON_SECRET unset) keep the sync response shape.
        error = redact_text(str(exc), app.state.settings.secrets()) or type(exc).__name__
        logger.error("Request to %s failed: %s", request.url.path, error)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": error,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    @app.get("/health", tags=["health"], summary="Liveness check")
    async def health() -> dict:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()
