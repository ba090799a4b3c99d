"""FastAPI routes for cron-triggered provider syncs."""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import Settings
from ..providers.base import redact_text
from ..schemas.metrics import PROVIDERS
from ..sync.lock import ProviderSyncLock
from ..sync.orchestrator import SyncOrchestrator, build_orchestrator
from .auth import require_cron_secret


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sync"])


class SyncResponse(BaseModel):
    """Batch outcome returned to the scheduler."""

    success: bool = Field(..., description="False only when the batch itself failed")
    results: list[dict[str, Any]] = Field(
        default_factory=list, description="One entry per integration"
    )
    timestamp: str = Field(..., description="UTC ISO-8601 completion time")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_settings(request: Request) -> Settings:
    """Settings loaded at startup."""
    return request.app.state.settings


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Build an orchestrator over the shared store and HTTP session."""
    state = request.app.state
    return build_orchestrator(state.settings, state.http_session, state.store)


def get_sync_lock(request: Request, provider: str) -> Optional[ProviderSyncLock]:
    """Per-provider batch lock; None when Redis is not configured."""
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return None
    return ProviderSyncLock(redis, provider)


@router.get(
    "/cron/sync/{provider}",
    response_model=SyncResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Run a provider sync batch",
    description=(
        "Sync every integration of the provider over the lookback window. "
        "Per-integration failures are reported in results; the batch still "
        "returns 200."
    ),
)
async def trigger_provider_sync(
    provider: str,
    lookback_days: Optional[int] = Query(
        None, ge=1, le=365, description="Days to re-sync (default from settings)"
    ),
    settings: Settings = Depends(get_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    sync_lock: Optional[ProviderSyncLock] = Depends(get_sync_lock),
):
    """Run one provider batch synchronously and report per-integration results."""
    if provider not in PROVIDERS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider}",
        )

    lookback = lookback_days or settings.lookback_days
    logger.info("Sync triggered: provider=%s, lookback_days=%s", provider, lookback)

    locked = False
    try:
        if sync_lock is not None:
            locked = await sync_lock.acquire()
            if not locked:
                return JSONResponse(
                    status_code=status.HTTP_409_CONFLICT,
                    content={
                        "success": False,
                        "error": f"{provider} sync already running",
                        "timestamp": _timestamp(),
                    },
                )

        results = await orchestrator.sync_provider(provider, lookback)

    except Exception as exc:
        error = redact_text(str(exc), settings.secrets()) or type(exc).__name__
        logger.error("%s sync batch failed: %s", provider, error, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": error, "timestamp": _timestamp()},
        )

    finally:
        if locked:
            await sync_lock.release()

    return SyncResponse(
        success=True,
        results=[result.to_response() for result in results],
        timestamp=_timestamp(),
    )
