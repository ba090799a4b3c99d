"""HTTP trigger layer for the scheduler."""
from .auth import require_cron_secret
from .routes import get_orchestrator, router

__all__ = ["get_orchestrator", "require_cron_secret", "router"]
