"""Sync orchestration, token refresh and the system audit logger."""
from .lock import ProviderSyncLock
from .orchestrator import SyncOrchestrator, build_orchestrator
from .system_logger import SystemLogger
from .token_refresh import TokenRefreshService

__all__ = [
    "ProviderSyncLock",
    "SyncOrchestrator",
    "SystemLogger",
    "TokenRefreshService",
    "build_orchestrator",
]
