"""Best-effort structured audit trail written to the system_logs table.

log() never raises: write failures go to the Python logging channel.
"""
import json
import logging
import traceback
from typing import Any, Optional

from ..schemas.metrics import LogComponent, LogLevel, SystemLogEntry


logger = logging.getLogger(__name__)


SERIALIZATION_FAILED = {"error": "Circular structure or serialization failure"}


def serialize_error(exc: BaseException) -> dict:
    """Flatten an exception to {message, name, stack}."""
    stack = "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__)
    )
    return {
        "message": str(exc),
        "name": type(exc).__name__,
        "stack": stack,
    }


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseException):
        return serialize_error(value)
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def serialize_details(details: Any) -> Any:
    """Make details JSON-safe; embedded errors are flattened, not dropped."""
    if details is None:
        return None

    if isinstance(details, BaseException):
        safe = serialize_error(details)
        if details.__cause__ is not None:
            safe["cause"] = str(details.__cause__)
        return safe

    try:
        return json.loads(json.dumps(details, default=_json_default))
    except (TypeError, ValueError, RecursionError):
        return dict(SERIALIZATION_FAILED)


class SystemLogger:
    """Capability object with a single non-throwing log method."""

    def __init__(self, store) -> None:
        """Initialize system logger.

        Args:
            store: DataStore receiving SystemLogEntry rows
        """
        self.store = store

    async def log(
        self,
        organization_id: Optional[str],
        component: LogComponent | str,
        level: LogLevel | str,
        message: str,
        details: Any = None,
    ) -> None:
        try:
            entry = SystemLogEntry(
                organization_id=organization_id,
                component=LogComponent(component),
                level=LogLevel(level),
                message=message,
                details=serialize_details(details),
            )
            await self.store.insert_system_log(entry)
        except Exception as exc:
            logger.error("Failed to write system log: %s", exc)
            logger.error("Original log: [%s] %s %s", level, message, details)
