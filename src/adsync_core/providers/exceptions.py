"""Custom exceptions for the metrics sync pipeline."""
from typing import Optional


class SyncPipelineError(Exception):
    """Base exception for all sync pipeline errors."""


class ConfigurationError(SyncPipelineError):
    """Raised when a required credential or setting is missing."""


class ProviderError(SyncPipelineError):
    """Raised for provider API errors (non-2xx, malformed payloads)."""

    def __init__(
        self,
        provider: str,
        message: str,
        status: Optional[int] = None,
        code: Optional[object] = None,
        error_type: Optional[str] = None,
    ):
        self.provider = provider
        self.status = status
        self.code = code
        self.error_type = error_type
        super().__init__(message)

    def diagnostics(self) -> dict:
        """Diagnostic fields for the system log."""
        return {
            "provider": self.provider,
            "status": self.status,
            "code": self.code,
            "type": self.error_type,
        }


class AuthError(ProviderError):
    """Raised when a token is expired and cannot be refreshed.

    Signals that a human has to re-authenticate the integration.
    """

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(provider, message, status=status, error_type="auth")


class StorageError(SyncPipelineError):
    """Raised when the metrics window replacement fails."""

    def __init__(self, integration_id: str, message: str):
        self.integration_id = integration_id
        super().__init__(f"Storage failure for integration={integration_id}: {message}")
