"""Common plumbing for provider adapters.

Every adapter translates one provider's wire format into typed raw row
variants. Wire dictionaries never leave the adapter module.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import aiohttp

from ..schemas.metrics import (
    DateRange,
    Integration,
    LogComponent,
    LogLevel,
    OrganizationSettings,
)
from .exceptions import ConfigurationError, ProviderError


logger = logging.getLogger(__name__)


REDACTED = "[REDACTED]"
ERROR_BODY_LIMIT = 500


def redact_text(text: str, secrets: Sequence[Optional[str]]) -> str:
    if not text:
        return text
    redacted = text
    for secret in secrets:
        if secret:
            redacted = redacted.replace(secret, REDACTED)
    return redacted


class ProviderAdapter(ABC):
    """Base class for Meta, Google Ads and GA4 adapters."""

    provider: str = ""
    component: LogComponent = LogComponent.SYSTEM
    uses_oauth_refresh: bool = False

    def __init__(
        self,
        session: aiohttp.ClientSession,
        store,
        system_logger,
    ) -> None:
        """Initialize adapter.

        Args:
            session: Shared aiohttp session for requests
            store: DataStore used to look up organization settings
            system_logger: SystemLogger for request/response audit entries
        """
        self.session = session
        self.store = store
        self.system_logger = system_logger

    @abstractmethod
    async def fetch_metrics(
        self,
        integration: Integration,
        date_range: DateRange,
        access_token: str,
    ) -> list:
        """Fetch daily raw rows for the integration within date_range.

        Returns an empty list when the provider has no data.

        Raises:
            ConfigurationError: account id or required credential missing
            ProviderError: non-2xx or malformed provider response
        """

    def resolve_access_token(self, integration: Integration) -> Optional[str]:
        """Token for providers that don't go through the OAuth refresh."""
        return integration.access_token

    async def resolve_settings(self, integration: Integration) -> OrganizationSettings:
        settings = await self.store.get_organization_settings(integration.organization_id)
        if settings is None:
            raise ConfigurationError(
                f"No provider settings for organization {integration.organization_id}"
            )
        return settings

    def parse_error(self, status: int, body: str) -> ProviderError:
        """Build a ProviderError from a non-2xx response body.

        Google APIs and the Graph API share the {"error": {...}} envelope;
        adapters override this for richer diagnostics.
        """
        message = body[:ERROR_BODY_LIMIT]
        code = None
        error_type = None
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            error = payload["error"]
            message = error.get("message") or message
            code = error.get("code")
            error_type = error.get("type") or error.get("status")

        return ProviderError(
            self.provider,
            f"{self.provider} API error ({status}): {message}",
            status=status,
            code=code,
            error_type=error_type,
        )

    async def request_json(
        self,
        method: str,
        url: str,
        secrets: Sequence[Optional[str]] = (),
        **kwargs: Any,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            ProviderError: network failure, non-2xx status or non-JSON body
        """
        send = self.session.post if method == "POST" else self.session.get

        try:
            async with send(url, **kwargs) as response:
                body = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderError(
                self.provider,
                f"{self.provider} network error: {redact_text(str(exc), secrets)}",
                error_type="network",
            ) from exc

        if not 200 <= status < 300:
            logger.error(
                "%s API error (%s): %s",
                self.provider,
                status,
                redact_text(body[:ERROR_BODY_LIMIT], secrets),
            )
            raise self.parse_error(status, redact_text(body, secrets))

        try:
            return json.loads(body)
        except ValueError as exc:
            raise ProviderError(
                self.provider,
                f"{self.provider} returned a non-JSON body (status {status})",
                status=status,
                error_type="malformed",
            ) from exc

    async def log_request(
        self, integration: Integration, message: str, params: dict
    ) -> None:
        await self.system_logger.log(
            integration.organization_id,
            self.component,
            LogLevel.INFO,
            message,
            params,
        )

    async def log_response(self, integration: Integration, rows: list) -> None:
        await self.system_logger.log(
            integration.organization_id,
            self.component,
            LogLevel.INFO,
            f"API returned {len(rows)} raw records",
            {
                "rawCount": len(rows),
                "firstRecord": rows[0].model_dump(mode="json") if rows else None,
                "lastRecord": rows[-1].model_dump(mode="json") if rows else None,
            },
        )
