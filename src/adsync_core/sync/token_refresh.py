"""OAuth access token refresh for Google Ads and GA4 integrations.

A token is treated as expired once it is within EXPIRY_BUFFER of its
recorded expiry. Refreshed tokens are persisted before being returned.
"""
import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import aiohttp

from ..providers.base import redact_text
from ..providers.exceptions import AuthError, ConfigurationError, ProviderError
from ..schemas.metrics import Integration


logger = logging.getLogger(__name__)


GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
EXPIRY_BUFFER = timedelta(minutes=5)
DEFAULT_EXPIRES_IN = 3600


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(
    expires_at: Optional[datetime],
    now: datetime,
    buffer: timedelta = EXPIRY_BUFFER,
) -> bool:
    """True when the token expires within buffer of now; no expiry -> False."""
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at - now < buffer


class TokenRefreshService:
    """Resolves valid access tokens, refreshing them through Google OAuth."""

    def __init__(
        self,
        store,
        session: aiohttp.ClientSession,
        client_id: Optional[str],
        client_secret: Optional[str],
        token_url: str = GOOGLE_TOKEN_URL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize token refresh service.

        Args:
            store: DataStore holding integration credentials
            session: aiohttp session for the token endpoint
            client_id: OAuth client ID
            client_secret: OAuth client secret (never logged)
            token_url: OAuth token endpoint
            clock: Returns the current UTC time
        """
        self.store = store
        self.session = session
        self._client_id = client_id
        self._client_secret = client_secret
        self.token_url = token_url
        self.clock = clock

    async def get_valid_access_token(self, integration_id: str) -> str:
        """Return a usable access token for the integration.

        Raises:
            AuthError: token expired and no refresh token, or refresh rejected
            ConfigurationError: integration missing or OAuth client not set
            ProviderError: token endpoint failure
        """
        integration = await self.store.get_integration(integration_id)
        if integration is None:
            raise ConfigurationError(f"Integration not found: {integration_id}")

        now = self.clock()
        if integration.access_token and not is_expired(integration.expires_at, now):
            return integration.access_token

        if not integration.refresh_token:
            raise AuthError(
                integration.provider,
                "Token expired and no refresh token available. Please re-authenticate.",
            )

        logger.info(
            "Refreshing expired token for %s integration=%s",
            integration.provider,
            integration.id,
        )

        access_token, expires_at = await self._refresh(integration, now)

        await self.store.update_integration_tokens(
            integration.id, access_token, expires_at
        )

        logger.info(
            "Token refreshed for integration=%s, new expiry %s",
            integration.id,
            expires_at.isoformat(),
        )
        return access_token

    async def _refresh(
        self, integration: Integration, now: datetime
    ) -> tuple[str, datetime]:
        if not self._client_id or not self._client_secret:
            raise ConfigurationError(
                "GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set to refresh tokens"
            )

        form = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "refresh_token": integration.refresh_token,
            "grant_type": "refresh_token",
        }
        secrets = [self._client_secret, integration.refresh_token]

        try:
            async with self.session.post(self.token_url, data=form) as response:
                status = response.status
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderError(
                integration.provider,
                f"Token refresh failed: {redact_text(str(exc), secrets)}",
                error_type="network",
            ) from exc

        if status in (400, 401):
            raise AuthError(
                integration.provider,
                "Token refresh rejected: "
                f"{redact_text(body[:200], secrets)}. Please re-authenticate.",
                status=status,
            )
        if status != 200:
            raise ProviderError(
                integration.provider,
                f"Token refresh failed ({status}): {redact_text(body[:200], secrets)}",
                status=status,
            )

        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise ProviderError(
                integration.provider,
                "Token refresh response is missing access_token",
                status=status,
                error_type="malformed",
            )

        try:
            expires_in = int(payload.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        return payload["access_token"], now + timedelta(seconds=expires_in)
