"""Sync orchestrator: one provider batch, one integration at a time.

For each integration: resolve token -> fetch -> normalize -> atomically
replace the [today - lookback, today] window. A failing integration is
recorded and the batch moves on.
"""
import logging
import uuid
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

import aiohttp

from ..config import Settings
from ..metrics.normalizer import normalize_rows
from ..providers.base import ProviderAdapter, redact_text
from ..providers.exceptions import ConfigurationError, ProviderError
from ..providers.ga4 import GA4Adapter
from ..providers.google_ads import GoogleAdsAdapter
from ..providers.meta import MetaAdsAdapter
from ..schemas.metrics import (
    PROVIDER_GA4,
    PROVIDER_GOOGLE_ADS,
    PROVIDER_META,
    DateRange,
    Integration,
    LogComponent,
    LogLevel,
    OrganizationSettings,
    SyncResult,
    SyncStatus,
)
from .system_logger import SystemLogger
from .token_refresh import TokenRefreshService, utc_now


logger = logging.getLogger(__name__)


REASON_NO_DATA = "no_data"
REASON_MISSING_CREDENTIALS = "missing_credentials"


class SyncOrchestrator:
    """Runs provider batches against the data store."""

    def __init__(
        self,
        store,
        adapters: Mapping[str, ProviderAdapter],
        token_service: TokenRefreshService,
        system_logger: SystemLogger,
        clock: Callable[[], datetime] = utc_now,
        secrets: Sequence[Optional[str]] = (),
    ) -> None:
        """Initialize orchestrator.

        Args:
            store: DataStore for integrations and metrics
            adapters: Provider name -> adapter
            token_service: Resolves OAuth tokens for adapters that need it
            system_logger: Best-effort audit trail
            clock: Returns the current UTC time (window anchor)
            secrets: Values redacted from recorded error messages
        """
        self.store = store
        self.adapters = dict(adapters)
        self.token_service = token_service
        self.system_logger = system_logger
        self.clock = clock
        self._secrets = list(secrets)

    def _redact_error(self, text: str) -> str:
        return redact_text(text, self._secrets)

    def _get_adapter(self, provider: str, lookback_days: int) -> ProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise ConfigurationError(f"Unknown provider: {provider}")
        if lookback_days < 1:
            raise ConfigurationError(f"lookback_days must be >= 1, got {lookback_days}")
        return adapter

    async def _ensure_integration(
        self,
        settings: OrganizationSettings,
        provider: str,
        existing: Sequence[Integration],
    ) -> Optional[Integration]:
        """Return the integration for the configured account, creating it if needed.

        New integrations carry no stored token; Meta falls back to the
        system token and OAuth providers are skipped until connected.
        """
        account_id = settings.account_id_for(provider)
        if account_id is None:
            return None

        for integration in existing:
            if (
                integration.organization_id == settings.organization_id
                and integration.provider_account_id == account_id
            ):
                return integration

        integration = await self.store.save_integration(
            Integration(
                id=str(uuid.uuid4()),
                organization_id=settings.organization_id,
                provider=provider,
                provider_account_id=account_id,
            )
        )
        logger.info(
            "Registered %s integration for org=%s (integration=%s)",
            provider,
            settings.organization_id,
            integration.id,
        )
        return integration

    async def _register_configured_integrations(self, provider: str) -> None:
        existing = await self.store.list_integrations(provider)
        for settings in await self.store.list_organization_settings():
            await self._ensure_integration(settings, provider, existing)

    async def sync_organization(
        self, organization_id: str, provider: str, lookback_days: int
    ) -> SyncResult:
        """Sync one organization's configured account for a provider.

        The integration is created from the organization settings on the
        first run.

        Raises:
            ConfigurationError: unknown provider, invalid lookback, or no
                account configured for the organization
        """
        adapter = self._get_adapter(provider, lookback_days)

        settings = await self.store.get_organization_settings(organization_id)
        if settings is None or settings.account_id_for(provider) is None:
            raise ConfigurationError(
                f"No {provider} account configured for organization {organization_id}"
            )

        existing = await self.store.list_integrations(provider)
        integration = await self._ensure_integration(settings, provider, existing)
        window = DateRange.lookback(self.clock().date(), lookback_days)
        return await self._sync_integration(adapter, integration, window)

    async def sync_provider(self, provider: str, lookback_days: int) -> list[SyncResult]:
        """Sync every integration of a provider over the lookback window.

        Organizations whose settings name an account for the provider get
        an integration registered before the batch runs.

        Raises:
            ConfigurationError: unknown provider or invalid lookback
        """
        adapter = self._get_adapter(provider, lookback_days)

        await self._register_configured_integrations(provider)
        window = DateRange.lookback(self.clock().date(), lookback_days)
        integrations = await self.store.list_integrations(provider)

        logger.info(
            "Starting %s sync: %s integrations, window %s to %s",
            provider,
            len(integrations),
            window.start.isoformat(),
            window.end.isoformat(),
        )

        results: list[SyncResult] = []
        for integration in integrations:
            result = await self._sync_integration(adapter, integration, window)
            results.append(result)

        summary = {
            status.value: sum(1 for result in results if result.status == status)
            for status in SyncStatus
        }
        logger.info("%s sync completed: %s", provider, summary)
        await self.system_logger.log(
            None,
            LogComponent.SYSTEM,
            LogLevel.INFO,
            f"{provider} sync completed",
            {
                "lookbackDays": lookback_days,
                "windowStart": window.start.isoformat(),
                "results": summary,
            },
        )
        return results

    async def _resolve_access_token(
        self, adapter: ProviderAdapter, integration: Integration
    ) -> Optional[str]:
        if adapter.uses_oauth_refresh:
            return await self.token_service.get_valid_access_token(integration.id)
        return adapter.resolve_access_token(integration)

    async def _sync_integration(
        self,
        adapter: ProviderAdapter,
        integration: Integration,
        window: DateRange,
    ) -> SyncResult:
        org_id = integration.organization_id
        component = adapter.component

        try:
            logger.info(
                "Syncing %s for org=%s (integration=%s)",
                adapter.provider,
                org_id,
                integration.id,
            )

            access_token = await self._resolve_access_token(adapter, integration)
            if not access_token:
                logger.warning("Missing credentials for org=%s", org_id)
                await self.system_logger.log(
                    org_id, component, LogLevel.WARN, "Missing access token, skipping sync"
                )
                return SyncResult.skipped(integration, REASON_MISSING_CREDENTIALS)

            raw_rows = await adapter.fetch_metrics(integration, window, access_token)
            if not raw_rows:
                logger.info("No data for org=%s", org_id)
                await self.system_logger.log(
                    org_id, component, LogLevel.WARN, "API returned 0 records"
                )
                return SyncResult.skipped(integration, REASON_NO_DATA)

            metrics = normalize_rows(raw_rows)
            in_window = [metric for metric in metrics if window.contains(metric.date)]
            if len(in_window) != len(metrics):
                await self.system_logger.log(
                    org_id,
                    component,
                    LogLevel.WARN,
                    f"Dropped {len(metrics) - len(in_window)} rows outside the sync window",
                    {
                        "windowStart": window.start.isoformat(),
                        "windowEnd": window.end.isoformat(),
                    },
                )
            if not in_window:
                return SyncResult.skipped(integration, REASON_NO_DATA)

            count = await self.store.replace_metrics_window(
                integration, window.start, in_window
            )

            logger.info("Synced %s records for org=%s", count, org_id)
            await self.system_logger.log(
                org_id, component, LogLevel.INFO, f"Synced {count} records"
            )
            return SyncResult.success(integration, count)

        except Exception as exc:
            message = self._redact_error(str(exc)) or type(exc).__name__
            logger.error(
                "Failed to sync org=%s (integration=%s): %s",
                org_id,
                integration.id,
                message,
                exc_info=True,
            )
            details = {"error": exc}
            if isinstance(exc, ProviderError):
                details.update(exc.diagnostics())
            await self.system_logger.log(
                org_id, component, LogLevel.ERROR, f"Sync error: {message}", details
            )
            return SyncResult.failed(integration, message)


def build_orchestrator(
    settings: Settings,
    session: aiohttp.ClientSession,
    store,
    clock: Callable[[], datetime] = utc_now,
) -> SyncOrchestrator:
    """Wire adapters, token refresh and system logger from settings."""
    system_logger = SystemLogger(store)
    adapters = {
        PROVIDER_META: MetaAdsAdapter(
            session,
            store,
            system_logger,
            system_token=settings.meta_access_token,
            api_version=settings.meta_api_version,
            primary_action_type=settings.meta_primary_action_type,
        ),
        PROVIDER_GOOGLE_ADS: GoogleAdsAdapter(
            session,
            store,
            system_logger,
            developer_token=settings.google_ads_developer_token,
            login_customer_id=settings.google_ads_mcc_id,
            api_version=settings.google_ads_api_version,
        ),
        PROVIDER_GA4: GA4Adapter(
            session,
            store,
            system_logger,
            conversion_metric=settings.ga4_conversion_metric,
        ),
    }
    token_service = TokenRefreshService(
        store,
        session,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        clock=clock,
    )
    return SyncOrchestrator(
        store,
        adapters,
        token_service,
        system_logger,
        clock=clock,
        secrets=settings.secrets(),
    )
