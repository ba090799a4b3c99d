"""Google Ads API adapter (REST searchStream, GAQL).

Campaign-level metrics segmented by date. cost_micros is kept raw here and
converted by the normalizer.
"""
import json
import logging
import re
from typing import Optional

import aiohttp
from pydantic import ValidationError

from ..schemas.metrics import PROVIDER_GOOGLE_ADS, DateRange, Integration, LogComponent
from ..schemas.provider_rows import GoogleAdsRawRow
from .base import ERROR_BODY_LIMIT, ProviderAdapter
from .exceptions import ConfigurationError, ProviderError


logger = logging.getLogger(__name__)


GOOGLE_ADS_URL = "https://googleads.googleapis.com"

GAQL_CAMPAIGN_DAILY = """
SELECT
  campaign.id,
  campaign.name,
  segments.date,
  metrics.cost_micros,
  metrics.impressions,
  metrics.clicks,
  metrics.conversions,
  metrics.all_conversions_value
FROM campaign
WHERE segments.date BETWEEN '{start}' AND '{end}'
"""


def clean_customer_id(customer_id: str) -> str:
    """Strip dashes and dots (000-000-0000 -> 0000000000)."""
    return re.sub(r"[-.\s]", "", customer_id)


class GoogleAdsAdapter(ProviderAdapter):
    """Async adapter for Google Ads campaign metrics."""

    provider = PROVIDER_GOOGLE_ADS
    component = LogComponent.GOOGLE_ADS
    uses_oauth_refresh = True

    def __init__(
        self,
        session: aiohttp.ClientSession,
        store,
        system_logger,
        developer_token: Optional[str],
        login_customer_id: Optional[str] = None,
        api_version: str = "v17",
    ) -> None:
        """Initialize Google Ads adapter.

        Args:
            session: aiohttp session for requests
            store: DataStore for organization settings
            system_logger: SystemLogger for audit entries
            developer_token: Google Ads developer token (never logged)
            login_customer_id: MCC ID for agency accounts
            api_version: Google Ads API version (e.g., v17)
        """
        super().__init__(session, store, system_logger)
        self._developer_token = developer_token
        self.login_customer_id = (
            clean_customer_id(login_customer_id) if login_customer_id else None
        )
        self.api_version = api_version

    async def fetch_metrics(
        self,
        integration: Integration,
        date_range: DateRange,
        access_token: str,
    ) -> list[GoogleAdsRawRow]:
        if not self._developer_token:
            raise ConfigurationError("GOOGLE_ADS_DEVELOPER_TOKEN is not configured")

        settings = await self.resolve_settings(integration)
        if not settings.google_ads_customer_id:
            raise ConfigurationError(
                "Google Ads customer ID is not configured for organization "
                f"{integration.organization_id}"
            )

        customer_id = clean_customer_id(settings.google_ads_customer_id)
        url = (
            f"{GOOGLE_ADS_URL}/{self.api_version}/customers/{customer_id}"
            "/googleAds:searchStream"
        )
        query = GAQL_CAMPAIGN_DAILY.format(
            start=date_range.start.isoformat(),
            end=date_range.end.isoformat(),
        ).strip()

        headers = {
            "Authorization": f"Bearer {access_token}",
            "developer-token": self._developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id

        await self.log_request(
            integration,
            "Request params",
            {
                "customerId": customer_id,
                "loginCustomerId": self.login_customer_id,
                "dateRange": {
                    "since": date_range.start.isoformat(),
                    "until": date_range.end.isoformat(),
                },
                "query": query,
            },
        )

        payload = await self.request_json(
            "POST",
            url,
            [access_token, self._developer_token],
            json={"query": query},
            headers=headers,
        )

        rows = [self._parse_result(result) for result in self._iter_results(payload)]

        logger.info(
            "Fetched %s campaign-day rows for customer %s", len(rows), customer_id
        )
        await self.log_response(integration, rows)
        return rows

    def _iter_results(self, payload) -> list[dict]:
        # searchStream answers with a JSON array of batches
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            raise ProviderError(
                self.provider,
                "Google Ads searchStream response is not an array",
                error_type="malformed",
            )

        results: list[dict] = []
        for batch in payload:
            if not isinstance(batch, dict):
                raise ProviderError(
                    self.provider,
                    "Google Ads searchStream batch is not an object",
                    error_type="malformed",
                )
            results.extend(batch.get("results", []))
        return results

    def _parse_result(self, result: dict) -> GoogleAdsRawRow:
        try:
            campaign = result.get("campaign") or {}
            segments = result.get("segments") or {}
            metrics = result.get("metrics") or {}
            return GoogleAdsRawRow(
                date=segments.get("date"),
                campaign_id=str(campaign["id"]) if campaign.get("id") is not None else None,
                campaign_name=campaign.get("name"),
                cost_micros=metrics.get("costMicros"),
                impressions=metrics.get("impressions"),
                clicks=metrics.get("clicks"),
                conversions=metrics.get("conversions"),
                conversions_value=metrics.get("allConversionsValue"),
            )
        except (AttributeError, ValidationError) as exc:
            raise ProviderError(
                self.provider,
                f"Malformed Google Ads result: {exc}",
                error_type="malformed",
            ) from exc

    def parse_error(self, status: int, body: str) -> ProviderError:
        """Join GoogleAdsFailure messages, falling back to error.message."""
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        if isinstance(payload, list) and payload:
            payload = payload[0]
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            return super().parse_error(status, body)

        messages: list[str] = []
        error_codes: list[dict] = []
        for detail in error.get("details") or []:
            for failure in detail.get("errors") or []:
                if failure.get("message"):
                    messages.append(failure["message"])
                elif failure.get("errorCode"):
                    messages.append(json.dumps(failure["errorCode"]))
                if failure.get("errorCode"):
                    error_codes.append(failure["errorCode"])

        message = "; ".join(messages) or error.get("message") or body[:ERROR_BODY_LIMIT]
        return ProviderError(
            self.provider,
            f"google_ads API error ({status}): {message}",
            status=status,
            code=error_codes or error.get("code"),
            error_type=error.get("status"),
        )
