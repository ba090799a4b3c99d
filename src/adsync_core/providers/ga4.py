"""GA4 Data API adapter (properties.runReport)."""
import logging

import aiohttp
from pydantic import ValidationError

from ..schemas.metrics import PROVIDER_GA4, DateRange, Integration, LogComponent
from ..schemas.provider_rows import GA4RawRow
from .base import ProviderAdapter
from .exceptions import ConfigurationError, ProviderError


logger = logging.getLogger(__name__)


GA4_DATA_URL = "https://analyticsdata.googleapis.com/v1beta"

DIMENSIONS = ["date", "sessionCampaignName"]


class GA4Adapter(ProviderAdapter):
    """Async adapter for GA4 sessions/users/conversions per campaign and day."""

    provider = PROVIDER_GA4
    component = LogComponent.GA4
    uses_oauth_refresh = True

    PAGE_LIMIT = 10000
    MAX_PAGES = 100

    def __init__(
        self,
        session: aiohttp.ClientSession,
        store,
        system_logger,
        conversion_metric: str = "conversions",
    ) -> None:
        super().__init__(session, store, system_logger)
        self.metrics = ["sessions", "totalUsers", conversion_metric]

    async def fetch_metrics(
        self,
        integration: Integration,
        date_range: DateRange,
        access_token: str,
    ) -> list[GA4RawRow]:
        settings = await self.resolve_settings(integration)
        if not settings.ga4_property_id:
            raise ConfigurationError(
                "GA4 property ID is not configured for organization "
                f"{integration.organization_id}"
            )

        property_id = settings.ga4_property_id.strip().removeprefix("properties/")
        url = f"{GA4_DATA_URL}/properties/{property_id}:runReport"
        request_body = {
            "dateRanges": [
                {
                    "startDate": date_range.start.isoformat(),
                    "endDate": date_range.end.isoformat(),
                }
            ],
            "dimensions": [{"name": name} for name in DIMENSIONS],
            "metrics": [{"name": name} for name in self.metrics],
            "limit": str(self.PAGE_LIMIT),
        }
        headers = {"Authorization": f"Bearer {access_token}"}

        await self.log_request(
            integration,
            "Request params",
            {"propertyId": property_id, "body": request_body},
        )

        rows: list[GA4RawRow] = []
        offset = 0
        for _ in range(self.MAX_PAGES):
            report = await self.request_json(
                "POST",
                url,
                [access_token],
                json={**request_body, "offset": str(offset)},
                headers=headers,
            )
            if not isinstance(report, dict):
                raise ProviderError(
                    self.provider, "GA4 report is not an object", error_type="malformed"
                )

            page = [self._parse_row(row) for row in report.get("rows") or []]
            rows.extend(page)
            offset += len(page)

            row_count = int(report.get("rowCount") or 0)
            if not page or offset >= row_count:
                break
        else:
            raise ProviderError(
                self.provider,
                f"GA4 pagination exceeded {self.MAX_PAGES} pages",
                error_type="pagination",
            )

        logger.info("Fetched %s GA4 rows for property %s", len(rows), property_id)
        await self.log_response(integration, rows)
        return rows

    def _parse_row(self, row: dict) -> GA4RawRow:
        try:
            dimensions = [item.get("value") for item in row["dimensionValues"]]
            metrics = [item.get("value") for item in row["metricValues"]]
            return GA4RawRow(
                date=dimensions[0],
                campaign_name=dimensions[1] if len(dimensions) > 1 else None,
                sessions=metrics[0],
                total_users=metrics[1] if len(metrics) > 1 else None,
                conversions=metrics[2] if len(metrics) > 2 else None,
            )
        except (KeyError, IndexError, TypeError, AttributeError, ValidationError) as exc:
            raise ProviderError(
                self.provider,
                f"Malformed GA4 report row: {exc}",
                error_type="malformed",
            ) from exc
