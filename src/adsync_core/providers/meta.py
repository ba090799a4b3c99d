"""Meta Marketing API insights adapter.

Fetches ad-level insights with a daily breakdown (time_increment=1) and
follows cursor pagination until exhausted.
"""
import json
import logging
from typing import Optional

import aiohttp
from pydantic import ValidationError

from ..schemas.metrics import PROVIDER_META, DateRange, Integration, LogComponent
from ..schemas.provider_rows import MetaRawRow
from .base import REDACTED, ProviderAdapter
from .exceptions import ConfigurationError, ProviderError


logger = logging.getLogger(__name__)


META_GRAPH_URL = "https://graph.facebook.com"

INSIGHT_FIELDS = [
    "account_id",
    "campaign_id",
    "campaign_name",
    "adset_id",
    "adset_name",
    "ad_id",
    "ad_name",
    "spend",
    "impressions",
    "clicks",
    "cpc",
    "cpm",
    "ctr",
    "actions",
    "action_values",
    "video_thruplay_watched_actions",
    "video_p75_watched_actions",
    "video_p100_watched_actions",
]


def normalize_ad_account_id(ad_account_id: str) -> str:
    ad_account_id = ad_account_id.strip()
    if not ad_account_id.startswith("act_"):
        ad_account_id = f"act_{ad_account_id}"
    return ad_account_id


class MetaAdsAdapter(ProviderAdapter):
    """Async adapter for Meta Ads insights."""

    provider = PROVIDER_META
    component = LogComponent.META_ADS
    uses_oauth_refresh = False

    PAGE_LIMIT = 500
    MAX_PAGES = 200

    def __init__(
        self,
        session: aiohttp.ClientSession,
        store,
        system_logger,
        system_token: Optional[str] = None,
        api_version: str = "v19.0",
        primary_action_type: str = "purchase",
    ) -> None:
        """Initialize Meta adapter.

        Args:
            session: aiohttp session for requests
            store: DataStore for organization settings
            system_logger: SystemLogger for audit entries
            system_token: System user token; takes precedence over the
                integration's stored token
            api_version: Graph API version (e.g., v19.0)
            primary_action_type: Action type counted as a conversion
        """
        super().__init__(session, store, system_logger)
        self._system_token = system_token
        self.api_version = api_version
        self.primary_action_type = primary_action_type

    def resolve_access_token(self, integration: Integration) -> Optional[str]:
        return self._system_token or integration.access_token

    async def fetch_metrics(
        self,
        integration: Integration,
        date_range: DateRange,
        access_token: str,
    ) -> list[MetaRawRow]:
        settings = await self.resolve_settings(integration)
        if not settings.facebook_ad_account_id:
            raise ConfigurationError(
                "Meta ad account is not configured for organization "
                f"{integration.organization_id}"
            )

        ad_account_id = normalize_ad_account_id(settings.facebook_ad_account_id)
        url = f"{META_GRAPH_URL}/{self.api_version}/{ad_account_id}/insights"
        time_range = {
            "since": date_range.start.isoformat(),
            "until": date_range.end.isoformat(),
        }
        params = {
            "access_token": access_token,
            "level": "ad",
            "time_increment": "1",
            "time_range": json.dumps(time_range, separators=(",", ":")),
            "fields": ",".join(INSIGHT_FIELDS),
            "limit": str(self.PAGE_LIMIT),
        }

        await self.log_request(
            integration,
            "Request params",
            {
                "adAccountId": ad_account_id,
                "dateRange": time_range,
                "hasToken": bool(access_token),
                "params": {**params, "access_token": REDACTED},
            },
        )

        secrets = [access_token]
        items: list[dict] = []
        result = await self.request_json("GET", url, secrets, params=params)
        pages = 1

        while True:
            if not isinstance(result, dict) or not isinstance(result.get("data", []), list):
                raise ProviderError(
                    self.provider,
                    "Meta insights response is missing the data array",
                    error_type="malformed",
                )
            items.extend(result.get("data", []))

            next_url = (result.get("paging") or {}).get("next")
            if not next_url:
                break
            if pages >= self.MAX_PAGES:
                raise ProviderError(
                    self.provider,
                    f"Meta pagination exceeded {self.MAX_PAGES} pages",
                    error_type="pagination",
                )
            result = await self.request_json("GET", next_url, secrets)
            pages += 1

        rows = [self._parse_row(item) for item in items]

        logger.info(
            "Fetched %s ad-level insights for %s (%s to %s)",
            len(rows),
            ad_account_id,
            time_range["since"],
            time_range["until"],
        )
        await self.log_response(integration, rows)
        return rows

    def _parse_row(self, item: dict) -> MetaRawRow:
        if not isinstance(item, dict):
            raise ProviderError(
                self.provider, "Meta insights row is not an object", error_type="malformed"
            )
        try:
            return MetaRawRow.model_validate(
                {**item, "primary_action_type": self.primary_action_type}
            )
        except ValidationError as exc:
            raise ProviderError(
                self.provider,
                f"Malformed Meta insights row: {exc.errors()[:3]}",
                error_type="malformed",
            ) from exc
