"""Pydantic models for integrations, stored metrics and sync outcomes."""
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


PROVIDER_META = "meta"
PROVIDER_GOOGLE_ADS = "google_ads"
PROVIDER_GA4 = "google_analytics"

PROVIDERS = (PROVIDER_META, PROVIDER_GOOGLE_ADS, PROVIDER_GA4)


class LogComponent(str, Enum):
    """System log component tags."""

    META_ADS = "META_ADS"
    GOOGLE_ADS = "GOOGLE_ADS"
    GA4 = "GA4"
    SYSTEM = "SYSTEM"


class LogLevel(str, Enum):
    """System log levels."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class Integration(BaseModel):
    """One (organization, provider, provider account) triple with its credentials."""

    id: str = Field(..., description="Integration ID")
    organization_id: str
    provider: str = Field(..., description="meta|google_ads|google_analytics")
    provider_account_id: str
    access_token: Optional[str] = Field(None, description="Never logged")
    refresh_token: Optional[str] = Field(None, description="Never logged")
    expires_at: Optional[datetime] = Field(
        None, description="Access token expiry (UTC)"
    )
    settings: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrganizationSettings(BaseModel):
    """Per-organization provider account identifiers."""

    organization_id: str
    google_ads_customer_id: Optional[str] = Field(
        None, description="Format: 000-000-0000"
    )
    facebook_ad_account_id: Optional[str] = Field(
        None, description="With or without 'act_' prefix"
    )
    ga4_property_id: Optional[str] = None

    def account_id_for(self, provider: str) -> Optional[str]:
        """Configured provider account ID, or None when not set up."""
        value = {
            PROVIDER_META: self.facebook_ad_account_id,
            PROVIDER_GOOGLE_ADS: self.google_ads_customer_id,
            PROVIDER_GA4: self.ga4_property_id,
        }.get(provider)
        value = value.strip() if value else None
        return value or None


class DateRange(BaseModel):
    """Inclusive date window at day granularity."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @classmethod
    def lookback(cls, today: date, days: int) -> "DateRange":
        """Window anchored to today minus the lookback."""
        return cls(start=today - timedelta(days=days), end=today)

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


class NormalizedMetric(BaseModel):
    """Canonical metric row produced by the normalizer."""

    model_config = ConfigDict(frozen=True)

    date: date
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    spend: str = Field("0.00", description="Decimal string, 2 fractional digits")
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0

    ad_set_id: Optional[str] = None
    ad_id: Optional[str] = None
    ad_name: Optional[str] = None
    conversion_value: Optional[str] = None
    ctr: Optional[str] = None
    cpc: Optional[str] = None

    # Meta extras
    leads: Optional[int] = None
    link_clicks: Optional[int] = None
    landing_page_views: Optional[int] = None
    video_views_3s: Optional[int] = None
    video_thruplays: Optional[int] = None
    video_views_75: Optional[int] = None
    video_completes: Optional[int] = None

    # GA4 extras
    sessions: Optional[int] = None
    active_users: Optional[int] = None


class CampaignMetric(NormalizedMetric):
    """Stored metric row owned by one integration."""

    integration_id: str
    organization_id: str


class SyncStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class SyncResult(BaseModel):
    """Per-integration outcome of one orchestrator run (not persisted)."""

    model_config = ConfigDict(populate_by_name=True)

    organization_id: str = Field(..., alias="organizationId")
    integration_id: Optional[str] = Field(None, alias="integrationId")
    status: SyncStatus
    count: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, integration: Integration, count: int) -> "SyncResult":
        return cls(
            organization_id=integration.organization_id,
            integration_id=integration.id,
            status=SyncStatus.SUCCESS,
            count=count,
        )

    @classmethod
    def skipped(cls, integration: Integration, reason: str) -> "SyncResult":
        return cls(
            organization_id=integration.organization_id,
            integration_id=integration.id,
            status=SyncStatus.SKIPPED,
            reason=reason,
        )

    @classmethod
    def failed(cls, integration: Integration, error: str) -> "SyncResult":
        return cls(
            organization_id=integration.organization_id,
            integration_id=integration.id,
            status=SyncStatus.ERROR,
            error=error,
        )

    def to_response(self) -> dict:
        """Serialize as the camelCase result object of the HTTP trigger."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class SystemLogEntry(BaseModel):
    """Append-only audit row."""

    organization_id: Optional[str] = None
    component: LogComponent
    level: LogLevel
    message: str
    details: Optional[Any] = None
    created_at: Optional[datetime] = None
