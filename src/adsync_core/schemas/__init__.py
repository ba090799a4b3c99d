"""Pydantic models shared across the sync pipeline."""
from .metrics import (
    CampaignMetric,
    DateRange,
    Integration,
    LogComponent,
    LogLevel,
    NormalizedMetric,
    OrganizationSettings,
    SyncResult,
    SyncStatus,
    SystemLogEntry,
)
from .provider_rows import GA4RawRow, GoogleAdsRawRow, MetaRawRow, RawMetricRow

__all__ = [
    "CampaignMetric",
    "DateRange",
    "GA4RawRow",
    "GoogleAdsRawRow",
    "Integration",
    "LogComponent",
    "LogLevel",
    "MetaRawRow",
    "NormalizedMetric",
    "OrganizationSettings",
    "RawMetricRow",
    "SyncResult",
    "SyncStatus",
    "SystemLogEntry",
]
