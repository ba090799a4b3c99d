"""Tagged raw row variants, one per provider.

Adapters parse wire payloads into these models; the normalizer turns them
into NormalizedMetric. Numeric fields keep whatever the provider sent
(Meta and Google REST encode most numbers as strings).
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Numeric = Optional[Union[str, int, float]]


class MetaAction(BaseModel):
    """Entry of a Meta actions/action_values array."""

    model_config = ConfigDict(extra="ignore")

    action_type: str
    value: Numeric = None


class MetaRawRow(BaseModel):
    """Meta Marketing API insights row (level=ad, time_increment=1)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    provider: Literal["meta"] = "meta"
    date_start: str
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    adset_id: Optional[str] = None
    ad_id: Optional[str] = None
    ad_name: Optional[str] = None
    spend: Numeric = None
    impressions: Numeric = None
    clicks: Numeric = None
    ctr: Numeric = None
    cpc: Numeric = None
    actions: list[MetaAction] = Field(default_factory=list)
    action_values: list[MetaAction] = Field(default_factory=list)
    video_thruplay_watched_actions: list[MetaAction] = Field(default_factory=list)
    video_p75_watched_actions: list[MetaAction] = Field(default_factory=list)
    video_p100_watched_actions: list[MetaAction] = Field(default_factory=list)
    primary_action_type: str = Field(
        "purchase", description="Action type counted as the primary conversion"
    )


class GoogleAdsRawRow(BaseModel):
    """Flattened Google Ads searchStream result (campaign x segments.date)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    provider: Literal["google_ads"] = "google_ads"
    date: str
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    cost_micros: Numeric = None
    impressions: Numeric = None
    clicks: Numeric = None
    conversions: Numeric = None
    conversions_value: Numeric = None


class GA4RawRow(BaseModel):
    """GA4 Data API runReport row (date x sessionCampaignName)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    provider: Literal["google_analytics"] = "google_analytics"
    date: str = Field(..., description="YYYYMMDD")
    campaign_name: Optional[str] = None
    sessions: Numeric = None
    total_users: Numeric = None
    conversions: Numeric = None


RawMetricRow = Annotated[
    Union[MetaRawRow, GoogleAdsRawRow, GA4RawRow],
    Field(discriminator="provider"),
]
