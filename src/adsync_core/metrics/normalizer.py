"""Pure unit conversion from provider raw rows to NormalizedMetric.

No I/O. Same raw input always yields the same normalized output, which is
what makes a sync run safe to repeat.
"""
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ..schemas.metrics import NormalizedMetric
from ..schemas.provider_rows import (
    GA4RawRow,
    GoogleAdsRawRow,
    MetaAction,
    MetaRawRow,
    RawMetricRow,
)


MICROS_PER_UNIT = Decimal(1_000_000)
CENTS = Decimal("0.01")
GA4_NOT_SET = "(not set)"
GA4_DIRECT_LABEL = "Direct/Organic"

META_VIDEO_VIEW_ACTION = "video_view"
META_LEAD_ACTION = "lead"
META_LINK_CLICK_ACTION = "link_click"
META_LANDING_PAGE_VIEW_ACTION = "landing_page_view"


def to_decimal(value: Any) -> Decimal:
    """Parse a provider numeric (str/int/float) into Decimal, invalid -> 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not parsed.is_finite():
        return Decimal(0)
    return parsed


def _quantize_cents(amount: Decimal) -> str:
    # Amounts beyond the decimal context precision cannot be quantized.
    try:
        return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return "0.00"


def to_decimal_string(value: Any, non_negative: bool = False) -> str:
    """Format a provider numeric as a 2-decimal string (half-up)."""
    amount = to_decimal(value)
    if non_negative and amount < 0:
        amount = Decimal(0)
    return _quantize_cents(amount)


def micros_to_currency(micros: Any) -> str:
    """Convert a micros amount to a currency string.

    >>> micros_to_currency(1_500_000)
    '1.50'
    """
    amount = to_decimal(micros) / MICROS_PER_UNIT
    if amount < 0:
        amount = Decimal(0)
    return _quantize_cents(amount)


def safe_int(value: Any) -> int:
    """Parse a provider numeric into int, rounding half-up; invalid -> 0."""
    return int(to_decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return safe_int(value)


def parse_metric_date(value: str) -> date:
    """Parse YYYY-MM-DD (Meta, Google Ads) or YYYYMMDD (GA4)."""
    value = value.strip()
    if len(value) == 8 and value.isdigit():
        return datetime.strptime(value, "%Y%m%d").date()
    return date.fromisoformat(value[:10])


def pick_action_value(actions: Iterable[MetaAction], action_type: str) -> Any:
    """Return the value of the first action matching action_type, else None."""
    for action in actions:
        if action.action_type == action_type:
            return action.value
    return None


def _sum_actions(actions: Iterable[MetaAction]) -> Optional[int]:
    actions = list(actions)
    if not actions:
        return None
    return sum(safe_int(action.value) for action in actions)


def normalize_meta_row(row: MetaRawRow) -> NormalizedMetric:
    primary = row.primary_action_type
    return NormalizedMetric(
        date=parse_metric_date(row.date_start),
        campaign_id=row.campaign_id,
        campaign_name=row.campaign_name,
        ad_set_id=row.adset_id,
        ad_id=row.ad_id,
        ad_name=row.ad_name,
        spend=to_decimal_string(row.spend, non_negative=True),
        impressions=safe_int(row.impressions),
        clicks=safe_int(row.clicks),
        conversions=safe_int(pick_action_value(row.actions, primary)),
        conversion_value=to_decimal_string(
            pick_action_value(row.action_values, primary), non_negative=True
        ),
        ctr=to_decimal_string(row.ctr),
        cpc=to_decimal_string(row.cpc),
        leads=safe_int(pick_action_value(row.actions, META_LEAD_ACTION)),
        link_clicks=safe_int(pick_action_value(row.actions, META_LINK_CLICK_ACTION)),
        landing_page_views=safe_int(
            pick_action_value(row.actions, META_LANDING_PAGE_VIEW_ACTION)
        ),
        video_views_3s=safe_int(pick_action_value(row.actions, META_VIDEO_VIEW_ACTION)),
        video_thruplays=_sum_actions(row.video_thruplay_watched_actions),
        video_views_75=_sum_actions(row.video_p75_watched_actions),
        video_completes=_sum_actions(row.video_p100_watched_actions),
    )


def normalize_google_ads_row(row: GoogleAdsRawRow) -> NormalizedMetric:
    impressions = safe_int(row.impressions)
    clicks = safe_int(row.clicks)
    cost = to_decimal(row.cost_micros) / MICROS_PER_UNIT

    ctr = None
    cpc = None
    if impressions:
        ctr = to_decimal_string(Decimal(clicks) / Decimal(impressions) * 100)
    if clicks:
        cpc = to_decimal_string(cost / Decimal(clicks), non_negative=True)

    return NormalizedMetric(
        date=parse_metric_date(row.date),
        campaign_id=row.campaign_id,
        campaign_name=row.campaign_name,
        spend=micros_to_currency(row.cost_micros),
        impressions=impressions,
        clicks=clicks,
        conversions=safe_int(row.conversions),
        conversion_value=to_decimal_string(row.conversions_value, non_negative=True),
        ctr=ctr,
        cpc=cpc,
    )


def normalize_ga4_row(row: GA4RawRow) -> NormalizedMetric:
    campaign_name = row.campaign_name
    if not campaign_name or campaign_name == GA4_NOT_SET:
        campaign_name = GA4_DIRECT_LABEL

    return NormalizedMetric(
        date=parse_metric_date(row.date),
        campaign_name=campaign_name,
        conversions=safe_int(row.conversions),
        sessions=_optional_int(row.sessions),
        active_users=_optional_int(row.total_users),
    )


_NORMALIZERS = {
    MetaRawRow: normalize_meta_row,
    GoogleAdsRawRow: normalize_google_ads_row,
    GA4RawRow: normalize_ga4_row,
}


def normalize_row(row: RawMetricRow) -> NormalizedMetric:
    """Dispatch a raw row variant to its provider normalizer."""
    normalizer = _NORMALIZERS.get(type(row))
    if normalizer is None:
        raise TypeError(f"Unsupported raw row type: {type(row).__name__}")
    return normalizer(row)


def normalize_rows(rows: Iterable[RawMetricRow]) -> list[NormalizedMetric]:
    return [normalize_row(row) for row in rows]
