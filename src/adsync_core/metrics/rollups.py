"""Metric rollups over stored campaign rows.

Each function builds its own grouping dict and returns fresh output; there
is no shared state between calls.
"""
from decimal import Decimal
from typing import Iterable, Optional

from ..schemas.metrics import NormalizedMetric
from .normalizer import to_decimal, to_decimal_string


def _ratio(numerator: Decimal, denominator: Decimal, scale: int = 1) -> Optional[str]:
    if not denominator:
        return None
    return to_decimal_string(numerator / denominator * scale)


def _empty_bucket() -> dict:
    return {
        "spend": Decimal(0),
        "impressions": 0,
        "clicks": 0,
        "conversions": 0,
        "conversion_value": Decimal(0),
    }


def _accumulate(bucket: dict, metric: NormalizedMetric) -> dict:
    return {
        "spend": bucket["spend"] + to_decimal(metric.spend),
        "impressions": bucket["impressions"] + metric.impressions,
        "clicks": bucket["clicks"] + metric.clicks,
        "conversions": bucket["conversions"] + metric.conversions,
        "conversion_value": bucket["conversion_value"]
        + to_decimal(metric.conversion_value),
    }


def _finalize(bucket: dict) -> dict:
    spend = bucket["spend"]
    return {
        "spend": to_decimal_string(spend),
        "impressions": bucket["impressions"],
        "clicks": bucket["clicks"],
        "conversions": bucket["conversions"],
        "conversion_value": to_decimal_string(bucket["conversion_value"]),
        "ctr": _ratio(Decimal(bucket["clicks"]), Decimal(bucket["impressions"]), 100),
        "cpc": _ratio(spend, Decimal(bucket["clicks"])),
        "cpa": _ratio(spend, Decimal(bucket["conversions"])),
        "roas": _ratio(bucket["conversion_value"], spend),
    }


def summarize_metrics(metrics: Iterable[NormalizedMetric]) -> dict:
    """Totals plus derived ctr (%), cpc, cpa and roas."""
    bucket = _empty_bucket()
    for metric in metrics:
        bucket = _accumulate(bucket, metric)
    return _finalize(bucket)


def rollup_daily(metrics: Iterable[NormalizedMetric]) -> list[dict]:
    """One summary per date (YYYY-MM-DD), sorted by date."""
    buckets: dict[str, dict] = {}
    for metric in metrics:
        key = metric.date.isoformat()
        buckets[key] = _accumulate(buckets.get(key, _empty_bucket()), metric)

    return [{"date": key, **_finalize(buckets[key])} for key in sorted(buckets)]


def rollup_by_campaign(metrics: Iterable[NormalizedMetric]) -> list[dict]:
    """One summary per campaign name, highest spend first."""
    buckets: dict[str, dict] = {}
    for metric in metrics:
        key = metric.campaign_name or "(not set)"
        buckets[key] = _accumulate(buckets.get(key, _empty_bucket()), metric)

    rows = [{"campaign_name": key, **_finalize(bucket)} for key, bucket in buckets.items()]
    rows.sort(key=lambda row: (-to_decimal(row["spend"]), row["campaign_name"]))
    return rows
