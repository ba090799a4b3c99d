"""Metric normalization and rollups.

Normalizer: provider raw rows -> canonical NormalizedMetric (pure).
Rollups: daily/campaign summaries over stored rows.
Lead classifier: UTM-based temperature labels and tracking rate.
"""
from .lead_classifier import (
    ClassificationRule,
    LeadSourceClassifier,
    LeadTouch,
    classify_leads,
    tracking_rate,
)
from .normalizer import micros_to_currency, normalize_row, normalize_rows
from .rollups import rollup_by_campaign, rollup_daily, summarize_metrics

__all__ = [
    "ClassificationRule",
    "LeadSourceClassifier",
    "LeadTouch",
    "classify_leads",
    "micros_to_currency",
    "normalize_row",
    "normalize_rows",
    "rollup_by_campaign",
    "rollup_daily",
    "summarize_metrics",
    "tracking_rate",
]
