"""Unit tests for lead temperature classification."""
import pytest

from adsync_core.metrics.lead_classifier import (
    ClassificationRule,
    LeadSourceClassifier,
    LeadTouch,
    classify_leads,
    tracking_rate,
)


@pytest.mark.parametrize(
    "utm_source, expected",
    [
        ("fb_p1_lookalike", "cold"),
        ("FB_P2_RETARGET", "hot"),
        ("newsletter", "other"),
        (None, "other"),
    ],
)
def test_default_temperature_rules(utm_source, expected):
    """Test default p1/p2 rules on utm_source."""
    classifier = LeadSourceClassifier()
    assert classifier.classify(LeadTouch(utm_source=utm_source)) == expected


def test_first_matching_rule_wins():
    """Test rule order decides overlapping matches."""
    classifier = LeadSourceClassifier(
        rules=[
            ClassificationRule(pattern="p1", label="cold"),
            ClassificationRule(pattern="p1_vip", label="vip"),
        ]
    )

    assert classifier.classify(LeadTouch(utm_source="p1_vip")) == "cold"


def test_exact_and_regex_rules_on_other_field():
    """Test exact/regex matching against utm_campaign."""
    classifier = LeadSourceClassifier(
        rules=[
            ClassificationRule(pattern="brand", label="brand", match="exact"),
            ClassificationRule(pattern=r"^promo_\d+$", label="promo", match="regex"),
        ],
        field="utm_campaign",
        default_label="unknown",
    )

    assert classifier.classify(LeadTouch(utm_campaign="Brand")) == "brand"
    assert classifier.classify(LeadTouch(utm_campaign="brand_x")) == "unknown"
    assert classifier.classify(LeadTouch(utm_campaign="promo_42")) == "promo"


def test_classify_leads_counts():
    """Test counts per label omit empty labels."""
    leads = [
        LeadTouch(utm_source="p1_a"),
        LeadTouch(utm_source="p1_b"),
        LeadTouch(utm_source="organic"),
    ]

    assert classify_leads(leads) == {"cold": 2, "other": 1}


def test_tracking_rate():
    """Test tracking rate counts leads with a non-blank utm_source."""
    leads = [
        LeadTouch(utm_source="p1"),
        LeadTouch(utm_source="  "),
        LeadTouch(),
        LeadTouch(utm_source="p2"),
    ]

    assert tracking_rate(leads) == 50.0


def test_tracking_rate_no_leads():
    """Test tracking rate is 0 without leads."""
    assert tracking_rate([]) == 0.0
