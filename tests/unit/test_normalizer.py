"""Unit tests for provider row normalization."""
from datetime import date

import pytest

from adsync_core.metrics.normalizer import (
    micros_to_currency,
    normalize_row,
    normalize_rows,
    parse_metric_date,
    safe_int,
    to_decimal_string,
)
from adsync_core.schemas.provider_rows import (
    GA4RawRow,
    GoogleAdsRawRow,
    MetaAction,
    MetaRawRow,
)


def test_micros_to_currency():
    """Test micros convert to 2-decimal currency strings."""
    assert micros_to_currency(1_500_000) == "1.50"
    assert micros_to_currency("2500000") == "2.50"
    assert micros_to_currency(0) == "0.00"
    assert micros_to_currency(None) == "0.00"


def test_micros_to_currency_rounds_half_up():
    """Test sub-cent micros round half-up."""
    assert micros_to_currency(1_005_000) == "1.01"
    assert micros_to_currency(1_004_999) == "1.00"


def test_negative_spend_clamped_to_zero():
    """Test negative amounts never produce negative spend."""
    assert micros_to_currency(-1_000_000) == "0.00"
    assert to_decimal_string("-3.20", non_negative=True) == "0.00"


def test_safe_int_rounds_fractional_conversions():
    """Test fractional provider counts round half-up; garbage becomes 0."""
    assert safe_int("2.5") == 3
    assert safe_int("2.49") == 2
    assert safe_int(7) == 7
    assert safe_int("n/a") == 0
    assert safe_int(None) == 0


def test_parse_metric_date_formats():
    """Test both ISO and compact GA4 dates parse."""
    assert parse_metric_date("2024-01-15") == date(2024, 1, 15)
    assert parse_metric_date("20240115") == date(2024, 1, 15)


def test_normalize_meta_row_primary_action():
    """Test Meta conversions come from the primary action type."""
    row = MetaRawRow(
        date_start="2024-01-15",
        campaign_id="c1",
        campaign_name="Spring",
        adset_id="as1",
        ad_id="ad1",
        ad_name="Ad One",
        spend="12.345",
        impressions="1000",
        clicks="25",
        ctr="2.5",
        cpc="0.49",
        actions=[
            MetaAction(action_type="link_click", value="20"),
            MetaAction(action_type="purchase", value="3"),
            MetaAction(action_type="lead", value="4"),
            MetaAction(action_type="video_view", value="150"),
        ],
        action_values=[MetaAction(action_type="purchase", value="89.90")],
        video_thruplay_watched_actions=[MetaAction(action_type="video_view", value="40")],
    )

    metric = normalize_row(row)

    assert metric.date == date(2024, 1, 15)
    assert metric.spend == "12.35"
    assert metric.impressions == 1000
    assert metric.clicks == 25
    assert metric.conversions == 3
    assert metric.conversion_value == "89.90"
    assert metric.ad_set_id == "as1"
    assert metric.ad_id == "ad1"
    assert metric.leads == 4
    assert metric.link_clicks == 20
    assert metric.video_views_3s == 150
    assert metric.video_thruplays == 40
    assert metric.video_completes is None


def test_normalize_meta_row_without_purchase():
    """Test a Meta row without the primary action has 0 conversions."""
    row = MetaRawRow(
        date_start="2024-01-15",
        spend="1.00",
        impressions="10",
        clicks="1",
        actions=[MetaAction(action_type="link_click", value="1")],
    )

    metric = normalize_row(row)

    assert metric.conversions == 0
    assert metric.conversion_value == "0.00"


def test_normalize_meta_row_custom_primary_action():
    """Test the primary action type is configurable per row."""
    row = MetaRawRow(
        date_start="2024-01-15",
        actions=[
            MetaAction(action_type="purchase", value="1"),
            MetaAction(action_type="lead", value="9"),
        ],
        primary_action_type="lead",
    )

    assert normalize_row(row).conversions == 9


def test_normalize_google_ads_row():
    """Test Google Ads micros and derived ctr/cpc."""
    row = GoogleAdsRawRow(
        date="2024-01-15",
        campaign_id="123",
        campaign_name="Brand",
        cost_micros="2500000",
        impressions="200",
        clicks="5",
        conversions=1.6,
        conversions_value=40.125,
    )

    metric = normalize_row(row)

    assert metric.spend == "2.50"
    assert metric.impressions == 200
    assert metric.clicks == 5
    assert metric.conversions == 2
    assert metric.conversion_value == "40.13"
    assert metric.ctr == "2.50"
    assert metric.cpc == "0.50"


def test_normalize_google_ads_row_zero_clicks():
    """Test ctr/cpc stay unset when denominators are zero."""
    row = GoogleAdsRawRow(date="2024-01-15", cost_micros=0, impressions=0, clicks=0)

    metric = normalize_row(row)

    assert metric.spend == "0.00"
    assert metric.ctr is None
    assert metric.cpc is None


def test_normalize_ga4_not_set_campaign():
    """Test GA4 '(not set)' campaign maps to Direct/Organic."""
    row = GA4RawRow(
        date="20240115",
        campaign_name="(not set)",
        sessions="120",
        total_users="95",
        conversions="3",
    )

    metric = normalize_row(row)

    assert metric.date == date(2024, 1, 15)
    assert metric.campaign_name == "Direct/Organic"
    assert metric.sessions == 120
    assert metric.active_users == 95
    assert metric.conversions == 3
    assert metric.spend == "0.00"


def test_normalize_ga4_named_campaign_kept():
    """Test named GA4 campaigns pass through."""
    row = GA4RawRow(date="20240115", campaign_name="spring_sale", sessions="1")

    assert normalize_row(row).campaign_name == "spring_sale"


def test_normalize_is_deterministic():
    """Test the same raw rows always normalize to equal output."""
    rows = [
        GoogleAdsRawRow(date="2024-01-15", cost_micros="1000000", clicks="2"),
        GA4RawRow(date="20240116", sessions="5"),
    ]

    assert normalize_rows(rows) == normalize_rows(rows)


def test_normalize_row_rejects_unknown_type():
    """Test dispatch fails loudly for unsupported row types."""
    with pytest.raises(TypeError):
        normalize_row({"date": "2024-01-15"})


def test_out_of_range_amounts_become_zero():
    """Test amounts too large to round to cents normalize to 0.00."""
    assert to_decimal_string("1e40") == "0.00"
    assert micros_to_currency("1e40") == "0.00"

    metric = normalize_row(MetaRawRow(date_start="2024-01-01", spend="1e30", clicks="3"))

    assert metric.spend == "0.00"
    assert metric.clicks == 3
