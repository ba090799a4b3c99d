"""Unit tests for GA4Adapter (mocked)."""
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from adsync_core.providers.exceptions import ConfigurationError, ProviderError
from adsync_core.providers.ga4 import GA4Adapter
from adsync_core.schemas.metrics import DateRange, Integration, OrganizationSettings


WINDOW = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 20))


def _mock_response(status, payload):
    response = AsyncMock()
    response.status = status
    response.text.return_value = (
        payload if isinstance(payload, str) else json.dumps(payload)
    )
    response.__aenter__.return_value = response
    return response


def _row(day, campaign, sessions="10", users="8", conversions="1"):
    return {
        "dimensionValues": [{"value": day}, {"value": campaign}],
        "metricValues": [{"value": sessions}, {"value": users}, {"value": conversions}],
    }


@pytest.fixture
def integration():
    return Integration(
        id="int-ga4",
        organization_id="org-1",
        provider="google_analytics",
        provider_account_id="properties/314",
        access_token="ya29.token",
        refresh_token="refresh",
    )


@pytest.fixture
def mock_store():
    store = AsyncMock()
    store.get_organization_settings.return_value = OrganizationSettings(
        organization_id="org-1", ga4_property_id="314"
    )
    return store


@pytest.fixture
def adapter(mock_store):
    return GA4Adapter(MagicMock(), mock_store, AsyncMock())


@pytest.mark.asyncio
async def test_run_report_request(adapter, integration):
    """Test runReport body and row parsing."""
    adapter.session.post.return_value = _mock_response(
        200,
        {"rows": [_row("20240115", "(not set)"), _row("20240115", "spring")], "rowCount": 2},
    )

    rows = await adapter.fetch_metrics(integration, WINDOW, "ya29.token")

    assert [(row.date, row.campaign_name) for row in rows] == [
        ("20240115", "(not set)"),
        ("20240115", "spring"),
    ]
    assert rows[0].sessions == "10"
    assert rows[0].total_users == "8"

    call = adapter.session.post.call_args
    assert call.args[0] == (
        "https://analyticsdata.googleapis.com/v1beta/properties/314:runReport"
    )
    body = call.kwargs["json"]
    assert body["dateRanges"] == [{"startDate": "2024-01-01", "endDate": "2024-01-20"}]
    assert [d["name"] for d in body["dimensions"]] == ["date", "sessionCampaignName"]
    assert [m["name"] for m in body["metrics"]] == ["sessions", "totalUsers", "conversions"]
    assert call.kwargs["headers"]["Authorization"] == "Bearer ya29.token"


@pytest.mark.asyncio
async def test_paginates_by_offset(adapter, integration):
    """Test offset pagination continues until rowCount is reached."""
    first = _mock_response(200, {"rows": [_row("20240115", "a")], "rowCount": 2})
    second = _mock_response(200, {"rows": [_row("20240116", "b")], "rowCount": 2})
    adapter.session.post.side_effect = [first, second]

    rows = await adapter.fetch_metrics(integration, WINDOW, "ya29.token")

    assert [row.campaign_name for row in rows] == ["a", "b"]
    offsets = [call.kwargs["json"]["offset"] for call in adapter.session.post.call_args_list]
    assert offsets == ["0", "1"]


@pytest.mark.asyncio
async def test_empty_report(adapter, integration):
    """Test a report without rows yields nothing."""
    adapter.session.post.return_value = _mock_response(200, {"kind": "analyticsData#runReport"})

    assert await adapter.fetch_metrics(integration, WINDOW, "ya29.token") == []


@pytest.mark.asyncio
async def test_custom_conversion_metric(mock_store, integration):
    """Test the conversion metric name is configurable."""
    adapter = GA4Adapter(MagicMock(), mock_store, AsyncMock(), conversion_metric="keyEvents")
    adapter.session.post.return_value = _mock_response(200, {"rows": [], "rowCount": 0})

    await adapter.fetch_metrics(integration, WINDOW, "ya29.token")

    metrics = adapter.session.post.call_args.kwargs["json"]["metrics"]
    assert metrics[-1] == {"name": "keyEvents"}


@pytest.mark.asyncio
async def test_permission_error(adapter, integration):
    """Test Google API error envelope maps to diagnostics."""
    adapter.session.post.return_value = _mock_response(
        403,
        {
            "error": {
                "code": 403,
                "message": "User does not have sufficient permissions for this property.",
                "status": "PERMISSION_DENIED",
            }
        },
    )

    with pytest.raises(ProviderError) as exc_info:
        await adapter.fetch_metrics(integration, WINDOW, "ya29.token")

    error = exc_info.value
    assert error.status == 403
    assert error.code == 403
    assert error.error_type == "PERMISSION_DENIED"
    assert error.diagnostics()["provider"] == "google_analytics"


@pytest.mark.asyncio
async def test_malformed_row(adapter, integration):
    """Test rows without dimension values are rejected."""
    adapter.session.post.return_value = _mock_response(
        200, {"rows": [{"metricValues": []}], "rowCount": 1}
    )

    with pytest.raises(ProviderError) as exc_info:
        await adapter.fetch_metrics(integration, WINDOW, "ya29.token")

    assert exc_info.value.error_type == "malformed"


@pytest.mark.asyncio
async def test_missing_property_id(adapter, mock_store, integration):
    """Test missing property id is a configuration error."""
    mock_store.get_organization_settings.return_value = OrganizationSettings(
        organization_id="org-1"
    )

    with pytest.raises(ConfigurationError):
        await adapter.fetch_metrics(integration, WINDOW, "ya29.token")
