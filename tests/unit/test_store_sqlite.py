"""Unit tests for the SQLite data store."""
import sqlite3
from datetime import date, datetime, timedelta, timezone

import pytest

from adsync_core.providers.exceptions import StorageError
from adsync_core.schemas.metrics import (
    Integration,
    LogComponent,
    LogLevel,
    NormalizedMetric,
    OrganizationSettings,
    SystemLogEntry,
)
from adsync_core.storage import SQLiteDataStore
from adsync_core.storage.schema import SCHEMA_VERSION, init_database


@pytest.fixture
def store(tmp_path):
    """SQLite store in a temporary directory."""
    return SQLiteDataStore(tmp_path / "adsync.db")


@pytest.fixture
def integration():
    return Integration(
        id="int-1",
        organization_id="org-1",
        provider="google_ads",
        provider_account_id="123-456-7890",
        access_token="tok",
        refresh_token="refresh",
        expires_at=datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc),
    )


def test_init_database_idempotent(tmp_path):
    """Test schema init can run repeatedly and records its version."""
    db_path = tmp_path / "nested" / "adsync.db"
    init_database(db_path)
    init_database(db_path)

    conn = sqlite3.connect(db_path)
    try:
        versions = conn.execute("SELECT version FROM schema_version").fetchall()
        journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    finally:
        conn.close()

    assert versions == [(SCHEMA_VERSION,)]
    assert journal_mode == "wal"


@pytest.mark.asyncio
async def test_save_and_get_integration(store, integration):
    """Test integrations round-trip with UTC expiry."""
    saved = await store.save_integration(integration)

    assert saved.id == "int-1"
    assert saved.expires_at == integration.expires_at

    fetched = await store.get_integration("int-1")
    assert fetched.refresh_token == "refresh"
    assert [i.id for i in await store.list_integrations("google_ads")] == ["int-1"]
    assert await store.list_integrations("meta") == []
    assert await store.get_integration("missing") is None


@pytest.mark.asyncio
async def test_save_integration_upserts_on_account(store, integration):
    """Test saving the same (org, provider, account) updates in place."""
    await store.save_integration(integration)
    updated = await store.save_integration(
        integration.model_copy(update={"id": "int-other", "access_token": "tok-2"})
    )

    assert updated.id == "int-1"
    assert updated.access_token == "tok-2"
    assert len(await store.list_integrations("google_ads")) == 1


@pytest.mark.asyncio
async def test_update_integration_tokens(store, integration):
    """Test refreshed tokens are persisted."""
    await store.save_integration(integration)
    new_expiry = integration.expires_at + timedelta(hours=1)

    await store.update_integration_tokens("int-1", "tok-new", new_expiry)

    fetched = await store.get_integration("int-1")
    assert fetched.access_token == "tok-new"
    assert fetched.expires_at == new_expiry


@pytest.mark.asyncio
async def test_update_integration_tokens_unknown(store):
    """Test updating tokens of a missing integration raises StorageError."""
    with pytest.raises(StorageError):
        await store.update_integration_tokens("missing", "tok", None)


@pytest.mark.asyncio
async def test_organization_settings_round_trip(store):
    """Test organization settings upsert."""
    assert await store.get_organization_settings("org-1") is None

    await store.save_organization_settings(
        OrganizationSettings(organization_id="org-1", ga4_property_id="111")
    )
    await store.save_organization_settings(
        OrganizationSettings(
            organization_id="org-1",
            ga4_property_id="222",
            facebook_ad_account_id="act_9",
        )
    )

    settings = await store.get_organization_settings("org-1")
    assert settings.ga4_property_id == "222"
    assert settings.facebook_ad_account_id == "act_9"


@pytest.mark.asyncio
async def test_list_organization_settings(store):
    """Test every organization's settings are listed by organization ID."""
    assert await store.list_organization_settings() == []

    await store.save_organization_settings(
        OrganizationSettings(organization_id="org-b", google_ads_customer_id="123-456-7890")
    )
    await store.save_organization_settings(
        OrganizationSettings(organization_id="org-a", facebook_ad_account_id="123")
    )

    listed = await store.list_organization_settings()

    assert [settings.organization_id for settings in listed] == ["org-a", "org-b"]
    assert listed[0].account_id_for("meta") == "123"
    assert listed[0].account_id_for("google_ads") is None
    assert listed[1].account_id_for("google_ads") == "123-456-7890"


@pytest.mark.asyncio
async def test_replace_metrics_window(store, integration):
    """Test window replacement deletes from window start and leaves older rows."""
    await store.save_integration(integration)
    await store.insert_metrics(
        integration,
        [
            NormalizedMetric(date=date(2023, 12, 1), campaign_id="c1", spend="9.99"),
            NormalizedMetric(date=date(2024, 1, 10), campaign_id="c1", spend="1.00"),
            NormalizedMetric(date=date(2024, 1, 11), campaign_id="c1", spend="2.00"),
        ],
    )

    inserted = await store.replace_metrics_window(
        integration,
        date(2024, 1, 5),
        [NormalizedMetric(date=date(2024, 1, 10), campaign_id="c1", spend="3.00")],
    )

    assert inserted == 1
    rows = await store.list_metrics("int-1")
    assert [(row.date, row.spend) for row in rows] == [
        (date(2023, 12, 1), "9.99"),
        (date(2024, 1, 10), "3.00"),
    ]
    assert rows[0].organization_id == "org-1"
    assert [row.date for row in await store.list_metrics("int-1", since=date(2024, 1, 1))] == [
        date(2024, 1, 10)
    ]


@pytest.mark.asyncio
async def test_replace_metrics_window_rolls_back_on_failure(tmp_path, integration):
    """Test a failed insert leaves previously stored rows untouched."""

    class FailingInsertStore(SQLiteDataStore):
        @staticmethod
        def _insert_rows(conn, integration, rows):
            raise sqlite3.OperationalError("disk I/O error")

    store = FailingInsertStore(tmp_path / "adsync.db")
    await store.save_integration(integration)

    healthy = SQLiteDataStore(tmp_path / "adsync.db")
    await healthy.insert_metrics(
        integration,
        [NormalizedMetric(date=date(2024, 1, 10), campaign_id="c1", spend="1.00")],
    )

    with pytest.raises(StorageError):
        await store.replace_metrics_window(
            integration,
            date(2024, 1, 1),
            [NormalizedMetric(date=date(2024, 1, 10), campaign_id="c1", spend="5.00")],
        )

    rows = await healthy.list_metrics("int-1")
    assert [(row.date, row.spend) for row in rows] == [(date(2024, 1, 10), "1.00")]


@pytest.mark.asyncio
async def test_system_logs_newest_first(store):
    """Test system logs are listed newest first and filtered by org."""
    await store.insert_system_log(
        SystemLogEntry(
            organization_id="org-1",
            component=LogComponent.META_ADS,
            level=LogLevel.INFO,
            message="first",
            details={"rawCount": 2},
        )
    )
    await store.insert_system_log(
        SystemLogEntry(
            organization_id="org-2",
            component=LogComponent.GA4,
            level=LogLevel.ERROR,
            message="second",
        )
    )

    logs = await store.list_system_logs()
    assert [log.message for log in logs] == ["second", "first"]
    assert logs[1].details == {"rawCount": 2}
    assert logs[1].component == LogComponent.META_ADS

    org_logs = await store.list_system_logs(organization_id="org-1")
    assert [log.message for log in org_logs] == ["first"]
