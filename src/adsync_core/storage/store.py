"""Data store interface and its SQLite implementation.

The orchestrator only depends on DataStore. Campaign metric rows are only
ever mutated through replace_metrics_window (plus insert_metrics for
seeding/backfills).
"""
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from ..providers.exceptions import StorageError
from ..schemas.metrics import (
    CampaignMetric,
    Integration,
    LogComponent,
    LogLevel,
    NormalizedMetric,
    OrganizationSettings,
    SystemLogEntry,
)
from .schema import init_database


logger = logging.getLogger(__name__)


METRIC_COLUMNS = (
    "campaign_id",
    "campaign_name",
    "ad_set_id",
    "ad_id",
    "ad_name",
    "spend",
    "impressions",
    "clicks",
    "conversions",
    "conversion_value",
    "ctr",
    "cpc",
    "leads",
    "link_clicks",
    "landing_page_views",
    "video_views_3s",
    "video_thruplays",
    "video_views_75",
    "video_completes",
    "sessions",
    "active_users",
)


class DataStore(ABC):
    """Keyed store over integrations, settings, metrics and system logs."""

    @abstractmethod
    async def list_integrations(self, provider: str) -> list[Integration]:
        """All integrations registered for a provider."""

    @abstractmethod
    async def get_integration(self, integration_id: str) -> Optional[Integration]:
        """Integration by ID, or None."""

    @abstractmethod
    async def save_integration(self, integration: Integration) -> Integration:
        """Create or update an integration keyed by (org, provider, account)."""

    @abstractmethod
    async def update_integration_tokens(
        self,
        integration_id: str,
        access_token: str,
        expires_at: Optional[datetime],
    ) -> None:
        """Persist refreshed credentials."""

    @abstractmethod
    async def get_organization_settings(
        self, organization_id: str
    ) -> Optional[OrganizationSettings]:
        """Per-organization provider account identifiers."""

    @abstractmethod
    async def list_organization_settings(self) -> list[OrganizationSettings]:
        """Settings of every organization, ordered by organization ID."""

    @abstractmethod
    async def save_organization_settings(self, settings: OrganizationSettings) -> None:
        """Create or replace organization settings."""

    @abstractmethod
    async def list_metrics(
        self, integration_id: str, since: Optional[date] = None
    ) -> list[CampaignMetric]:
        """Stored metric rows for an integration, ordered by date."""

    @abstractmethod
    async def insert_metrics(
        self, integration: Integration, rows: Iterable[NormalizedMetric]
    ) -> int:
        """Append metric rows without touching existing ones."""

    @abstractmethod
    async def replace_metrics_window(
        self,
        integration: Integration,
        window_start: date,
        rows: Iterable[NormalizedMetric],
    ) -> int:
        """Atomically delete rows dated >= window_start and insert rows."""

    @abstractmethod
    async def insert_system_log(self, entry: SystemLogEntry) -> None:
        """Append a system log row."""

    @abstractmethod
    async def list_system_logs(
        self, organization_id: Optional[str] = None, limit: int = 100
    ) -> list[SystemLogEntry]:
        """Most recent system log rows first."""


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return _to_utc(datetime.fromisoformat(value))


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    value = _to_utc(value)
    return value.isoformat() if value else None


class SQLiteDataStore(DataStore):
    """DataStore backed by a single SQLite file (one connection per call)."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        init_database(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _integration_from_row(row: sqlite3.Row) -> Integration:
        settings = json.loads(row["settings_json"]) if row["settings_json"] else None
        return Integration(
            id=row["id"],
            organization_id=row["organization_id"],
            provider=row["provider"],
            provider_account_id=row["provider_account_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=_parse_timestamp(row["expires_at"]),
            settings=settings,
            created_at=_parse_timestamp(row["created_at"]),
            updated_at=_parse_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _settings_from_row(row: sqlite3.Row) -> OrganizationSettings:
        return OrganizationSettings(
            organization_id=row["organization_id"],
            google_ads_customer_id=row["google_ads_customer_id"],
            facebook_ad_account_id=row["facebook_ad_account_id"],
            ga4_property_id=row["ga4_property_id"],
        )

    async def list_integrations(self, provider: str) -> list[Integration]:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "SELECT * FROM integrations WHERE provider=? ORDER BY created_at, id",
                (provider,),
            )
            return [self._integration_from_row(row) for row in cursor.fetchall()]

    async def get_integration(self, integration_id: str) -> Optional[Integration]:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "SELECT * FROM integrations WHERE id=?", (integration_id,)
            )
            row = cursor.fetchone()
        return self._integration_from_row(row) if row else None

    async def save_integration(self, integration: Integration) -> Integration:
        settings_json = (
            json.dumps(integration.settings, separators=(",", ":"))
            if integration.settings is not None
            else None
        )
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO integrations (
                        id, organization_id, provider, provider_account_id,
                        access_token, refresh_token, expires_at, settings_json
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(organization_id, provider, provider_account_id)
                    DO UPDATE SET
                        access_token=excluded.access_token,
                        refresh_token=COALESCE(excluded.refresh_token, refresh_token),
                        expires_at=excluded.expires_at,
                        settings_json=COALESCE(excluded.settings_json, settings_json),
                        updated_at=CURRENT_TIMESTAMP
                    """,
                    (
                        integration.id,
                        integration.organization_id,
                        integration.provider,
                        integration.provider_account_id,
                        integration.access_token,
                        integration.refresh_token,
                        _format_timestamp(integration.expires_at),
                        settings_json,
                    ),
                )
            cursor = conn.execute(
                """
                SELECT * FROM integrations
                WHERE organization_id=? AND provider=? AND provider_account_id=?
                """,
                (
                    integration.organization_id,
                    integration.provider,
                    integration.provider_account_id,
                ),
            )
            return self._integration_from_row(cursor.fetchone())

    async def update_integration_tokens(
        self,
        integration_id: str,
        access_token: str,
        expires_at: Optional[datetime],
    ) -> None:
        try:
            with closing(self._connect()) as conn:
                with conn:
                    updated = conn.execute(
                        """
                        UPDATE integrations
                        SET access_token=?, expires_at=?, updated_at=?
                        WHERE id=?
                        """,
                        (
                            access_token,
                            _format_timestamp(expires_at),
                            datetime.now(timezone.utc).isoformat(),
                            integration_id,
                        ),
                    ).rowcount
        except sqlite3.Error as exc:
            raise StorageError(integration_id, str(exc)) from exc

        if updated == 0:
            raise StorageError(integration_id, "integration not found")

    async def get_organization_settings(
        self, organization_id: str
    ) -> Optional[OrganizationSettings]:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "SELECT * FROM organization_settings WHERE organization_id=?",
                (organization_id,),
            )
            row = cursor.fetchone()

        return self._settings_from_row(row) if row else None

    async def list_organization_settings(self) -> list[OrganizationSettings]:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "SELECT * FROM organization_settings ORDER BY organization_id"
            )
            return [self._settings_from_row(row) for row in cursor.fetchall()]

    async def save_organization_settings(self, settings: OrganizationSettings) -> None:
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO organization_settings (
                        organization_id, google_ads_customer_id,
                        facebook_ad_account_id, ga4_property_id
                    )
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(organization_id)
                    DO UPDATE SET
                        google_ads_customer_id=excluded.google_ads_customer_id,
                        facebook_ad_account_id=excluded.facebook_ad_account_id,
                        ga4_property_id=excluded.ga4_property_id,
                        updated_at=CURRENT_TIMESTAMP
                    """,
                    (
                        settings.organization_id,
                        settings.google_ads_customer_id,
                        settings.facebook_ad_account_id,
                        settings.ga4_property_id,
                    ),
                )

    async def list_metrics(
        self, integration_id: str, since: Optional[date] = None
    ) -> list[CampaignMetric]:
        query = "SELECT * FROM campaign_metrics WHERE integration_id=?"
        params: list = [integration_id]
        if since is not None:
            query += " AND metric_date >= ?"
            params.append(since.isoformat())
        query += " ORDER BY metric_date, campaign_id, ad_id, id"

        with closing(self._connect()) as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            CampaignMetric(
                integration_id=row["integration_id"],
                organization_id=row["organization_id"],
                date=date.fromisoformat(row["metric_date"]),
                **{column: row[column] for column in METRIC_COLUMNS},
            )
            for row in rows
        ]

    @staticmethod
    def _insert_rows(
        conn: sqlite3.Connection,
        integration: Integration,
        rows: Iterable[NormalizedMetric],
    ) -> int:
        placeholders = ", ".join("?" for _ in range(len(METRIC_COLUMNS) + 3))
        sql = (
            "INSERT INTO campaign_metrics (integration_id, organization_id, "
            f"metric_date, {', '.join(METRIC_COLUMNS)}) VALUES ({placeholders})"
        )
        values = [
            (
                integration.id,
                integration.organization_id,
                row.date.isoformat(),
                *(getattr(row, column) for column in METRIC_COLUMNS),
            )
            for row in rows
        ]
        if values:
            conn.executemany(sql, values)
        return len(values)

    async def insert_metrics(
        self, integration: Integration, rows: Iterable[NormalizedMetric]
    ) -> int:
        try:
            with closing(self._connect()) as conn:
                with conn:
                    return self._insert_rows(conn, integration, rows)
        except sqlite3.Error as exc:
            raise StorageError(integration.id, str(exc)) from exc

    async def replace_metrics_window(
        self,
        integration: Integration,
        window_start: date,
        rows: Iterable[NormalizedMetric],
    ) -> int:
        rows = list(rows)
        try:
            with closing(self._connect()) as conn:
                # Single transaction: a failed insert rolls the delete back.
                with conn:
                    deleted = conn.execute(
                        """
                        DELETE FROM campaign_metrics
                        WHERE integration_id=? AND metric_date >= ?
                        """,
                        (integration.id, window_start.isoformat()),
                    ).rowcount
                    inserted = self._insert_rows(conn, integration, rows)
        except sqlite3.Error as exc:
            logger.error(
                "Window replacement failed for integration=%s: %s",
                integration.id,
                exc,
            )
            raise StorageError(integration.id, str(exc)) from exc

        logger.info(
            "Replaced metrics window for integration=%s since %s: deleted=%s inserted=%s",
            integration.id,
            window_start.isoformat(),
            deleted,
            inserted,
        )
        return inserted

    async def insert_system_log(self, entry: SystemLogEntry) -> None:
        details_json = (
            json.dumps(entry.details, separators=(",", ":"))
            if entry.details is not None
            else None
        )
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO system_logs (
                        organization_id, component, level, message, details_json
                    )
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        entry.organization_id,
                        entry.component.value,
                        entry.level.value,
                        entry.message,
                        details_json,
                    ),
                )

    async def list_system_logs(
        self, organization_id: Optional[str] = None, limit: int = 100
    ) -> list[SystemLogEntry]:
        query = "SELECT * FROM system_logs"
        params: list = []
        if organization_id is not None:
            query += " WHERE organization_id=?"
            params.append(organization_id)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with closing(self._connect()) as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            SystemLogEntry(
                organization_id=row["organization_id"],
                component=LogComponent(row["component"]),
                level=LogLevel(row["level"]),
                message=row["message"],
                details=json.loads(row["details_json"]) if row["details_json"] else None,
                created_at=_parse_timestamp(row["created_at"]),
            )
            for row in rows
        ]
