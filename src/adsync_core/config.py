"""Environment-driven settings for the sync service."""
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an env var, stripping surrounding quotes; empty -> default."""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().strip('"').strip("'")
    return value or default


class Settings(BaseModel):
    """Service settings (secrets are never logged)."""

    db_path: Path = Field(Path("data/adsync.db"), description="SQLite database path")
    cron_secret: Optional[str] = Field(None, description="Bearer secret for triggers")
    log_level: str = "INFO"

    meta_access_token: Optional[str] = Field(None, description="Meta system user token")
    meta_api_version: str = "v19.0"
    meta_primary_action_type: str = "purchase"

    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_ads_developer_token: Optional[str] = None
    google_ads_mcc_id: Optional[str] = Field(
        None, description="login-customer-id for agency (MCC) access"
    )
    google_ads_api_version: str = "v17"

    ga4_conversion_metric: str = Field(
        "conversions", description="GA4 metric reported as conversions"
    )

    lookback_days: int = Field(30, ge=1, description="Default sync window in days")
    redis_url: Optional[str] = Field(None, description="Enables the batch lock when set")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            db_path=Path(_env("ADSYNC_DB_PATH", "data/adsync.db")),
            cron_secret=_env("CRON_SECRET"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            meta_access_token=_env("META_ACCESS_TOKEN"),
            meta_api_version=_env("META_API_VERSION", "v19.0"),
            meta_primary_action_type=_env("META_PRIMARY_ACTION_TYPE", "purchase"),
            google_client_id=_env("GOOGLE_CLIENT_ID"),
            google_client_secret=_env("GOOGLE_CLIENT_SECRET"),
            google_ads_developer_token=_env("GOOGLE_ADS_DEVELOPER_TOKEN"),
            google_ads_mcc_id=_env("GOOGLE_ADS_MCC_ID"),
            google_ads_api_version=_env("GOOGLE_ADS_API_VERSION", "v17"),
            ga4_conversion_metric=_env("GA4_CONVERSION_METRIC", "conversions"),
            lookback_days=int(_env("SYNC_LOOKBACK_DAYS", "30")),
            redis_url=_env("REDIS_URL"),
        )

    def secrets(self) -> list[Optional[str]]:
        """Values that must be redacted from logged text."""
        return [
            self.cron_secret,
            self.meta_access_token,
            self.google_client_secret,
            self.google_ads_developer_token,
        ]
