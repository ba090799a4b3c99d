"""Provider adapters (Meta Ads, Google Ads, GA4)."""
from .base import ProviderAdapter
from .exceptions import (
    AuthError,
    ConfigurationError,
    ProviderError,
    StorageError,
    SyncPipelineError,
)
from .ga4 import GA4Adapter
from .google_ads import GoogleAdsAdapter
from .meta import MetaAdsAdapter

__all__ = [
    "AuthError",
    "ConfigurationError",
    "GA4Adapter",
    "GoogleAdsAdapter",
    "MetaAdsAdapter",
    "ProviderAdapter",
    "ProviderError",
    "StorageError",
    "SyncPipelineError",
]
