"""
Central configuration loaded from environment variables with sensible defaults.
All secrets come from env vars; no hardcoded credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class SiteServiceConfig:
    # Settings service that owns tenant (site) definitions
    host: str = os.getenv("SITE_SERVICE_HOST", "")
    settings_endpoint: str = "/api/settings"
    site_name: str = os.getenv("SITE_NAME", "")
    request_timeout: float = float(os.getenv("SITE_SERVICE_TIMEOUT", "10"))
    cache_ttl_seconds: float = float(os.getenv("SITE_CONFIG_TTL_SECONDS", "3600"))

    @property
    def settings_url(self) -> str:
        return f"{self.host.rstrip('/')}{self.settings_endpoint}"


@dataclass(frozen=True)
class ReferenceStoreConfig:
    localities_table: str = os.getenv("LOCALITIES_TABLE", "localities")
    alternate_names_column: str = os.getenv("ALTERNATE_NAMES_COLUMN", "alternatenames")
    geometry_column: str = os.getenv("GEOMETRY_COLUMN", "geog")
    # "en:name,ar:ar_name"; empty means the built-in table
    language_columns: str = os.getenv("LANGUAGE_COLUMNS", "")
    query_timeout: float = float(os.getenv("REFERENCE_QUERY_TIMEOUT", "15"))
    min_pool_size: int = int(os.getenv("REFERENCE_POOL_MIN", "1"))
    max_pool_size: int = int(os.getenv("REFERENCE_POOL_MAX", "5"))


@dataclass(frozen=True)
class ProfileStoreConfig:
    dsn: str = os.getenv("PROFILE_STORE_DSN", "")
    table: str = os.getenv("PROFILE_TABLE", "author_profiles")
    query_timeout: float = float(os.getenv("PROFILE_QUERY_TIMEOUT", "5"))


@dataclass(frozen=True)
class ResolutionConfig:
    # Property name carrying the author id on profile-derived features
    author_ref_field: str = os.getenv("AUTHOR_REF_FIELD", "authorRef")
    # Gazetteer names shorter than this are too noisy to match on
    min_name_length: int = int(os.getenv("MIN_NAME_LENGTH", "3"))


@dataclass(frozen=True)
class Settings:
    site_service: SiteServiceConfig = field(default_factory=SiteServiceConfig)
    reference_store: ReferenceStoreConfig = field(default_factory=ReferenceStoreConfig)
    profile_store: ProfileStoreConfig = field(default_factory=ProfileStoreConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
