"""
Runtime settings loaded from environment variables.

OAuth client credentials are optional: a provider whose client id or
secret is missing simply has no refresh client registered, and expired
tokens for it fail with a refresh error instead of crashing startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite:///./bulk_edit.db"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"

# Latest-backup lookups are cached for 5 minutes
DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS = 300

# Lease held by a refresh lock before Redis expires it
DEFAULT_REFRESH_LOCK_TIMEOUT_SECONDS = 30

REFRESH_LOCK_BACKENDS = ("memory", "redis")


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of environment configuration."""
    database_url: str = DEFAULT_DATABASE_URL
    redis_url: str = DEFAULT_REDIS_URL
    encryption_key: Optional[str] = None
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_uri: Optional[str] = None
    hubspot_client_id: Optional[str] = None
    hubspot_client_secret: Optional[str] = None
    refresh_lock_backend: str = "memory"
    refresh_lock_timeout_seconds: int = DEFAULT_REFRESH_LOCK_TIMEOUT_SECONDS
    snapshot_cache_ttl_seconds: int = DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def hubspot_oauth_configured(self) -> bool:
        return bool(self.hubspot_client_id and self.hubspot_client_secret)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> Settings:
    """
    Read settings from the environment.

    Raises:
        ValueError: If a numeric setting is malformed or the lock backend
            is unknown
    """
    lock_backend = os.getenv("REFRESH_LOCK_BACKEND", "memory").strip().lower()
    if lock_backend not in REFRESH_LOCK_BACKENDS:
        raise ValueError(
            f"REFRESH_LOCK_BACKEND must be one of {REFRESH_LOCK_BACKENDS}, got {lock_backend!r}"
        )

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        redis_url=os.getenv("REDIS_URL", DEFAULT_REDIS_URL),
        encryption_key=os.getenv("ENCRYPTION_KEY"),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        google_redirect_uri=os.getenv("GOOGLE_REDIRECT_URI"),
        hubspot_client_id=os.getenv("HUBSPOT_CLIENT_ID"),
        hubspot_client_secret=os.getenv("HUBSPOT_CLIENT_SECRET"),
        refresh_lock_backend=lock_backend,
        refresh_lock_timeout_seconds=_int_env(
            "REFRESH_LOCK_TIMEOUT_SECONDS", DEFAULT_REFRESH_LOCK_TIMEOUT_SECONDS
        ),
        snapshot_cache_ttl_seconds=_int_env(
            "SNAPSHOT_CACHE_TTL_SECONDS", DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS
        ),
    )
