"""
Database models for user connections and exported content snapshots.

All models are user-scoped.
"""

from src.models.base import TimestampMixin
from src.models.user_settings import (
    UserSettings,
    HubSpotConnectionType,
    STATIC_HUBSPOT_CONNECTION_TYPES,
)
from src.models.page_snapshot import PageSnapshot

__all__ = [
    "TimestampMixin",
    "UserSettings",
    "HubSpotConnectionType",
    "STATIC_HUBSPOT_CONNECTION_TYPES",
    "PageSnapshot",
]
