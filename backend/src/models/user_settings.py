"""
UserSettings model - per-user connection state for Google and HubSpot.

SECURITY REQUIREMENTS:
- Token columns are encrypted at rest using ENCRYPTION_KEY env var
- No plaintext tokens outside process memory
- repr and to_safe_dict never include token values

HubSpot supports two connection kinds:
- oauth: access/refresh token pair with an expiry
- pat / paid: a private-app token that never expires, stored in
  hubspot_token_encrypted
Google is always connected through OAuth.
"""

import enum

from sqlalchemy import Column, String, DateTime, Text, Enum

from src.db_base import Base
from src.models.base import TimestampMixin, generate_uuid


class HubSpotConnectionType(str, enum.Enum):
    """How the user connected HubSpot."""
    OAUTH = "oauth"
    PAT = "pat"
    PAID = "paid"


STATIC_HUBSPOT_CONNECTION_TYPES = frozenset({
    HubSpotConnectionType.PAT,
    HubSpotConnectionType.PAID,
})


class UserSettings(Base, TimestampMixin):
    """
    One row per dashboard user.

    SECURITY:
    - *_token columns hold Fernet ciphertext - NEVER log them
    - Expiry timestamps and connection types are safe to log
    """

    __tablename__ = "user_settings"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )
    user_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Dashboard user ID"
    )

    # Google Sheets - NEVER log these values
    google_access_token = Column(
        Text,
        nullable=True,
        comment="Encrypted Google access token"
    )
    google_refresh_token = Column(
        Text,
        nullable=True,
        comment="Encrypted Google refresh token"
    )
    google_token_expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the Google access token expires"
    )

    # HubSpot - NEVER log these values
    hubspot_access_token = Column(
        Text,
        nullable=True,
        comment="Encrypted HubSpot OAuth access token"
    )
    hubspot_refresh_token = Column(
        Text,
        nullable=True,
        comment="Encrypted HubSpot OAuth refresh token"
    )
    hubspot_token_expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the HubSpot access token expires"
    )
    hubspot_token_encrypted = Column(
        Text,
        nullable=True,
        comment="Encrypted HubSpot private-app token"
    )
    hubspot_connection_type = Column(
        Enum(HubSpotConnectionType),
        nullable=True,
        comment="oauth, pat or paid"
    )

    def __repr__(self) -> str:
        """Safe repr - NEVER include token values."""
        return (
            f"<UserSettings("
            f"user_id={self.user_id}, "
            f"hubspot_connection_type={self.hubspot_connection_type})>"
        )

    @property
    def is_hubspot_static(self) -> bool:
        return self.hubspot_connection_type in STATIC_HUBSPOT_CONNECTION_TYPES

    def to_safe_dict(self) -> dict:
        """
        Return dictionary safe for logging/API responses.

        SECURITY: Excludes all token values.
        """
        return {
            "user_id": self.user_id,
            "google_connected": self.google_access_token is not None,
            "google_token_expires_at": (
                self.google_token_expires_at.isoformat()
                if self.google_token_expires_at else None
            ),
            "hubspot_connected": (
                self.hubspot_token_encrypted is not None
                if self.is_hubspot_static
                else self.hubspot_access_token is not None
            ),
            "hubspot_connection_type": (
                self.hubspot_connection_type.value
                if self.hubspot_connection_type else None
            ),
            "hubspot_token_expires_at": (
                self.hubspot_token_expires_at.isoformat()
                if self.hubspot_token_expires_at else None
            ),
        }
