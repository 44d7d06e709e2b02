"""
Value types shared by the credential lifecycle components.

SECURITY: Credential and TokenBundle hold plaintext tokens in memory.
Their reprs hide token values; never log them directly.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class Provider(str, enum.Enum):
    """External providers whose tokens are managed."""
    GOOGLE = "google"
    HUBSPOT = "hubspot"


class ConnectionKind(str, enum.Enum):
    """
    How a credential was issued.

    STATIC credentials (HubSpot private-app tokens) never expire and are
    never refreshed.
    """
    OAUTH = "oauth"
    STATIC = "static"


@dataclass(frozen=True)
class TokenBundle:
    """Access token plus optional refresh token and expiry."""
    access_token: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None

    def to_safe_dict(self) -> dict:
        return {
            "has_refresh_token": self.refresh_token is not None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class Credential:
    """Stored credential for one (user, provider) pair."""
    provider: Provider
    access_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None
    connection_kind: ConnectionKind = ConnectionKind.OAUTH

    @property
    def is_static(self) -> bool:
        return self.connection_kind == ConnectionKind.STATIC

    def is_expired(self, now: datetime) -> bool:
        """Static credentials and credentials without expiry never expire."""
        if self.is_static or self.expires_at is None:
            return False
        return now >= self.expires_at

    def to_bundle(self) -> TokenBundle:
        return TokenBundle(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
        )


@dataclass(frozen=True)
class CredentialUpdate:
    """
    Partial write to a stored credential.

    Fields left as None are not written. clear_expires_at stores "does
    not expire" when a provider returns no lifetime.
    """
    access_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None
    clear_expires_at: bool = False
