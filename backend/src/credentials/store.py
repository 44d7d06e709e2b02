"""
Token storage for Google and HubSpot credentials.

SECURITY REQUIREMENTS:
- Tokens are encrypted at rest before storage
- No plaintext tokens outside process memory
- User-scoped access only

TokenStore is the persistence seam used by CredentialLifecycleManager.
UserSettingsTokenStore implements it over the user_settings table.

Usage:
    store = UserSettingsTokenStore(db_session)

    # Read the stored credential for a provider
    credential = await store.read(user_id, Provider.HUBSPOT)

    # Partial write after a refresh (None fields are left untouched)
    await store.write(user_id, Provider.HUBSPOT, CredentialUpdate(
        access_token=new_token,
        expires_at=new_expiry,
    ))
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.credentials.encryption import (
    CredentialEncryptionError,
    decrypt_token,
    encrypt_token,
)
from src.credentials.errors import TokenStoreWriteError
from src.credentials.redaction import AuditEventType, CredentialAuditLogger
from src.credentials.types import (
    ConnectionKind,
    Credential,
    CredentialUpdate,
    Provider,
)
from src.models.user_settings import HubSpotConnectionType, UserSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ProviderColumns:
    access_token: str
    refresh_token: str
    expires_at: str


_OAUTH_COLUMNS = {
    Provider.GOOGLE: _ProviderColumns(
        access_token="google_access_token",
        refresh_token="google_refresh_token",
        expires_at="google_token_expires_at",
    ),
    Provider.HUBSPOT: _ProviderColumns(
        access_token="hubspot_access_token",
        refresh_token="hubspot_refresh_token",
        expires_at="hubspot_token_expires_at",
    ),
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TokenStore(ABC):
    """Persistent per-user credential record."""

    @abstractmethod
    async def read(self, user_id: str, provider: Provider) -> Optional[Credential]:
        """Return the stored credential, or None if the user has none."""

    @abstractmethod
    async def write(self, user_id: str, provider: Provider, update: CredentialUpdate) -> None:
        """
        Persist the non-None fields of update.

        Raises:
            TokenStoreWriteError: If the write cannot be committed
        """


class UserSettingsTokenStore(TokenStore):
    """
    TokenStore backed by the user_settings table.

    Every write commits before returning, so a caller never observes a
    token that is not durably stored.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def _get_settings(self, user_id: str) -> Optional[UserSettings]:
        return self.db.query(UserSettings).filter(
            UserSettings.user_id == user_id,
        ).first()

    async def read(self, user_id: str, provider: Provider) -> Optional[Credential]:
        settings = self._get_settings(user_id)
        if settings is None:
            return None

        if provider == Provider.HUBSPOT and settings.is_hubspot_static:
            if not settings.hubspot_token_encrypted:
                return Credential(provider=provider, connection_kind=ConnectionKind.STATIC)
            return Credential(
                provider=provider,
                access_token=await decrypt_token(settings.hubspot_token_encrypted),
                connection_kind=ConnectionKind.STATIC,
            )

        columns = _OAUTH_COLUMNS[provider]
        access_encrypted = getattr(settings, columns.access_token)
        refresh_encrypted = getattr(settings, columns.refresh_token)

        return Credential(
            provider=provider,
            access_token=await decrypt_token(access_encrypted) if access_encrypted else None,
            refresh_token=await decrypt_token(refresh_encrypted) if refresh_encrypted else None,
            expires_at=_as_utc(getattr(settings, columns.expires_at)),
            connection_kind=ConnectionKind.OAUTH,
        )

    async def write(self, user_id: str, provider: Provider, update: CredentialUpdate) -> None:
        columns = _OAUTH_COLUMNS[provider]
        try:
            settings = self._get_settings(user_id)
            if settings is None:
                raise TokenStoreWriteError(f"No settings row for user {user_id}")

            if update.access_token is not None:
                setattr(settings, columns.access_token, await encrypt_token(update.access_token))
            if update.refresh_token is not None:
                setattr(settings, columns.refresh_token, await encrypt_token(update.refresh_token))
            if update.expires_at is not None:
                setattr(settings, columns.expires_at, update.expires_at)
            elif update.clear_expires_at:
                setattr(settings, columns.expires_at, None)

            self.db.commit()
        except (SQLAlchemyError, CredentialEncryptionError) as e:
            self.db.rollback()
            logger.error(
                "Failed to update tokens in database",
                extra={
                    "user_id": user_id,
                    "provider": provider.value,
                    "error_type": type(e).__name__,
                }
            )
            raise TokenStoreWriteError(str(e)) from e

        logger.info(
            "Stored refreshed tokens",
            extra={
                "user_id": user_id,
                "provider": provider.value,
                "expires_at": update.expires_at.isoformat() if update.expires_at else None,
                "refresh_rotated": update.refresh_token is not None,
            }
        )

    async def save_connection(
        self,
        user_id: str,
        provider: Provider,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        connection_type: HubSpotConnectionType = HubSpotConnectionType.OAUTH,
    ) -> UserSettings:
        """
        Replace the stored connection for a provider.

        Used by the OAuth callback and by private-app token entry. For
        HubSpot, pat/paid connection types store a static token and clear
        any OAuth token columns.

        Raises:
            ValueError: If access_token is empty or a static type is used for Google
            TokenStoreWriteError: If the write cannot be committed
        """
        if not access_token:
            raise ValueError("access_token is required")
        if provider == Provider.GOOGLE and connection_type != HubSpotConnectionType.OAUTH:
            raise ValueError("Google connections are always OAuth")

        try:
            settings = self._get_settings(user_id)
            if settings is None:
                settings = UserSettings(user_id=user_id)
                self.db.add(settings)

            columns = _OAUTH_COLUMNS[provider]
            is_static = (
                provider == Provider.HUBSPOT
                and connection_type != HubSpotConnectionType.OAUTH
            )

            if is_static:
                settings.hubspot_token_encrypted = await encrypt_token(access_token)
                setattr(settings, columns.access_token, None)
                setattr(settings, columns.refresh_token, None)
                setattr(settings, columns.expires_at, None)
            else:
                setattr(settings, columns.access_token, await encrypt_token(access_token))
                setattr(
                    settings,
                    columns.refresh_token,
                    await encrypt_token(refresh_token) if refresh_token else None,
                )
                setattr(settings, columns.expires_at, expires_at)
                if provider == Provider.HUBSPOT:
                    settings.hubspot_token_encrypted = None

            if provider == Provider.HUBSPOT:
                settings.hubspot_connection_type = connection_type

            self.db.commit()
        except (SQLAlchemyError, CredentialEncryptionError) as e:
            self.db.rollback()
            raise TokenStoreWriteError(str(e)) from e

        CredentialAuditLogger(user_id).log(
            event_type=AuditEventType.CREDENTIAL_CONNECTED,
            provider=provider.value,
            metadata={
                "connection_kind": (
                    ConnectionKind.STATIC.value if is_static else ConnectionKind.OAUTH.value
                ),
                "expires_at": expires_at.isoformat() if expires_at and not is_static else None,
            },
        )
        return settings
