"""
Credential lifecycle manager.

Answers "give me a currently-valid access token for provider P and user
U": reuse the stored token while it is valid, otherwise refresh it
through the provider's client and persist the result before returning.

Rules:
- Static credentials (HubSpot private-app tokens) are returned as-is
- A credential without expiry is always valid
- The refreshed token is written to the TokenStore before it is returned;
  a failed write fails the call (PersistenceFailedError)
- A provider that does not rotate refresh tokens keeps the old one
- No retries: each call makes at most one refresh attempt
- Refresh-then-write runs under a per-(user, provider) lock, and the
  credential is re-read under the lock so a concurrent refresh is reused

Usage:
    manager = CredentialLifecycleManager(
        token_store=UserSettingsTokenStore(db_session),
        refresh_clients=build_refresh_clients(settings),
    )
    bundle = await manager.get_valid_token(user_id, Provider.HUBSPOT)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional

from src.credentials.errors import (
    CredentialError,
    NotConnectedError,
    PersistenceFailedError,
    RefreshFailedError,
    TokenStoreWriteError,
)
from src.credentials.locks import InProcessRefreshLock, RefreshLockProvider
from src.credentials.providers import ProviderRefreshClient, utc_now
from src.credentials.redaction import AuditEventType, CredentialAuditLogger
from src.credentials.store import TokenStore
from src.credentials.types import (
    Credential,
    CredentialUpdate,
    Provider,
    TokenBundle,
)

logger = logging.getLogger(__name__)


@dataclass
class ConnectionStatus:
    """
    Connection state of one provider for one user.

    SECURITY: Does NOT include token values.
    """
    provider: str
    connected: bool
    connection_kind: Optional[str] = None
    expires_at: Optional[datetime] = None
    needs_reconnect: bool = False
    error_code: Optional[str] = None


class CredentialLifecycleManager:
    """Keeps per-user Google and HubSpot access tokens valid."""

    def __init__(
        self,
        token_store: TokenStore,
        refresh_clients: Mapping[Provider, ProviderRefreshClient],
        lock_provider: Optional[RefreshLockProvider] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.token_store = token_store
        self.refresh_clients: Dict[Provider, ProviderRefreshClient] = dict(refresh_clients)
        self.lock_provider = lock_provider if lock_provider is not None else InProcessRefreshLock()
        self._clock = clock

    async def get_valid_token(self, user_id: str, provider: Provider) -> TokenBundle:
        """
        Return a valid token bundle for (user_id, provider).

        Raises:
            NotConnectedError: No credential, or expired with no refresh token
            RefreshFailedError: The provider refresh exchange failed
            PersistenceFailedError: The refreshed token could not be saved
        """
        provider = Provider(provider)
        credential = await self._load(user_id, provider)

        if credential.is_static:
            return TokenBundle(access_token=credential.access_token)

        if not credential.is_expired(self._clock()):
            return credential.to_bundle()

        if not credential.refresh_token:
            logger.warning(
                "Access token expired and no refresh token on file",
                extra={"user_id": user_id, "provider": provider.value},
            )
            raise NotConnectedError(provider.value, reason="expired_without_refresh_token")

        async with self.lock_provider.acquire(user_id, provider):
            # Another request may have refreshed while we waited for the lock
            current = await self._load(user_id, provider)
            if current.is_static or not current.is_expired(self._clock()):
                logger.info(
                    "Token already refreshed by concurrent request",
                    extra={"user_id": user_id, "provider": provider.value},
                )
                if current.is_static:
                    return TokenBundle(access_token=current.access_token)
                return current.to_bundle()
            if not current.refresh_token:
                raise NotConnectedError(provider.value, reason="expired_without_refresh_token")

            return await self._refresh_and_store(user_id, current)

    async def get_auth_headers(self, user_id: str, provider: Provider) -> Dict[str, str]:
        """Authorization header for a provider API call."""
        bundle = await self.get_valid_token(user_id, provider)
        return {"Authorization": f"Bearer {bundle.access_token}"}

    async def connection_status(self, user_id: str) -> List[ConnectionStatus]:
        """
        Report each provider's connection state, refreshing expired tokens.

        Credential errors are reported in the result instead of raised.
        """
        statuses = []
        for provider in Provider:
            try:
                bundle = await self.get_valid_token(user_id, provider)
            except CredentialError as e:
                statuses.append(ConnectionStatus(
                    provider=provider.value,
                    connected=False,
                    needs_reconnect=e.reconnect_required,
                    error_code=e.code,
                ))
                continue

            credential = await self.token_store.read(user_id, provider)
            statuses.append(ConnectionStatus(
                provider=provider.value,
                connected=True,
                connection_kind=credential.connection_kind.value if credential else None,
                expires_at=bundle.expires_at,
            ))
        return statuses

    async def _load(self, user_id: str, provider: Provider) -> Credential:
        credential = await self.token_store.read(user_id, provider)
        if credential is None or not credential.access_token:
            raise NotConnectedError(provider.value)
        return credential

    async def _refresh_and_store(self, user_id: str, credential: Credential) -> TokenBundle:
        provider = credential.provider
        audit = CredentialAuditLogger(user_id)

        client = self.refresh_clients.get(provider)
        if client is None:
            logger.error(
                "No refresh client registered for provider",
                extra={"user_id": user_id, "provider": provider.value},
            )
            raise RefreshFailedError(provider.value, "no refresh client configured")

        logger.info(
            "Access token expired, refreshing",
            extra={"user_id": user_id, "provider": provider.value},
        )

        try:
            refreshed = await client.refresh(credential.refresh_token)
        except RefreshFailedError as e:
            audit.log_error(provider.value, e.detail)
            raise

        # Keep the stored refresh token when the provider did not rotate it
        refresh_token = refreshed.refresh_token or credential.refresh_token

        try:
            await self.token_store.write(
                user_id,
                provider,
                CredentialUpdate(
                    access_token=refreshed.access_token,
                    refresh_token=refreshed.refresh_token,
                    expires_at=refreshed.expires_at,
                    clear_expires_at=refreshed.expires_at is None,
                ),
            )
        except TokenStoreWriteError as e:
            audit.log_error(provider.value, "Failed to update tokens in database")
            raise PersistenceFailedError(provider.value) from e

        audit.log(
            event_type=AuditEventType.CREDENTIAL_REFRESHED,
            provider=provider.value,
            metadata={
                "new_expires_at": (
                    refreshed.expires_at.isoformat() if refreshed.expires_at else None
                ),
            },
        )

        return TokenBundle(
            access_token=refreshed.access_token,
            refresh_token=refresh_token,
            expires_at=refreshed.expires_at,
        )
