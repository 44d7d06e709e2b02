"""
Credentials module for Google and HubSpot token lifecycle management.

This module provides:
- Encrypted per-user token storage (user_settings table)
- Provider refresh clients (Google, HubSpot) selected by provider key
- CredentialLifecycleManager: valid-token lookup with refresh-on-expiry
- Per-(user, provider) refresh locks
- Audit logging with automatic redaction

SECURITY:
- Tokens are encrypted at rest using ENCRYPTION_KEY
- No plaintext tokens outside process memory
- Tokens NEVER appear in logs or API responses

Usage:
    from src.credentials import (
        CredentialLifecycleManager,
        UserSettingsTokenStore,
        build_refresh_clients,
        Provider,
    )

    manager = CredentialLifecycleManager(
        token_store=UserSettingsTokenStore(db_session),
        refresh_clients=build_refresh_clients(settings),
    )
    bundle = await manager.get_valid_token(user_id, Provider.GOOGLE)
"""

from src.credentials.types import (
    ConnectionKind,
    Credential,
    CredentialUpdate,
    Provider,
    TokenBundle,
)
from src.credentials.errors import (
    CredentialError,
    NotConnectedError,
    RefreshFailedError,
    PersistenceFailedError,
    TokenStoreWriteError,
)
from src.credentials.encryption import (
    encrypt_token,
    decrypt_token,
    CredentialEncryptionError,
)
from src.credentials.store import TokenStore, UserSettingsTokenStore
from src.credentials.providers import (
    ProviderRefreshClient,
    GoogleRefreshClient,
    HubSpotRefreshClient,
    build_refresh_clients,
)
from src.credentials.locks import (
    RefreshLockProvider,
    InProcessRefreshLock,
    RedisRefreshLock,
    build_refresh_lock,
)
from src.credentials.manager import CredentialLifecycleManager, ConnectionStatus
from src.credentials.redaction import (
    redact_credential_data,
    CredentialAuditLogger,
    AuditEventType,
    setup_credential_logging,
)

__all__ = [
    # Types
    "ConnectionKind",
    "Credential",
    "CredentialUpdate",
    "Provider",
    "TokenBundle",
    # Errors
    "CredentialError",
    "NotConnectedError",
    "RefreshFailedError",
    "PersistenceFailedError",
    "TokenStoreWriteError",
    # Encryption
    "encrypt_token",
    "decrypt_token",
    "CredentialEncryptionError",
    # Store
    "TokenStore",
    "UserSettingsTokenStore",
    # Providers
    "ProviderRefreshClient",
    "GoogleRefreshClient",
    "HubSpotRefreshClient",
    "build_refresh_clients",
    # Locks
    "RefreshLockProvider",
    "InProcessRefreshLock",
    "RedisRefreshLock",
    "build_refresh_lock",
    # Manager
    "CredentialLifecycleManager",
    "ConnectionStatus",
    # Redaction & Audit
    "redact_credential_data",
    "CredentialAuditLogger",
    "AuditEventType",
    "setup_credential_logging",
]
