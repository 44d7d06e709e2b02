"""
FastAPI dependencies for the credential and import services.

Refresh clients and the refresh lock are process-wide: the lock must be
shared between requests to serialize refreshes, and the clients carry
only OAuth app configuration.
"""

import logging
from typing import Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.cache.ttl_cache import TTLCache
from src.config.settings import load_settings
from src.credentials.locks import RefreshLockProvider, build_refresh_lock
from src.credentials.manager import CredentialLifecycleManager
from src.credentials.providers import ProviderRefreshClient, build_refresh_clients
from src.credentials.store import UserSettingsTokenStore
from src.credentials.types import Provider
from src.database.session import get_db_session
from src.platform.errors import AuthenticationError

logger = logging.getLogger(__name__)

_refresh_clients: Optional[Dict[Provider, ProviderRefreshClient]] = None
_refresh_lock: Optional[RefreshLockProvider] = None


def get_current_user_id(request: Request) -> str:
    """
    User id placed on request.state by the upstream auth layer.

    Raises:
        AuthenticationError: If no user is attached to the request
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthenticationError()
    return user_id


def get_refresh_clients() -> Dict[Provider, ProviderRefreshClient]:
    global _refresh_clients
    if _refresh_clients is None:
        _refresh_clients = build_refresh_clients(load_settings())
    return _refresh_clients


def get_refresh_lock() -> RefreshLockProvider:
    global _refresh_lock
    if _refresh_lock is None:
        settings = load_settings()
        _refresh_lock = build_refresh_lock(
            settings.refresh_lock_backend,
            settings.redis_url,
            settings.refresh_lock_timeout_seconds,
        )
    return _refresh_lock


def get_snapshot_cache() -> TTLCache:
    """
    Request-scoped snapshot cache.

    Shared by the row lookups of one import only, so a re-export is picked
    up by the next request.
    """
    return TTLCache()


def get_credential_manager(
    db_session: Session = Depends(get_db_session),
) -> CredentialLifecycleManager:
    return CredentialLifecycleManager(
        token_store=UserSettingsTokenStore(db_session),
        refresh_clients=get_refresh_clients(),
        lock_provider=get_refresh_lock(),
    )
