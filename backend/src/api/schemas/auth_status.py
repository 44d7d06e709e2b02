"""
Schemas for the provider connection status API.

SECURITY: token values are never part of these models.
"""

from typing import List, Optional

from pydantic import BaseModel

from src.credentials.manager import ConnectionStatus


class ProviderStatus(BaseModel):
    """Connection state of one provider."""

    provider: str
    connected: bool
    connection_kind: Optional[str] = None
    expires_at: Optional[str] = None
    needs_reconnect: bool = False
    error_code: Optional[str] = None


class AuthStatusResponse(BaseModel):
    providers: List[ProviderStatus]


def to_provider_status(status: ConnectionStatus) -> ProviderStatus:
    return ProviderStatus(
        provider=status.provider,
        connected=status.connected,
        connection_kind=status.connection_kind,
        expires_at=status.expires_at.isoformat() if status.expires_at else None,
        needs_reconnect=status.needs_reconnect,
        error_code=status.error_code,
    )
