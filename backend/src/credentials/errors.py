"""
Credential error hierarchy.

Provides:
- CredentialError: base for all credential lifecycle failures
- NotConnectedError: no credential on file, or expired with no refresh path
- RefreshFailedError: provider rejected or could not complete a refresh
- PersistenceFailedError: refresh succeeded but the new token was not saved
- TokenStoreWriteError: raised by token stores when a write fails

NotConnectedError and RefreshFailedError both mean "ask the user to
reconnect"; they stay distinct so diagnostics can tell them apart.
"""

from typing import Optional

from fastapi import status

from src.platform.errors import AppError


class CredentialError(AppError):
    """Base exception for credential lifecycle failures."""

    def __init__(
        self,
        code: str,
        message: str,
        provider: str,
        status_code: int,
        reconnect_required: bool,
    ):
        self.provider = provider
        self.reconnect_required = reconnect_required
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details={
                "provider": provider,
                "reconnect_required": reconnect_required,
            },
        )


class NotConnectedError(CredentialError):
    """No usable credential; the user must reconnect the provider."""

    def __init__(self, provider: str, reason: str = "not_connected"):
        self.reason = reason
        super().__init__(
            code="NOT_CONNECTED",
            message=f"Please reconnect {provider}",
            provider=provider,
            status_code=status.HTTP_409_CONFLICT,
            reconnect_required=True,
        )
        self.details["reason"] = reason


class RefreshFailedError(CredentialError):
    """Provider rejected the refresh attempt (revoked, invalid grant, network)."""

    def __init__(
        self,
        provider: str,
        detail: str,
        provider_status: Optional[int] = None,
    ):
        self.detail = detail
        self.provider_status = provider_status
        super().__init__(
            code="REFRESH_FAILED",
            message=f"Token refresh failed for {provider}: {detail}",
            provider=provider,
            status_code=status.HTTP_502_BAD_GATEWAY,
            reconnect_required=True,
        )
        if provider_status is not None:
            self.details["provider_status"] = provider_status


class PersistenceFailedError(CredentialError):
    """
    A refreshed token could not be saved.

    The operation fails even though a usable token existed, so stored
    state never drifts from provider-side state.
    """

    def __init__(self, provider: str, detail: str = "Failed to update tokens in database"):
        self.detail = detail
        super().__init__(
            code="PERSISTENCE_FAILED",
            message=detail,
            provider=provider,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            reconnect_required=False,
        )


class TokenStoreWriteError(Exception):
    """Raised by a TokenStore when a write cannot be committed."""
    pass
