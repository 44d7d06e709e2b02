"""
Provider-specific OAuth refresh clients.

Each provider implements ProviderRefreshClient: exchange a refresh token
for a new TokenBundle. Clients are stateless apart from their OAuth app
configuration and are selected by a lookup keyed on Provider, so the
lifecycle manager never branches on provider name.

Differences between providers:
- Google may omit refresh_token (no rotation) and defaults to a
  one-hour lifetime when expires_in is missing.
- HubSpot usually rotates refresh_token and always returns expires_in.

SECURITY: token values are never logged; errors carry the provider's
HTTP status only.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import httpx

from src.config.settings import Settings
from src.credentials.errors import RefreshFailedError
from src.credentials.types import Provider, TokenBundle

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
HUBSPOT_TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"

GOOGLE_DEFAULT_EXPIRES_IN = 3600
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProviderRefreshClient(ABC):
    """Exchanges a refresh token for a new access token with one provider."""

    provider: Provider
    token_url: str

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = utc_now,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self._http_client = http_client
        self._clock = clock
        self._timeout = timeout

    @abstractmethod
    def _form_data(self, refresh_token: str) -> Dict[str, str]:
        """Body of the refresh_token grant request."""

    def _default_expires_in(self) -> Optional[int]:
        return None

    async def refresh(self, refresh_token: str) -> TokenBundle:
        """
        Perform one refresh exchange. No retries.

        Raises:
            RefreshFailedError: On transport errors, non-200 responses or
                a response without an access token
        """
        if not refresh_token:
            raise RefreshFailedError(self.provider.value, "No refresh token supplied")

        try:
            response = await self._post(self._form_data(refresh_token))
        except httpx.HTTPError as e:
            logger.error(
                "Token refresh request failed",
                extra={
                    "provider": self.provider.value,
                    "error_type": type(e).__name__,
                }
            )
            raise RefreshFailedError(
                self.provider.value, f"{type(e).__name__} contacting token endpoint"
            ) from e

        if response.status_code != 200:
            logger.error(
                "Token refresh rejected by provider",
                extra={
                    "provider": self.provider.value,
                    "provider_status": response.status_code,
                }
            )
            raise RefreshFailedError(
                self.provider.value,
                f"token endpoint returned {response.status_code}",
                provider_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RefreshFailedError(
                self.provider.value, "token endpoint returned invalid JSON"
            ) from e

        return self._parse_token_response(data)

    async def _post(self, form: Dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(self.token_url, data=form)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.token_url, data=form)

    def _parse_token_response(self, data: dict) -> TokenBundle:
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise RefreshFailedError(
                self.provider.value, "token endpoint response had no access_token"
            )

        expires_in = data.get("expires_in")
        if expires_in is None:
            expires_in = self._default_expires_in()
        expires_at = None
        if expires_in is not None:
            try:
                expires_at = self._clock() + timedelta(seconds=int(expires_in))
            except (TypeError, ValueError) as e:
                raise RefreshFailedError(
                    self.provider.value, f"invalid expires_in: {expires_in!r}"
                ) from e

        return TokenBundle(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expires_at=expires_at,
        )


class GoogleRefreshClient(ProviderRefreshClient):
    """Google OAuth 2.0 refresh for the Sheets connection."""

    provider = Provider.GOOGLE
    token_url = GOOGLE_TOKEN_URL

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        # Registered with the OAuth app; the refresh grant itself does not send it
        self.redirect_uri = redirect_uri

    def _form_data(self, refresh_token: str) -> Dict[str, str]:
        return {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

    def _default_expires_in(self) -> Optional[int]:
        return GOOGLE_DEFAULT_EXPIRES_IN


class HubSpotRefreshClient(ProviderRefreshClient):
    """HubSpot OAuth refresh for public-app connections."""

    provider = Provider.HUBSPOT
    token_url = HUBSPOT_TOKEN_URL

    def __init__(self, client_id: str, client_secret: str, **kwargs):
        super().__init__(**kwargs)
        self.client_id = client_id
        self.client_secret = client_secret

    def _form_data(self, refresh_token: str) -> Dict[str, str]:
        return {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
        }


def build_refresh_clients(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Dict[Provider, ProviderRefreshClient]:
    """
    Build the provider -> refresh client map from settings.

    Providers without configured OAuth app credentials are left out; an
    expired token for them fails with RefreshFailedError at refresh time.
    """
    clients: Dict[Provider, ProviderRefreshClient] = {}

    if settings.google_oauth_configured:
        clients[Provider.GOOGLE] = GoogleRefreshClient(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            http_client=http_client,
        )
    else:
        logger.warning(
            "Google OAuth app not configured; Google tokens cannot be refreshed",
            extra={"provider": Provider.GOOGLE.value},
        )

    if settings.hubspot_oauth_configured:
        clients[Provider.HUBSPOT] = HubSpotRefreshClient(
            client_id=settings.hubspot_client_id,
            client_secret=settings.hubspot_client_secret,
            http_client=http_client,
        )
    else:
        logger.warning(
            "HubSpot OAuth app not configured; HubSpot tokens cannot be refreshed",
            extra={"provider": Provider.HUBSPOT.value},
        )

    return clients
