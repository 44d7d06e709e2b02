"""
Tests for the Google and HubSpot refresh clients.

Provider token endpoints are simulated with httpx.MockTransport; no
network access is made.
"""

from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from src.config.settings import Settings
from src.credentials.errors import RefreshFailedError
from src.credentials.providers import (
    GOOGLE_TOKEN_URL,
    HUBSPOT_TOKEN_URL,
    GoogleRefreshClient,
    HubSpotRefreshClient,
    build_refresh_clients,
)
from src.credentials.types import Provider
from src.tests.fakes import FIXED_NOW


class RecordingHandler:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, status_code=200, json_body=None, content=None, error=None):
        self.status_code = status_code
        self.json_body = json_body
        self.content = content
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json_body)

    def form(self, index=0):
        parsed = parse_qs(self.requests[index].content.decode("utf-8"))
        return {key: values[0] for key, values in parsed.items()}


def google_client(handler):
    return GoogleRefreshClient(
        client_id="google-client",
        client_secret="google-secret",
        redirect_uri="https://app.example.com/api/auth/google/callback",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=lambda: FIXED_NOW,
    )


def hubspot_client(handler):
    return HubSpotRefreshClient(
        client_id="hubspot-client",
        client_secret="hubspot-secret",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=lambda: FIXED_NOW,
    )


def connect_error(request):
    return httpx.ConnectError("connection refused", request=request)


# ============================================================================
# TEST SUITE: GOOGLE
# ============================================================================

class TestGoogleRefreshClient:

    @pytest.mark.asyncio
    async def test_posts_refresh_grant_to_google(self):
        handler = RecordingHandler(json_body={"access_token": "new-access", "expires_in": 3599})

        await google_client(handler).refresh("stored-refresh")

        request = handler.requests[0]
        assert str(request.url) == GOOGLE_TOKEN_URL
        assert request.method == "POST"
        assert handler.form() == {
            "client_id": "google-client",
            "client_secret": "google-secret",
            "refresh_token": "stored-refresh",
            "grant_type": "refresh_token",
        }

    @pytest.mark.asyncio
    async def test_expiry_computed_from_expires_in(self):
        handler = RecordingHandler(json_body={"access_token": "new-access", "expires_in": 3599})

        bundle = await google_client(handler).refresh("stored-refresh")

        assert bundle.access_token == "new-access"
        assert bundle.expires_at == FIXED_NOW + timedelta(seconds=3599)
        assert bundle.refresh_token is None

    @pytest.mark.asyncio
    async def test_missing_expires_in_defaults_to_one_hour(self):
        handler = RecordingHandler(json_body={"access_token": "new-access"})

        bundle = await google_client(handler).refresh("stored-refresh")

        assert bundle.expires_at == FIXED_NOW + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_zero_expires_in_expires_immediately(self):
        handler = RecordingHandler(json_body={"access_token": "new-access", "expires_in": 0})

        bundle = await google_client(handler).refresh("stored-refresh")

        assert bundle.expires_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_rejected_refresh_raises_with_provider_status(self):
        handler = RecordingHandler(status_code=400, json_body={"error": "invalid_grant"})

        with pytest.raises(RefreshFailedError) as exc_info:
            await google_client(handler).refresh("revoked-refresh")

        assert exc_info.value.provider == "google"
        assert exc_info.value.provider_status == 400
        assert "invalid_grant" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises_refresh_failed(self):
        handler = RecordingHandler(error=connect_error)

        with pytest.raises(RefreshFailedError) as exc_info:
            await google_client(handler).refresh("stored-refresh")

        assert "ConnectError" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_empty_refresh_token_rejected_without_request(self):
        handler = RecordingHandler(json_body={"access_token": "unused"})

        with pytest.raises(RefreshFailedError):
            await google_client(handler).refresh("")

        assert handler.requests == []


# ============================================================================
# TEST SUITE: HUBSPOT
# ============================================================================

class TestHubSpotRefreshClient:

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_returned(self):
        handler = RecordingHandler(json_body={
            "access_token": "new-access",
            "refresh_token": "new-refresh",
            "expires_in": 1800,
        })

        bundle = await hubspot_client(handler).refresh("stored-refresh")

        assert str(handler.requests[0].url) == HUBSPOT_TOKEN_URL
        assert handler.form()["grant_type"] == "refresh_token"
        assert handler.form()["client_id"] == "hubspot-client"
        assert bundle.refresh_token == "new-refresh"
        assert bundle.expires_at == FIXED_NOW + timedelta(seconds=1800)

    @pytest.mark.asyncio
    async def test_no_expires_in_means_no_expiry(self):
        handler = RecordingHandler(json_body={"access_token": "new-access"})

        bundle = await hubspot_client(handler).refresh("stored-refresh")

        assert bundle.expires_at is None

    @pytest.mark.asyncio
    async def test_zero_expires_in_string_is_not_treated_as_no_expiry(self):
        handler = RecordingHandler(json_body={"access_token": "new-access", "expires_in": "0"})

        bundle = await hubspot_client(handler).refresh("stored-refresh")

        assert bundle.expires_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_response_without_access_token_fails(self):
        handler = RecordingHandler(json_body={"refresh_token": "new-refresh"})

        with pytest.raises(RefreshFailedError) as exc_info:
            await hubspot_client(handler).refresh("stored-refresh")

        assert "no access_token" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_invalid_json_fails(self):
        handler = RecordingHandler(content=b"<html>bad gateway</html>")

        with pytest.raises(RefreshFailedError) as exc_info:
            await hubspot_client(handler).refresh("stored-refresh")

        assert "invalid JSON" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_invalid_expires_in_fails(self):
        handler = RecordingHandler(json_body={"access_token": "new-access", "expires_in": "soon"})

        with pytest.raises(RefreshFailedError):
            await hubspot_client(handler).refresh("stored-refresh")

    @pytest.mark.asyncio
    async def test_server_error_raises_refresh_failed(self):
        handler = RecordingHandler(status_code=503, json_body={})

        with pytest.raises(RefreshFailedError) as exc_info:
            await hubspot_client(handler).refresh("stored-refresh")

        assert exc_info.value.details["provider_status"] == 503


# ============================================================================
# TEST SUITE: CLIENT REGISTRY
# ============================================================================

class TestBuildRefreshClients:

    def test_configured_providers_registered(self):
        settings = Settings(
            google_client_id="g-id",
            google_client_secret="g-secret",
            hubspot_client_id="h-id",
            hubspot_client_secret="h-secret",
        )

        clients = build_refresh_clients(settings)

        assert isinstance(clients[Provider.GOOGLE], GoogleRefreshClient)
        assert isinstance(clients[Provider.HUBSPOT], HubSpotRefreshClient)

    def test_unconfigured_provider_omitted(self):
        settings = Settings(google_client_id="g-id", google_client_secret="g-secret")

        clients = build_refresh_clients(settings)

        assert set(clients) == {Provider.GOOGLE}

    def test_partial_configuration_is_unconfigured(self):
        settings = Settings(hubspot_client_id="h-id")

        assert build_refresh_clients(settings) == {}
