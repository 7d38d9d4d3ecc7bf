"""Tests for the credential exchange and the boundary client."""

import httpx
import pytest

from voicelink.errors import CredentialError, EmptyCredentialError
from voicelink.services.credential_exchange import CredentialExchange
from voicelink.services.signed_url_client import SignedUrlClient

BASE_URL = "https://api.elevenlabs.io/v1/convai"


def make_exchange(handler, api_key="sk-test") -> CredentialExchange:
    return CredentialExchange(
        api_key=api_key,
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
    )


class TestCredentialExchange:
    """Tests for CredentialExchange."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test request shape and signed URL extraction."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"signed_url": "wss://signed/1"})

        signed_url = await make_exchange(handler).request_signed_url("agent-1")

        assert signed_url == "wss://signed/1"
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/v1/convai/conversation/get_signed_url"
        assert request.url.params["agent_id"] == "agent-1"
        assert request.headers["xi-api-key"] == "sk-test"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["cache-control"] == "no-store"
        assert request.content == b""

    @pytest.mark.asyncio
    async def test_every_call_reaches_endpoint(self):
        """Test that nothing is cached between calls."""
        count = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal count
            count += 1
            return httpx.Response(200, json={"signed_url": f"wss://signed/{count}"})

        exchange = make_exchange(handler)
        first = await exchange.request_signed_url("agent-1")
        second = await exchange.request_signed_url("agent-1")

        assert count == 2
        assert first != second

    @pytest.mark.asyncio
    async def test_json_error_body(self):
        """Test that a JSON error body is folded into the message."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"detail": {"status": "invalid_api_key"}})

        with pytest.raises(CredentialError) as exc_info:
            await make_exchange(handler).request_signed_url("agent-1")

        error = exc_info.value
        assert str(error) == (
            'API request failed with status 401 - {"detail":{"status":"invalid_api_key"}}'
        )
        assert error.status_code == 401
        assert error.detail == {"detail": {"status": "invalid_api_key"}}

    @pytest.mark.asyncio
    async def test_non_ascii_error_body_kept_readable(self):
        """Test that non-ASCII text in a JSON error body is not escaped."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"detail": "Clé API invalide"})

        with pytest.raises(CredentialError) as exc_info:
            await make_exchange(handler).request_signed_url("agent-1")

        assert str(exc_info.value) == (
            'API request failed with status 400 - {"detail":"Clé API invalide"}'
        )

    @pytest.mark.asyncio
    async def test_text_error_body(self):
        """Test that a plain-text error body is kept as text."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        with pytest.raises(CredentialError) as exc_info:
            await make_exchange(handler).request_signed_url("agent-1")

        assert str(exc_info.value) == "API request failed with status 503 - Service Unavailable"
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_network_failure(self):
        """Test that an unreachable host becomes a CredentialError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(CredentialError, match="Connection refused") as exc_info:
            await make_exchange(handler).request_signed_url("agent-1")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_missing_signed_url(self):
        """Test that a success without signed_url is an EmptyCredentialError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"signed_url": ""})

        with pytest.raises(EmptyCredentialError):
            await make_exchange(handler).request_signed_url("agent-1")

    @pytest.mark.asyncio
    async def test_non_json_success(self):
        """Test that an unparseable success body is a CredentialError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(CredentialError) as exc_info:
            await make_exchange(handler).request_signed_url("agent-1")

        assert not isinstance(exc_info.value, EmptyCredentialError)

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Test that no request is made without an API key."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("request should not be sent")

        with pytest.raises(CredentialError, match="not configured"):
            await make_exchange(handler, api_key=None).request_signed_url("agent-1")

    @pytest.mark.asyncio
    async def test_empty_agent_id(self):
        """Test that an empty agent id is rejected."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("request should not be sent")

        with pytest.raises(ValueError):
            await make_exchange(handler).request_signed_url("")


class TestSignedUrlClient:
    """Tests for SignedUrlClient."""

    @pytest.mark.asyncio
    async def test_success_without_api_key(self):
        """Test that the boundary client never sends an API key."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"signed_url": "wss://signed/2"})

        client = SignedUrlClient("http://localhost:8010/", transport=httpx.MockTransport(handler))
        assert await client.request_signed_url("agent-1") == "wss://signed/2"

        request = seen[0]
        assert str(request.url) == "http://localhost:8010/api/signed-url?agent_id=agent-1"
        assert "xi-api-key" not in request.headers

    @pytest.mark.asyncio
    async def test_boundary_error(self):
        """Test that a boundary 502 keeps its detail."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, json={"detail": "API request failed with status 401 - denied"})

        client = SignedUrlClient("http://localhost:8010", transport=httpx.MockTransport(handler))
        with pytest.raises(CredentialError, match="status 502") as exc_info:
            await client.request_signed_url("agent-1")

        assert "status 401" in str(exc_info.value)
        assert exc_info.value.status_code == 502
