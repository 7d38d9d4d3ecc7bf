"""Credential exchange: trade the server-held API key for a signed URL.

Runs on the trusted side only. The API key never leaves this module; the
session controller receives nothing but the single-use signed URL.
"""

import json
from typing import Optional

import httpx
import structlog

from voicelink.config import (
    API_KEY_HEADER,
    SIGNED_URL_PATH,
    Settings,
    get_settings,
)
from voicelink.errors import CredentialError, EmptyCredentialError

logger = structlog.get_logger()

# Signed URLs are single-use, so every call must reach the live endpoint.
NO_CACHE_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-store",
}


def error_from_response(response: httpx.Response) -> CredentialError:
    """Fold a non-2xx response into a CredentialError keeping its body."""
    try:
        detail = response.json()
        body = json.dumps(detail, separators=(",", ":"), ensure_ascii=False)
    except ValueError:
        detail = response.text
        body = detail

    return CredentialError(
        f"API request failed with status {response.status_code} - {body}",
        status_code=response.status_code,
        detail=detail,
    )


def signed_url_from_response(response: httpx.Response) -> str:
    """Extract ``signed_url`` from a successful response."""
    try:
        data = response.json()
    except ValueError as e:
        raise CredentialError(
            f"Invalid signed URL response body: {response.text}",
            status_code=response.status_code,
            detail=response.text,
        ) from e

    signed_url = data.get("signed_url") if isinstance(data, dict) else None
    if not signed_url:
        raise EmptyCredentialError(
            "Failed to get signed URL",
            status_code=response.status_code,
            detail=data,
        )
    return signed_url


def network_error(exc: httpx.HTTPError) -> CredentialError:
    return CredentialError(str(exc) or exc.__class__.__name__)


class CredentialExchange:
    """Requests single-use signed connection URLs from the control endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CredentialExchange":
        settings = settings or get_settings()
        api_key = settings.eleven_labs_api_key
        return cls(
            api_key=api_key.get_secret_value() if api_key else None,
            base_url=settings.api_base_url,
            timeout=settings.request_timeout_s,
        )

    async def request_signed_url(self, agent_id: str) -> str:
        """Request a signed URL for ``agent_id``.

        Raises:
            ValueError: agent_id is empty
            CredentialError: non-2xx response, network failure or missing key
            EmptyCredentialError: success response without a signed URL
        """
        if not agent_id:
            raise ValueError("agent_id must be a non-empty string")
        if not self._api_key:
            raise CredentialError("ElevenLabs API key is not configured")

        url = f"{self.base_url}{SIGNED_URL_PATH}"
        headers = {API_KEY_HEADER: self._api_key, **NO_CACHE_HEADERS}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url, params={"agent_id": agent_id}, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error("Signed URL request failed", agent_id=agent_id, error=str(e))
            raise network_error(e) from e

        if not response.is_success:
            error = error_from_response(response)
            logger.error("Signed URL request rejected",
                        agent_id=agent_id,
                        status=response.status_code,
                        body=error.detail)
            raise error

        signed_url = signed_url_from_response(response)
        logger.info("Signed URL issued", agent_id=agent_id)
        return signed_url
