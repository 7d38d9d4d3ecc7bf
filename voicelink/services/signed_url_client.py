"""Client for the trusted boundary's signed URL route.

Used by the session controller when it runs outside the trusted process:
no API key is held here, only the boundary's address.
"""

from typing import Optional

import httpx
import structlog

from voicelink.config import BOUNDARY_SIGNED_URL_PATH, Settings, get_settings
from voicelink.services.credential_exchange import (
    NO_CACHE_HEADERS,
    error_from_response,
    network_error,
    signed_url_from_response,
)

logger = structlog.get_logger()


class SignedUrlClient:
    """Fetches signed URLs from the voicelink server."""

    def __init__(
        self,
        server_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SignedUrlClient":
        settings = settings or get_settings()
        return cls(
            server_url=settings.credential_server_url,
            timeout=settings.request_timeout_s,
        )

    async def request_signed_url(self, agent_id: str) -> str:
        """Ask the boundary for a signed URL. Same errors as CredentialExchange."""
        if not agent_id:
            raise ValueError("agent_id must be a non-empty string")

        url = f"{self.server_url}{BOUNDARY_SIGNED_URL_PATH}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url, params={"agent_id": agent_id}, headers=NO_CACHE_HEADERS
                )
        except httpx.HTTPError as e:
            logger.error("Credential server unreachable", url=url, error=str(e))
            raise network_error(e) from e

        if not response.is_success:
            raise error_from_response(response)

        return signed_url_from_response(response)
