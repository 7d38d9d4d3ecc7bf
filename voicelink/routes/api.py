"""REST routes for the trusted credential boundary."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from voicelink.config import get_settings
from voicelink.errors import CredentialError
from voicelink.models.events import SignedUrlResponse
from voicelink.services.credential_exchange import CredentialExchange

logger = structlog.get_logger()

router = APIRouter(tags=["api"])


def get_credential_exchange(request: Request) -> CredentialExchange:
    """Credential exchange created at startup."""
    return request.app.state.credential_exchange


@router.get("/signed-url", response_model=SignedUrlResponse)
async def get_signed_url(
    response: Response,
    agent_id: Optional[str] = None,
    exchange: CredentialExchange = Depends(get_credential_exchange),
):
    """Issue a single-use signed conversation URL."""
    agent_id = agent_id or get_settings().agent_id
    response.headers["Cache-Control"] = "no-store"

    try:
        signed_url = await exchange.request_signed_url(agent_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CredentialError as e:
        logger.error("Signed URL unavailable", agent_id=agent_id, error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    return SignedUrlResponse(signed_url=signed_url)


# Config endpoint (non-sensitive)

@router.get("/config")
async def get_config():
    """Get non-sensitive configuration."""
    settings = get_settings()
    return {
        "agent_id": settings.agent_id,
    }
