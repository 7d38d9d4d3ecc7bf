"""FastAPI application entry point for the credential boundary."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from voicelink import __version__
from voicelink.config import get_settings
from voicelink.routes import api
from voicelink.services.credential_exchange import CredentialExchange


# Configure structured logging
def configure_logging(log_level: str) -> None:
    """Configure structlog for JSON logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    log = structlog.get_logger()
    log.info("Starting voicelink credential server",
             host=settings.server_host,
             port=settings.server_port,
             agent_id=settings.agent_id)

    if settings.eleven_labs_api_key is None:
        log.warning("ELEVEN_LABS_API_KEY is not set, signed URL requests will fail")

    app.state.credential_exchange = CredentialExchange.from_settings(settings)

    yield

    log.info("Server shutdown complete")


app = FastAPI(
    title="voicelink",
    description="Signed URL boundary for ElevenLabs conversational sessions",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
