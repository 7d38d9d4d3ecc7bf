"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings
from pydantic import Field, SecretStr
from typing import Literal, Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with validation."""

    # ElevenLabs (trusted side only)
    eleven_labs_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Server-held ElevenLabs API key, never sent to the controller"
    )
    agent_id: str = Field(default="", description="Conversational AI agent identifier")
    api_base_url: str = Field(
        default="https://api.elevenlabs.io/v1/convai",
        description="Control endpoint base URL"
    )

    # Trusted boundary the controller asks for signed URLs
    credential_server_url: str = Field(default="http://localhost:8010")
    request_timeout_s: float = Field(default=10.0)

    # Server
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8010)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    # Transcript export
    transcript_dir: str = Field(default="./transcripts")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Credential endpoint
SIGNED_URL_PATH = "/conversation/get_signed_url"
API_KEY_HEADER = "xi-api-key"
BOUNDARY_SIGNED_URL_PATH = "/api/signed-url"

# Streaming protocol
CLIENT_INIT_EVENT = "conversation_initiation_client_data"
STATUS_CONNECTED = "connected"
STATUS_DISCONNECTED = "disconnected"
MODE_SPEAKING = "speaking"
MODE_LISTENING = "listening"

# Transcript export
TRANSCRIPT_FILE_PREFIX = "conversation-transcript-"
USER_LABEL = "User"
AGENT_LABEL = "AI"
ENTRY_SEPARATOR = "\n\n"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
