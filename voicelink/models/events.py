"""Event models for the streaming session and the credential endpoint."""

from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel


class Source(str, Enum):
    """Transcript speaker."""
    USER = "user"
    AGENT = "agent"


# Inbound session events (transport -> controller)

class MessageEvent(BaseModel):
    """Finished transcript turn."""
    type: Literal["message"] = "message"
    source: Source
    message: str


class ErrorEvent(BaseModel):
    """Fatal stream error."""
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


class StatusChangeEvent(BaseModel):
    """Connection status reported by the stream."""
    type: Literal["status_change"] = "status_change"
    status: str  # only "connected" is distinguished


class ModeChangeEvent(BaseModel):
    """Agent speaking/listening mode."""
    type: Literal["mode_change"] = "mode_change"
    mode: str  # only "speaking" is distinguished


SessionEvent = Union[
    MessageEvent,
    ErrorEvent,
    StatusChangeEvent,
    ModeChangeEvent,
]


# Credential endpoint

class SignedUrlResponse(BaseModel):
    """Body returned by the signed URL endpoints."""
    signed_url: str
