"""Data models for the application."""

from voicelink.models.events import (
    Source,
    MessageEvent,
    ErrorEvent,
    StatusChangeEvent,
    ModeChangeEvent,
    SessionEvent,
    SignedUrlResponse,
)
from voicelink.models.session import (
    ConnectionStatus,
    SpeakingMode,
    SessionLifecycle,
    TranscriptEntry,
    Session,
    ControllerSnapshot,
)

__all__ = [
    "Source",
    "MessageEvent",
    "ErrorEvent",
    "StatusChangeEvent",
    "ModeChangeEvent",
    "SessionEvent",
    "SignedUrlResponse",
    "ConnectionStatus",
    "SpeakingMode",
    "SessionLifecycle",
    "TranscriptEntry",
    "Session",
    "ControllerSnapshot",
]
