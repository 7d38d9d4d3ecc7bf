"""Session and controller state models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple

from voicelink.errors import InvalidStateError
from voicelink.models.events import Source


class ConnectionStatus(str, Enum):
    """Controller connection status."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SpeakingMode(str, Enum):
    """Agent speaking mode."""
    LISTENING = "listening"
    SPEAKING = "speaking"


class SessionLifecycle(str, Enum):
    """Streaming session lifecycle."""
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(frozen=True)
class TranscriptEntry:
    """One transcript turn."""
    source: Source
    text: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Session:
    """One streaming connection owned by the controller.

    ``handle`` is whatever the transport returned from ``open``; the
    controller only ever calls ``close()`` on it.
    """
    token: int
    signed_url: Optional[str] = None
    handle: Any = None
    lifecycle: SessionLifecycle = SessionLifecycle.NOT_STARTED
    failure: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.lifecycle == SessionLifecycle.ACTIVE

    def activate(self, handle: Any) -> None:
        """Adopt an opened stream handle."""
        if self.lifecycle != SessionLifecycle.NOT_STARTED:
            raise InvalidStateError(
                f"Cannot activate session {self.token} in state {self.lifecycle.value}"
            )
        self.handle = handle
        self.lifecycle = SessionLifecycle.ACTIVE

    def end(self, failure: Optional[str] = None) -> Any:
        """Mark the session ended and release its handle.

        Returns the handle (possibly None) so the caller can close it.
        """
        if self.lifecycle == SessionLifecycle.ENDED:
            raise InvalidStateError(f"Session {self.token} already ended")
        handle = self.handle
        self.handle = None
        self.lifecycle = SessionLifecycle.ENDED
        self.failure = failure
        return handle


@dataclass(frozen=True)
class ControllerSnapshot:
    """Immutable view of controller state for observers."""
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    mode: SpeakingMode = SpeakingMode.LISTENING
    transcript: Tuple[TranscriptEntry, ...] = ()
    session_token: Optional[int] = None
    last_error: Optional[str] = None

    @property
    def is_speaking(self) -> bool:
        return self.mode == SpeakingMode.SPEAKING

    @property
    def message_count(self) -> int:
        return len(self.transcript)

    def to_status_dict(self) -> dict:
        """Convert to status dictionary for clients."""
        return {
            "status": self.status.value,
            "mode": self.mode.value,
            "session_token": self.session_token,
            "message_count": self.message_count,
            "last_error": self.last_error,
        }
