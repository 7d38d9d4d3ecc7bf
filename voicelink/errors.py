"""Exceptions raised by the credential exchange and session controller."""

from typing import Any, Optional


class VoiceSessionError(Exception):
    """Base class for voicelink errors."""


class CredentialError(VoiceSessionError):
    """Signed URL request failed (non-2xx response or network failure)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class EmptyCredentialError(CredentialError):
    """Successful response that carried no usable signed URL."""


class StreamError(VoiceSessionError):
    """Streaming session failed to open or failed while active."""


class InvalidStateError(VoiceSessionError):
    """Operation not permitted in the current session lifecycle state."""
