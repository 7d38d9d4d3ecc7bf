"""Application services."""

from voicelink.services.credential_exchange import CredentialExchange
from voicelink.services.signed_url_client import SignedUrlClient
from voicelink.services.transport import ElevenLabsTransport, SessionCallbacks
from voicelink.services.session_controller import SessionController, create_session_controller

__all__ = [
    "CredentialExchange",
    "SignedUrlClient",
    "ElevenLabsTransport",
    "SessionCallbacks",
    "SessionController",
    "create_session_controller",
]
