"""Controller for ElevenLabs real-time conversational voice sessions."""

__version__ = "0.1.0"
