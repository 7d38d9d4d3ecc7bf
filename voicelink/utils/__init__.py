"""Utility modules."""

from voicelink.utils.event_bus import EventBus, EventType
from voicelink.utils.transcript import export_transcript, transcript_filename, save_transcript

__all__ = [
    "EventBus",
    "EventType",
    "export_transcript",
    "transcript_filename",
    "save_transcript",
]
