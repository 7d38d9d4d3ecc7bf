"""Transcript export to a flat text document."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

import aiofiles
import structlog

from voicelink.config import (
    AGENT_LABEL,
    ENTRY_SEPARATOR,
    TRANSCRIPT_FILE_PREFIX,
    USER_LABEL,
)
from voicelink.models.events import Source
from voicelink.models.session import TranscriptEntry

logger = structlog.get_logger()


def _label(source: Source) -> str:
    return USER_LABEL if source == Source.USER else AGENT_LABEL


def export_transcript(entries: Iterable[TranscriptEntry]) -> bytes:
    """Render entries as ``"<Label>: <text>"`` blocks separated by a blank line.

    Pure function: an empty sequence renders as an empty document.
    """
    text = ENTRY_SEPARATOR.join(
        f"{_label(entry.source)}: {entry.text}" for entry in entries
    )
    return text.encode("utf-8")


def transcript_filename(now: Optional[datetime] = None) -> str:
    """Suggested export filename carrying an ISO-8601 UTC timestamp."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return f"{TRANSCRIPT_FILE_PREFIX}{stamp.replace('+00:00', 'Z')}.txt"


async def save_transcript(
    entries: Iterable[TranscriptEntry],
    directory: Union[str, Path],
    now: Optional[datetime] = None,
) -> Path:
    """Write the exported transcript into ``directory`` and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    content = export_transcript(entries)
    path = directory / transcript_filename(now)

    async with aiofiles.open(path, "wb") as f:
        await f.write(content)

    logger.info("Transcript saved", path=str(path), size=len(content))
    return path
