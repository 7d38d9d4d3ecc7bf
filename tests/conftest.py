"""Shared fixtures: fake credential source and fake streaming transport."""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from voicelink.services.session_controller import SessionController
from voicelink.services.transport import SessionCallbacks

SIGNED_URL = "wss://api.elevenlabs.io/v1/convai/conversation?agent_id=agent-1&token=abc"


class FakeHandle:
    """Stream handle that records close calls."""

    def __init__(self, signed_url: str, callbacks: SessionCallbacks):
        self.signed_url = signed_url
        self.callbacks = callbacks
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def close(self) -> None:
        self.close_calls += 1


class FakeTransport:
    """Transport whose open can be held back with ``gate``."""

    def __init__(self):
        self.opened: list[FakeHandle] = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def open(self, signed_url: str, callbacks: SessionCallbacks) -> FakeHandle:
        handle = FakeHandle(signed_url, callbacks)
        self.opened.append(handle)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return handle

    async def wait_opened(self, count: int = 1) -> FakeHandle:
        """Yield to the loop until ``count`` opens have been requested."""
        while len(self.opened) < count:
            await asyncio.sleep(0)
        return self.opened[count - 1]


@pytest.fixture
def signed_url():
    return SIGNED_URL


@pytest.fixture
def credentials():
    """Signed URL source returning a fixed URL."""
    source = MagicMock()
    source.request_signed_url = AsyncMock(return_value=SIGNED_URL)
    return source


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def controller(credentials, transport):
    return SessionController(
        agent_id="agent-1",
        credentials=credentials,
        transport=transport,
    )
