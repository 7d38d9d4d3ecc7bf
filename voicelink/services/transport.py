"""Streaming transport for ElevenLabs conversational sessions."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import aiohttp
import structlog

from voicelink.config import (
    CLIENT_INIT_EVENT,
    MODE_LISTENING,
    MODE_SPEAKING,
    STATUS_CONNECTED,
    STATUS_DISCONNECTED,
)
from voicelink.errors import StreamError
from voicelink.models.events import (
    ErrorEvent,
    MessageEvent,
    ModeChangeEvent,
    Source,
    StatusChangeEvent,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class SessionCallbacks:
    """Handlers a transport invokes for inbound events. Must not block."""
    on_message: Callable[[MessageEvent], None]
    on_error: Callable[[ErrorEvent], None]
    on_status_change: Callable[[StatusChangeEvent], None]
    on_mode_change: Callable[[ModeChangeEvent], None]


class ConversationHandle(Protocol):
    async def close(self) -> None: ...


class ConversationTransport(Protocol):
    async def open(self, signed_url: str, callbacks: SessionCallbacks) -> ConversationHandle: ...


class ElevenLabsConnection:
    """One open WebSocket conversation."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
        callbacks: SessionCallbacks,
    ):
        self._http_session = http_session
        self._ws = ws
        self.callbacks = callbacks
        self._closing = False
        self._receive_task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._receive_task = asyncio.create_task(self._receive_loop())

    @property
    def closed(self) -> bool:
        return self._closing

    async def close(self) -> None:
        """Close the conversation. Safe to call more than once."""
        if self._closing:
            return
        self._closing = True

        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        await self._ws.close()
        await self._http_session.close()
        logger.info("Conversation closed")

    async def send(self, data: dict) -> None:
        """Send JSON message to the WebSocket."""
        if not self._ws.closed:
            await self._ws.send_json(data)

    async def _receive_loop(self) -> None:
        """Receive frames until the socket closes."""
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = self._ws.exception()
                    logger.error("Conversation WebSocket error", error=str(error))
                    self.callbacks.on_error(ErrorEvent(message=str(error), code="ws_error"))
                    return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Conversation receive error", error=str(e))
            self.callbacks.on_error(ErrorEvent(message=str(e), code="receive_error"))
            return

        if not self._closing:
            logger.info("Conversation closed by remote", close_code=self._ws.close_code)
            self.callbacks.on_status_change(StatusChangeEvent(status=STATUS_DISCONNECTED))

    async def _handle_frame(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON frame", error=str(e))
            return
        await self._handle_message(data)

    async def _handle_message(self, data: dict[str, Any]) -> None:
        """Map one protocol message onto the session callbacks."""
        msg_type = data.get("type", "")

        if msg_type == "conversation_initiation_metadata":
            self.callbacks.on_status_change(StatusChangeEvent(status=STATUS_CONNECTED))

        elif msg_type == "user_transcript":
            text = data.get("user_transcription_event", {}).get("user_transcript", "")
            if text:
                self.callbacks.on_message(MessageEvent(source=Source.USER, message=text))
            self.callbacks.on_mode_change(ModeChangeEvent(mode=MODE_LISTENING))

        elif msg_type == "agent_response":
            text = data.get("agent_response_event", {}).get("agent_response", "")
            if text:
                self.callbacks.on_message(MessageEvent(source=Source.AGENT, message=text))

        elif msg_type == "audio":
            self.callbacks.on_mode_change(ModeChangeEvent(mode=MODE_SPEAKING))

        elif msg_type == "interruption":
            self.callbacks.on_mode_change(ModeChangeEvent(mode=MODE_LISTENING))

        elif msg_type == "ping":
            event_id = data.get("ping_event", {}).get("event_id")
            await self.send({"type": "pong", "event_id": event_id})

        else:
            logger.debug("Ignoring conversation message", msg_type=msg_type)


class ElevenLabsTransport:
    """Opens conversations over the ElevenLabs WebSocket API."""

    async def open(self, signed_url: str, callbacks: SessionCallbacks) -> ElevenLabsConnection:
        """Connect to ``signed_url`` and start delivering events to ``callbacks``."""
        http_session = aiohttp.ClientSession()
        try:
            ws = await http_session.ws_connect(signed_url)
            await ws.send_json({"type": CLIENT_INIT_EVENT})
        except asyncio.CancelledError:
            await http_session.close()
            raise
        except Exception as e:
            await http_session.close()
            logger.error("Conversation connect failed", error=str(e))
            raise StreamError(f"Failed to open conversation: {e}") from e

        connection = ElevenLabsConnection(http_session, ws, callbacks)
        connection.start()
        logger.info("Conversation opened")
        return connection
