"""Session controller: connection state machine and transcript owner."""

import asyncio
import itertools
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

import structlog

from voicelink.config import MODE_SPEAKING, STATUS_CONNECTED, Settings, get_settings
from voicelink.errors import EmptyCredentialError, StreamError
from voicelink.models.events import (
    ErrorEvent,
    MessageEvent,
    ModeChangeEvent,
    SessionEvent,
    StatusChangeEvent,
)
from voicelink.models.session import (
    ConnectionStatus,
    ControllerSnapshot,
    Session,
    SpeakingMode,
    TranscriptEntry,
)
from voicelink.services.signed_url_client import SignedUrlClient
from voicelink.services.transport import (
    ConversationTransport,
    ElevenLabsTransport,
    SessionCallbacks,
)
from voicelink.utils.event_bus import EventBus, EventType
from voicelink.utils.transcript import export_transcript, save_transcript

logger = structlog.get_logger()


class SignedUrlSource(Protocol):
    async def request_signed_url(self, agent_id: str) -> str: ...


class SessionController:
    """Drives one conversational session at a time.

    Inbound transport events are queued with the token of the session that
    produced them and applied by a single dispatch task, in arrival order.
    Events whose token no longer matches the current session are dropped,
    which is what keeps a stopped or failed session from touching state.

    Observers subscribe to ``event_bus`` and receive a ``ControllerSnapshot``
    after every committed change.
    """

    def __init__(
        self,
        agent_id: str,
        credentials: SignedUrlSource,
        transport: ConversationTransport,
        event_bus: Optional[EventBus] = None,
    ):
        self.agent_id = agent_id
        self.credentials = credentials
        self.transport = transport
        self.event_bus = event_bus or EventBus()

        self._status = ConnectionStatus.DISCONNECTED
        self._mode = SpeakingMode.LISTENING
        self._transcript: list[TranscriptEntry] = []
        self._session: Optional[Session] = None
        self._last_error: Optional[str] = None
        self._tokens = itertools.count(1)

        self._events: asyncio.Queue = asyncio.Queue()
        self._dispatch_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def mode(self) -> SpeakingMode:
        return self._mode

    @property
    def transcript(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._transcript)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def snapshot(self) -> ControllerSnapshot:
        return ControllerSnapshot(
            status=self._status,
            mode=self._mode,
            transcript=tuple(self._transcript),
            session_token=self._session.token if self._session else None,
            last_error=self._last_error,
        )

    # ------------------------------------------------------------------
    # Commands

    async def start(self) -> bool:
        """Open a new session.

        Returns True once the stream is open and adopted, False when the
        call was rejected (a session already exists) or superseded by
        ``stop()`` before the stream arrived. Credential and open failures
        are re-raised after the controller has returned to disconnected.
        """
        if self._session is not None:
            logger.warning("Start rejected, session already in progress",
                          status=self._status.value,
                          session_token=self._session.token)
            return False

        self._ensure_dispatcher()
        session = Session(token=next(self._tokens))
        self._session = session
        self._last_error = None
        await self._set_status(ConnectionStatus.CONNECTING)
        logger.info("Session starting", session_token=session.token, agent_id=self.agent_id)

        try:
            signed_url = await self.credentials.request_signed_url(self.agent_id)
            if not signed_url:
                raise EmptyCredentialError("Failed to get signed URL")
        except asyncio.CancelledError:
            await self._abort_start(session, "start cancelled")
            raise
        except Exception as e:
            if self._superseded(session):
                logger.info("Ignoring credential failure of superseded session",
                           session_token=session.token, error=str(e))
                return False
            logger.error("Signed URL request failed", session_token=session.token, error=str(e))
            await self._abort_start(session, str(e))
            raise

        if self._session is not session:
            logger.info("Session superseded before open", session_token=session.token)
            return False

        session.signed_url = signed_url
        try:
            handle = await self.transport.open(signed_url, self._callbacks_for(session.token))
        except asyncio.CancelledError:
            # The transport releases a stream whose open is cancelled.
            await self._abort_start(session, "start cancelled")
            raise
        except Exception as e:
            if self._superseded(session):
                logger.info("Ignoring open failure of superseded session",
                           session_token=session.token, error=str(e))
                return False
            logger.error("Session open failed", session_token=session.token, error=str(e))
            await self._abort_start(session, str(e))
            raise

        if self._session is not session:
            await handle.close()
            if session.failure:
                raise StreamError(session.failure)
            logger.info("Closed stream of superseded session", session_token=session.token)
            return False

        session.activate(handle)
        await self._set_status(ConnectionStatus.CONNECTED)
        logger.info("Session started", session_token=session.token)
        return True

    async def stop(self) -> None:
        """Close the current session. No-op when there is none."""
        session = self._session
        if session is None:
            logger.debug("Stop ignored, no session")
            return

        # Commit disconnected before awaiting close so that late events are stale.
        self._session = None
        handle = session.end()
        await self._reset_state()

        if handle is not None:
            await handle.close()
        logger.info("Session stopped", session_token=session.token)

    async def clear_transcript(self) -> None:
        """Drop all transcript entries."""
        self._transcript.clear()
        await self.event_bus.publish(EventType.TRANSCRIPT_CLEARED, self.snapshot)

    def export_transcript(self) -> bytes:
        """Render the current transcript as a flat text document."""
        return export_transcript(self._transcript)

    async def save_transcript(self, directory: Union[str, Path]) -> Path:
        """Write the current transcript to a timestamped file in ``directory``."""
        return await save_transcript(list(self._transcript), directory)

    async def drain(self) -> None:
        """Wait until every queued transport event has been applied."""
        await self._events.join()

    async def shutdown(self) -> None:
        """Stop any session and the dispatch task."""
        await self.stop()
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None

        # Unapplied events belong to sessions that no longer exist.
        while not self._events.empty():
            self._events.get_nowait()
            self._events.task_done()
        logger.info("Session controller shutdown complete")

    # ------------------------------------------------------------------
    # Event intake

    def _callbacks_for(self, token: int) -> SessionCallbacks:
        def enqueue(event: SessionEvent) -> None:
            self._events.put_nowait((token, event))

        return SessionCallbacks(
            on_message=enqueue,
            on_error=enqueue,
            on_status_change=enqueue,
            on_mode_change=enqueue,
        )

    def _ensure_dispatcher(self) -> None:
        if self._dispatch_task is None or self._dispatch_task.done():
            self._dispatch_task = asyncio.create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        """Apply queued events one at a time."""
        while True:
            token, event = await self._events.get()
            try:
                await self._handle_event(token, event)
            except Exception as e:
                logger.error("Session event handling failed",
                            session_token=token,
                            event_type=event.type,
                            error=str(e))
            finally:
                self._events.task_done()

    async def _handle_event(self, token: int, event: SessionEvent) -> None:
        session = self._session
        if session is None or session.token != token:
            logger.debug("Discarding stale session event", session_token=token, event_type=event.type)
            return

        if isinstance(event, MessageEvent):
            await self._on_message(event)
        elif isinstance(event, ErrorEvent):
            await self._on_error(session, event)
        elif isinstance(event, StatusChangeEvent):
            await self._on_status_change(session, event)
        elif isinstance(event, ModeChangeEvent):
            await self._on_mode_change(event)

    async def _on_message(self, event: MessageEvent) -> None:
        self._transcript.append(TranscriptEntry(source=event.source, text=event.message))
        await self.event_bus.publish(EventType.TRANSCRIPT_APPENDED, self.snapshot)

    async def _on_error(self, session: Session, event: ErrorEvent) -> None:
        logger.error("Conversation error", session_token=session.token, error=event.message, code=event.code)
        self._last_error = event.message
        await self._end_session(session, failure=event.message)
        await self.event_bus.publish(EventType.SESSION_ERROR, self.snapshot)

    async def _on_status_change(self, session: Session, event: StatusChangeEvent) -> None:
        if event.status == STATUS_CONNECTED:
            await self._set_status(ConnectionStatus.CONNECTED)
            return

        if session.is_active:
            await self._end_session(session)
        else:
            # Open call still outstanding; start() decides what to do with the stream.
            await self._set_mode(SpeakingMode.LISTENING)
            await self._set_status(ConnectionStatus.DISCONNECTED)

    async def _on_mode_change(self, event: ModeChangeEvent) -> None:
        if self._status == ConnectionStatus.DISCONNECTED:
            return
        mode = SpeakingMode.SPEAKING if event.mode == MODE_SPEAKING else SpeakingMode.LISTENING
        await self._set_mode(mode)

    # ------------------------------------------------------------------
    # Transitions

    async def _end_session(self, session: Session, failure: Optional[str] = None) -> None:
        """Forget ``session``, reset state, then close its stream if it had one."""
        self._session = None
        handle = session.end(failure)
        await self._reset_state()
        if handle is not None:
            try:
                await handle.close()
            except Exception as e:
                logger.warning("Failed to close ended session", session_token=session.token, error=str(e))

    def _superseded(self, session: Session) -> bool:
        """True when stop() ended ``session`` while start() was still awaiting."""
        return self._session is not session and session.failure is None

    async def _abort_start(self, session: Session, reason: str) -> None:
        if self._session is not session:
            return
        self._session = None
        session.end(reason)
        await self._reset_state()

    async def _reset_state(self) -> None:
        await self._set_mode(SpeakingMode.LISTENING)
        await self._set_status(ConnectionStatus.DISCONNECTED)

    async def _set_status(self, status: ConnectionStatus) -> None:
        if self._status == status:
            return
        logger.info("Connection status changed", previous=self._status.value, status=status.value)
        self._status = status
        await self.event_bus.publish(EventType.STATUS_CHANGED, self.snapshot)

    async def _set_mode(self, mode: SpeakingMode) -> None:
        if self._mode == mode:
            return
        self._mode = mode
        await self.event_bus.publish(EventType.MODE_CHANGED, self.snapshot)


def create_session_controller(settings: Optional[Settings] = None) -> SessionController:
    """Build a controller that gets signed URLs from the voicelink server."""
    settings = settings or get_settings()
    return SessionController(
        agent_id=settings.agent_id,
        credentials=SignedUrlClient.from_settings(settings),
        transport=ElevenLabsTransport(),
    )
