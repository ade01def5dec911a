"""
Live channel: one push connection per conversation.

URL: ``ws(s)://{host}/ws/chat/{room_id}/?token={access_token}``. The token is
attached at connect time and never renegotiated on an open connection.

State machine::

    CONNECTING --open ok--> OPEN --close()--> CLOSING --> CLOSED
    CONNECTING --error----> ERRORED --> CLOSED
    OPEN ------error------> ERRORED --> CLOSED

Every connection that reached CONNECTING emits exactly one ``close`` event,
possibly preceded by one ``error`` event. A connection is never reopened;
reconnecting means opening a new one.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Optional, Union

import aiohttp
import httpx

from freelance_chat.errors import ChannelError, ConnectError, NotConnectedError
from freelance_chat.transport.frames import decode_frame

logger = logging.getLogger(__name__)

CHANNEL_PATH = "/ws/chat/{room_id}/"
DEFAULT_CONNECT_TIMEOUT_S = 15.0
CLOSE_NORMAL = 1000
CLOSE_ABNORMAL = 1006


class ChannelState(str, Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    ERRORED = "ERRORED"


_TRANSITIONS: dict[ChannelState, set[ChannelState]] = {
    ChannelState.CONNECTING: {ChannelState.OPEN, ChannelState.ERRORED, ChannelState.CLOSING},
    ChannelState.OPEN: {ChannelState.CLOSING, ChannelState.ERRORED},
    ChannelState.CLOSING: {ChannelState.CLOSED},
    ChannelState.ERRORED: {ChannelState.CLOSED},
    ChannelState.CLOSED: set(),
}


class ChannelEvent:
    OPEN = "open"
    MESSAGE = "message"
    ERROR = "error"
    CLOSE = "close"

    __slots__ = ("type", "conversation_id", "data")

    def __init__(self, type: str, conversation_id: str, data: Any = None):
        self.type = type
        self.conversation_id = conversation_id
        self.data = data

    def __repr__(self) -> str:
        return f"ChannelEvent(type={self.type!r}, conversation_id={self.conversation_id!r})"


EventHandler = Callable[[ChannelEvent], None]


def build_channel_url(base_url: str, conversation_id: Any, token: Optional[str]) -> str:
    """Derive the push URL from the REST base URL (http -> ws, https -> wss)."""
    url = httpx.URL(base_url)
    scheme = {"http": "ws", "https": "wss"}.get(url.scheme, url.scheme)
    path = url.path.rstrip("/") + CHANNEL_PATH.format(room_id=conversation_id)
    url = url.copy_with(scheme=scheme, path=path)
    if token:
        url = url.copy_set_param("token", token)
    return str(url)


def redact_url(url: str) -> str:
    parsed = httpx.URL(url)
    if "token" not in parsed.params:
        return url
    return str(parsed.copy_set_param("token", "***"))


class Connection:
    """A single live connection. Created and opened by ``LiveChannel.open``."""

    def __init__(self, conversation_id: str, url: str):
        self._conversation_id = conversation_id
        self._url = url
        self._state = ChannelState.CONNECTING
        self._handlers: list[EventHandler] = []
        self._session: Optional[aiohttp.ClientSession] = None
        self._owns_session = False
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task[None]] = None
        self._close_code: Optional[int] = None
        self._error: Optional[BaseException] = None

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ChannelState.OPEN

    @property
    def close_code(self) -> Optional[int]:
        return self._close_code

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def add_event_handler(self, handler: EventHandler) -> Callable[[], None]:
        """Add an event handler. Returns a cleanup function."""
        self._handlers.append(handler)
        def remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass
        return remove

    async def send(self, payload: Union[str, dict[str, Any]]) -> None:
        """Send one frame. Raises NotConnectedError outside OPEN."""
        if self._state is not ChannelState.OPEN or self._ws is None:
            raise NotConnectedError(f"Cannot send on {self._state.value.lower()} channel")
        text = payload if isinstance(payload, str) else json.dumps(payload)
        try:
            await self._ws.send_str(text)
        except (aiohttp.ClientError, ConnectionError) as e:
            logger.error("Send failed on room %s: %s", self._conversation_id, e)
            raise ChannelError(f"Send failed: {e}")

    async def close(self) -> None:
        """Close the connection. No-op when already closing or closed."""
        if self._state in (ChannelState.CLOSING, ChannelState.CLOSED, ChannelState.ERRORED):
            return
        self._transition(ChannelState.CLOSING)
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            await reader
        else:
            await self._finish(None)

    async def _start(
        self,
        session: Optional[aiohttp.ClientSession],
        connect_timeout: float,
        heartbeat: Optional[float],
    ) -> None:
        self._owns_session = session is None
        self._session = session or aiohttp.ClientSession()
        logger.debug("Connecting live channel %s", redact_url(self._url))
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self._url, heartbeat=heartbeat),
                timeout=connect_timeout,
            )
        except asyncio.CancelledError:
            self._transition(ChannelState.CLOSING)
            await self._finish(None)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error("Live channel for room %s failed to open: %s", self._conversation_id, str(e) or type(e).__name__)
            await self._finish(e)
            raise ConnectError(
                f"Failed to open live channel for room {self._conversation_id}: {str(e) or type(e).__name__}",
                {"conversation_id": self._conversation_id},
            )

        self._transition(ChannelState.OPEN)
        logger.info("Live channel open for room %s", self._conversation_id)
        self._emit(ChannelEvent.OPEN)
        self._reader = asyncio.ensure_future(self._read_loop())

    async def _read_loop(self) -> None:
        assert self._ws is not None
        error: Optional[BaseException] = None
        try:
            async for msg in self._ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    payload = decode_frame(msg.data)
                    if payload is None:
                        logger.warning("Dropping malformed frame on room %s", self._conversation_id)
                        continue
                    logger.debug("Frame received on room %s", self._conversation_id)
                    self._emit(ChannelEvent.MESSAGE, payload)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = self._ws.exception() or ChannelError("WebSocket error frame")
                    break
        except asyncio.CancelledError:
            self._abort()
            raise
        except (aiohttp.ClientError, ConnectionError) as e:
            error = e
        await self._finish(error)

    async def _finish(self, error: Optional[BaseException]) -> None:
        if self._state is ChannelState.CLOSED:
            return
        if error is not None and self._state in (ChannelState.CONNECTING, ChannelState.OPEN):
            self._error = error
            self._transition(ChannelState.ERRORED)
            self._emit(ChannelEvent.ERROR, error if isinstance(error, ChannelError) else ChannelError(str(error) or type(error).__name__))
        elif self._state is ChannelState.OPEN:
            # remote side closed cleanly
            self._transition(ChannelState.CLOSING)

        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

        code = self._ws.close_code if self._ws is not None else None
        if code is None:
            code = CLOSE_ABNORMAL if error is not None else CLOSE_NORMAL
        self._close_code = code
        self._transition(ChannelState.CLOSED)
        logger.info("Live channel closed for room %s (code %s)", self._conversation_id, code)
        self._emit(ChannelEvent.CLOSE, code)

    def _abort(self) -> None:
        """Reader cancelled: settle the state without awaiting the transport."""
        if self._state is ChannelState.CLOSED:
            return
        if self._state is ChannelState.OPEN:
            self._transition(ChannelState.CLOSING)
        self._close_code = CLOSE_ABNORMAL
        self._transition(ChannelState.CLOSED)
        self._emit(ChannelEvent.CLOSE, CLOSE_ABNORMAL)

    def _transition(self, new: ChannelState) -> None:
        if new not in _TRANSITIONS[self._state]:
            raise ChannelError(f"Invalid channel transition {self._state.value} -> {new.value}")
        logger.debug("Room %s channel %s -> %s", self._conversation_id, self._state.value, new.value)
        self._state = new

    def _emit(self, type: str, data: Any = None) -> None:
        event = ChannelEvent(type, self._conversation_id, data)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Channel event handler failed for %s", event)


class LiveChannel:
    """Opens live connections against one backend."""

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
        heartbeat: Optional[float] = None,
    ):
        self._base_url = base_url
        self._session = session
        self._connect_timeout = connect_timeout
        self._heartbeat = heartbeat

    async def open(
        self,
        conversation_id: Any,
        token: Optional[str],
        on_event: Optional[EventHandler] = None,
    ) -> Connection:
        """Open a connection for ``conversation_id``.

        ``on_event`` is registered before the handshake so no event is missed.
        Raises ConnectError if the handshake fails; the ``error`` and ``close``
        events have been emitted by then.
        """
        room = str(conversation_id)
        conn = Connection(room, build_channel_url(self._base_url, room, token))
        if on_event is not None:
            conn.add_event_handler(on_event)
        await conn._start(self._session, self._connect_timeout, self._heartbeat)
        return conn
