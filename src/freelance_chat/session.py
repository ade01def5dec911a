"""
Chat session: owns one open conversation.

``open`` loads the history into a fresh MessageStore, then opens the live
channel; pushed frames and local sends all merge through the store, so the
timeline returned by ``snapshot`` stays ordered and deduplicated whatever the
arrival order.

Runtime failures never escape: a failed history load leaves an empty
timeline and sets ``history_error``; a failed or dropped channel sets
``channel_error``; a send that cannot be transmitted leaves a ``FAILED``
message in the timeline.

Every in-flight fetch/connect is tied to the conversation that started it.
``close`` cancels them, and anything that still lands afterwards is
discarded instead of touching a newer conversation's store.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Optional, Protocol

from freelance_chat.errors import (
    ChannelError,
    ConnectError,
    FreelanceChatError,
    HistoryLoadError,
    NotConnectedError,
    SessionClosedError,
)
from freelance_chat.models.message import DEFAULT_SENDER_NAME, Message, MessageState, new_local_id, normalize_id
from freelance_chat.reconnect import ReconnectPolicy
from freelance_chat.store import Clock, MessageStore, utcnow
from freelance_chat.transport.frames import build_outbound_frame, parse_inbound_frame
from freelance_chat.transport.websocket import ChannelEvent, ChannelState, Connection, EventHandler

logger = logging.getLogger(__name__)

Snapshot = tuple[Message, ...]
Listener = Callable[[Snapshot], None]


class HistorySource(Protocol):
    async def fetch(self, conversation_id: Any, cursor: Optional[str] = None) -> list[Message]: ...


class ChannelOpener(Protocol):
    async def open(self, conversation_id: Any, token: Optional[str], on_event: Optional[EventHandler] = None) -> Connection: ...


class _Conversation:
    """Per-open state; identity doubles as the staleness tag."""

    __slots__ = ("id", "store", "connection", "tasks", "closing", "reconnecting")

    def __init__(self, conversation_id: str, store: MessageStore):
        self.id = conversation_id
        self.store = store
        self.connection: Optional[Connection] = None
        self.tasks: set[asyncio.Future[Any]] = set()
        self.closing = False
        self.reconnecting: Optional[asyncio.Task[bool]] = None


class ChatSession:
    def __init__(
        self,
        history: HistorySource,
        channel: ChannelOpener,
        *,
        viewer_id: Any = None,
        viewer_name: Optional[str] = None,
        token: Optional[str] = None,
        clock: Clock = utcnow,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._history = history
        self._channel = channel
        self._viewer_id = normalize_id(viewer_id)
        self._viewer_name = viewer_name or DEFAULT_SENDER_NAME
        self._token = token
        self._clock = clock
        self._reconnect_policy = reconnect_policy
        self._sleep = sleep
        self._active: Optional[_Conversation] = None
        self._listeners: list[Listener] = []
        self.history_error: Optional[HistoryLoadError] = None
        self.channel_error: Optional[FreelanceChatError] = None

    @property
    def conversation_id(self) -> Optional[str]:
        return self._active.id if self._active else None

    @property
    def is_open(self) -> bool:
        return self._active is not None

    @property
    def channel_state(self) -> ChannelState:
        if self._active is None or self._active.connection is None:
            return ChannelState.CLOSED
        return self._active.connection.state

    @property
    def viewer_id(self) -> Optional[str]:
        return self._viewer_id

    def snapshot(self) -> Snapshot:
        return self._active.store.snapshot() if self._active else ()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` after every timeline change. Returns a cleanup function."""
        self._listeners.append(listener)
        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    async def open(self, conversation_id: Any) -> None:
        """Load history, then open the live channel for ``conversation_id``."""
        if self._active is not None:
            await self.close()
        conv = _Conversation(str(conversation_id), MessageStore(conversation_id, self._clock))
        self._active = conv
        self.history_error = None
        self.channel_error = None

        fetch = self._spawn(conv, self._history.fetch(conv.id))
        await asyncio.wait({fetch})
        if self._is_stale(conv, "history"):
            return
        error = fetch.exception()
        if isinstance(error, HistoryLoadError):
            logger.warning("History unavailable for room %s: %s", conv.id, error)
            self.history_error = error
            conv.store.load([])
        elif error is not None:
            raise error
        else:
            conv.store.load(fetch.result())
        self._notify()

        await self._connect(conv)

    async def send_message(self, body: str) -> Optional[Message]:
        """Show ``body`` immediately as PENDING, then transmit it.

        Returns the message as it stands after the attempt (PENDING, FAILED,
        or already CONFIRMED by an echo), or None for a blank body.
        """
        conv = self._require_active()
        if not body or not body.strip():
            return None
        message = Message(
            id=new_local_id(),
            conversation_id=conv.id,
            sender_id=self._viewer_id,
            sender_name=self._viewer_name,
            body=body,
            created_at=self._clock(),
            state=MessageState.PENDING,
        )
        pending = conv.store.insert_optimistic(message)
        self._notify()
        return await self._transmit(conv, pending)

    async def retry_message(self, local_id: str) -> Optional[Message]:
        """Resend a FAILED message. Returns None if there is no such failed message."""
        conv = self._require_active()
        pending = conv.store.requeue(local_id)
        if pending is None:
            return None
        self._notify()
        return await self._transmit(conv, pending)

    async def reconnect(self) -> bool:
        """Open a fresh live channel, backing off per the reconnect policy."""
        conv = self._require_active()
        if conv.connection is not None and conv.connection.is_open:
            return True
        return await self._reconnect(conv)

    async def close(self) -> None:
        """Close the live channel and drop the timeline. Safe to call repeatedly."""
        conv = self._active
        if conv is None:
            return
        self._active = None
        conv.closing = True
        current = asyncio.current_task()
        for task in list(conv.tasks):
            if task is not current:
                task.cancel()
        if conv.connection is not None:
            await conv.connection.close()
        logger.debug("Closed chat session for room %s", conv.id)

    async def _connect(self, conv: _Conversation) -> bool:
        task = self._spawn(conv, self._channel.open(conv.id, self._token, on_event=lambda event: self._on_event(conv, event)))
        await asyncio.wait({task})
        if task.cancelled():
            return False
        error = task.exception()
        if conv is not self._active or conv.closing:
            if error is None:
                logger.warning("Discarding late live channel for closed room %s", conv.id)
                await task.result().close()
            return False
        if isinstance(error, ConnectError):
            self.channel_error = error
            self._notify()
            return False
        if error is not None:
            raise error
        connection = task.result()
        conv.connection = connection
        self.channel_error = None
        if connection.state is ChannelState.CLOSED:
            # the reader saw the close before open() handed the connection over
            self._dropped(conv, connection.close_code)
            return False
        return True

    async def _reconnect(self, conv: _Conversation) -> bool:
        policy = self._reconnect_policy or ReconnectPolicy(initial_delay=0, max_attempts=1)
        for attempt, delay in enumerate(policy.delays(), start=1):
            if delay:
                await self._sleep(delay)
            if conv is not self._active or conv.closing:
                return False
            logger.warning("Reconnecting live channel for room %s (attempt %d)", conv.id, attempt)
            if await self._connect(conv):
                return True
        return False

    async def _transmit(self, conv: _Conversation, pending: Message) -> Message:
        connection = conv.connection
        try:
            if connection is None:
                raise NotConnectedError()
            await connection.send(build_outbound_frame(pending.body))
        except NotConnectedError:
            self._fail(conv, pending)
        except ChannelError as e:
            self.channel_error = e
            self._fail(conv, pending)
        return conv.store.get(pending.id) or pending

    def _fail(self, conv: _Conversation, pending: Message) -> None:
        if conv.store.mark_failed(pending.id) is not None and conv is self._active:
            self._notify()

    def _on_event(self, conv: _Conversation, event: ChannelEvent) -> None:
        if conv is not self._active:
            if event.type != ChannelEvent.CLOSE:
                logger.warning("Discarding %s event for closed room %s", event.type, conv.id)
            return
        if event.type == ChannelEvent.MESSAGE:
            frame = parse_inbound_frame(event.data)
            if frame is None:
                return
            room = normalize_id(frame.conversation_id)
            if room is not None and room != conv.id:
                logger.warning("Dropping frame for room %s on room %s channel", room, conv.id)
                return
            if conv.store.insert_live(frame) is not None:
                self._notify()
        elif event.type == ChannelEvent.ERROR:
            self.channel_error = event.data if isinstance(event.data, ChannelError) else ChannelError(str(event.data))
            self._notify()
        elif event.type == ChannelEvent.CLOSE:
            connection = conv.connection
            if conv.closing or connection is None or connection.state is not ChannelState.CLOSED:
                return
            self._dropped(conv, event.data)

    def _dropped(self, conv: _Conversation, code: Any) -> None:
        """An established connection closed without close() being called."""
        conv.connection = None
        self.channel_error = ChannelError(f"Live channel closed (code {code})", details={"close_code": code})
        logger.info("Live channel dropped for room %s (code %s)", conv.id, code)
        if self._reconnect_policy is not None and conv.reconnecting is None:
            conv.reconnecting = self._spawn(conv, self._reconnect(conv))
            conv.reconnecting.add_done_callback(lambda task: self._reconnect_done(conv, task))
        self._notify()

    def _reconnect_done(self, conv: _Conversation, task: "asyncio.Task[bool]") -> None:
        conv.reconnecting = None
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Reconnect failed for room %s", conv.id, exc_info=error)

    def _spawn(self, conv: _Conversation, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coro)
        conv.tasks.add(task)
        task.add_done_callback(conv.tasks.discard)
        return task

    def _is_stale(self, conv: _Conversation, what: str) -> bool:
        if conv is self._active and not conv.closing:
            return False
        logger.warning("Discarding late %s result for closed room %s", what, conv.id)
        return True

    def _require_active(self) -> _Conversation:
        if self._active is None:
            raise SessionClosedError()
        return self._active

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Timeline listener failed")
