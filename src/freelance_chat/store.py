"""
Message store: the ordered, deduplicated timeline of one conversation.

Entries are kept sorted by ``(created_at, seq)`` where ``seq`` is a
per-store insertion counter, so equal timestamps keep arrival order
(history page order first, then live and local entries).

Reconciliation: a pushed message that echoes one of our own ``PENDING``
sends replaces that entry in place (same position, same sort key) instead
of being appended a second time. An exact ``client_id`` match wins; the
fallback is sender + body equality against the earliest unreconciled
``PENDING`` entry.
"""

import bisect
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from freelance_chat.models.frames import InboundFrame
from freelance_chat.models.message import Message, MessageState, as_utc
from freelance_chat.transport.frames import parse_inbound_frame

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Entry:
    __slots__ = ("seq", "created_at", "message")

    def __init__(self, seq: int, created_at: datetime, message: Message):
        self.seq = seq
        self.created_at = created_at
        self.message = message

    @property
    def key(self) -> tuple[datetime, int]:
        return (self.created_at, self.seq)


class MessageStore:
    def __init__(self, conversation_id: Any, clock: Clock = utcnow):
        self._conversation_id = str(conversation_id)
        self._clock = clock
        self._seq = itertools.count()
        self._entries: list[_Entry] = []
        self._by_id: dict[str, _Entry] = {}
        # local id -> id of the confirmed message that replaced it
        self._reconciled: dict[str, str] = {}
        self._loaded = False

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._entries)

    def load(self, history: Iterable[Message]) -> None:
        """Replace the contents with ``history``, sorted and deduplicated by id."""
        self._entries = []
        self._by_id = {}
        self._reconciled = {}
        for message in history:
            if message.id in self._by_id:
                continue
            self._add(_Entry(next(self._seq), message.created_at, message))
        self._loaded = True

    def insert_live(self, raw: Union[InboundFrame, dict[str, Any]]) -> Optional[Message]:
        """Merge one pushed message. Returns the resulting timeline entry,
        or ``None`` when the payload is not a chat message."""
        frame = raw if isinstance(raw, InboundFrame) else parse_inbound_frame(raw)
        if frame is None:
            return None

        incoming = frame.to_message(self._conversation_id, self._clock())
        if frame.id is not None and incoming.id in self._by_id:
            return self._by_id[incoming.id].message

        pending = self._match_pending(frame, incoming)
        if pending is not None:
            return self._reconcile(pending, incoming)

        entry = _Entry(next(self._seq), incoming.created_at, incoming)
        self._add(entry)
        return incoming

    def insert_optimistic(self, message: Message) -> Message:
        """Append a local ``PENDING`` message at the end of the timeline."""
        created_at = self._tail_time(message.created_at)
        pending = message.model_copy(update={"state": MessageState.PENDING, "created_at": created_at})
        self._add(_Entry(next(self._seq), created_at, pending))
        return pending

    def mark_failed(self, local_id: str) -> Optional[Message]:
        entry = self._by_id.get(local_id)
        if entry is None or entry.message.state is not MessageState.PENDING:
            return None
        entry.message = entry.message.model_copy(update={"state": MessageState.FAILED})
        return entry.message

    def requeue(self, local_id: str) -> Optional[Message]:
        """Move a ``FAILED`` message back to ``PENDING`` at the end of the timeline."""
        entry = self._by_id.get(local_id)
        if entry is None or entry.message.state is not MessageState.FAILED:
            return None
        self._remove(entry)
        now = as_utc(self._clock())
        return self.insert_optimistic(entry.message.model_copy(update={"created_at": now}))

    def get(self, message_id: str) -> Optional[Message]:
        message_id = self._reconciled.get(message_id, message_id)
        entry = self._by_id.get(message_id)
        return entry.message if entry else None

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(entry.message for entry in self._entries)

    def _match_pending(self, frame: InboundFrame, incoming: Message) -> Optional[_Entry]:
        if frame.client_id:
            entry = self._by_id.get(frame.client_id)
            if entry is not None and entry.message.state is MessageState.PENDING:
                return entry
        if incoming.sender_id is None:
            return None
        for entry in self._entries:
            message = entry.message
            if (
                message.state is MessageState.PENDING
                and message.sender_id == incoming.sender_id
                and message.body == incoming.body
            ):
                return entry
        return None

    def _reconcile(self, entry: _Entry, incoming: Message) -> Message:
        local_id = entry.message.id
        confirmed = entry.message.model_copy(update={
            "id": incoming.id,
            "state": MessageState.CONFIRMED,
        })
        del self._by_id[local_id]
        entry.message = confirmed
        self._by_id[confirmed.id] = entry
        self._reconciled[local_id] = confirmed.id
        logger.debug("Reconciled %s -> %s in conversation %s", local_id, confirmed.id, self._conversation_id)
        return confirmed

    def _tail_time(self, candidate: datetime) -> datetime:
        if self._entries and self._entries[-1].created_at > candidate:
            return self._entries[-1].created_at
        return candidate

    def _add(self, entry: _Entry) -> None:
        bisect.insort(self._entries, entry, key=lambda e: e.key)
        self._by_id[entry.message.id] = entry

    def _remove(self, entry: _Entry) -> None:
        self._entries.remove(entry)
        self._by_id.pop(entry.message.id, None)
