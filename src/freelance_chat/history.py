"""
History loader: fetches the message backlog of a conversation over REST.

Paging is link based: the cursor handed back in ``HistoryPage.next_cursor``
is the ``next`` URL of the previous page, and is requested as-is.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from freelance_chat.errors import FreelanceChatError, HistoryLoadError
from freelance_chat.models.frames import HistoryRecord
from freelance_chat.models.message import Message, normalize_id
from freelance_chat.transport.http import HttpClient, unwrap_results

logger = logging.getLogger(__name__)

HISTORY_PATH = "/chat/messages/"


class HistoryPage:
    __slots__ = ("messages", "next_cursor")

    def __init__(self, messages: list[Message], next_cursor: Optional[str] = None):
        self.messages = messages
        self.next_cursor = next_cursor

    def __repr__(self) -> str:
        return f"HistoryPage(messages={len(self.messages)}, next_cursor={self.next_cursor!r})"


def normalize_records(records: list[Any], conversation_id: str) -> list[Message]:
    """Turn raw history rows into Messages, skipping rows that cannot be read."""
    messages: list[Message] = []
    for raw in records:
        try:
            record = HistoryRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Skipping unreadable history record in room %s: %s", conversation_id, e.errors()[:1])
            continue
        room = normalize_id(record.room)
        if room is not None and room != conversation_id:
            logger.warning("Skipping history record %s for room %s (expected %s)", record.id, room, conversation_id)
            continue
        messages.append(record.to_message(conversation_id))
    return messages


class HistoryLoader:
    def __init__(self, http: HttpClient, path: str = HISTORY_PATH):
        self._http = http
        self._path = path

    async def fetch(self, conversation_id: Any, cursor: Optional[str] = None) -> list[Message]:
        """Fetch one page of history (the whole backlog when the server does not page)."""
        page = await self.fetch_page(conversation_id, cursor)
        return page.messages

    async def fetch_page(self, conversation_id: Any, cursor: Optional[str] = None) -> HistoryPage:
        room = str(conversation_id)
        try:
            if cursor:
                data = await self._http.get(cursor)
            else:
                data = await self._http.get(self._path, params={"room": room})
        except (httpx.HTTPError, FreelanceChatError, ValueError) as e:
            raise HistoryLoadError(
                f"Failed to load history for room {room}: {e}",
                {"conversation_id": room},
            )

        messages = normalize_records(unwrap_results(data), room)
        next_cursor = data.get("next") if isinstance(data, dict) else None
        logger.info("Loaded %d history messages for room %s", len(messages), room)
        return HistoryPage(messages, next_cursor or None)
