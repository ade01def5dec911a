"""
Rooms REST API: the viewer's conversations.
"""

import logging

from pydantic import ValidationError

from freelance_chat.models.room import Room
from freelance_chat.transport.http import HttpClient, unwrap_results

logger = logging.getLogger(__name__)

ROOMS_PATH = "/chat/rooms/"


class RoomsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def list(self) -> list[Room]:
        """List chat rooms. Accepts a bare list or a ``{results: [...]}`` page."""
        data = await self._http.get(ROOMS_PATH)
        rooms: list[Room] = []
        for raw in unwrap_results(data):
            try:
                rooms.append(Room.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable room record: %s", e.errors()[:1])
        return rooms
