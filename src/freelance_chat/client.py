"""
AsyncFreelanceChat: main SDK client.
"""

from typing import Any, Optional

import aiohttp
import httpx

from freelance_chat.auth import Auth
from freelance_chat.errors import AuthError
from freelance_chat.history import HistoryLoader
from freelance_chat.models.auth import Credentials
from freelance_chat.models.room import Role, Room
from freelance_chat.reconnect import ReconnectPolicy
from freelance_chat.rooms import RoomsAPI
from freelance_chat.session import ChatSession
from freelance_chat.transport.http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_S, HttpClient
from freelance_chat.transport.websocket import DEFAULT_CONNECT_TIMEOUT_S, LiveChannel


class AsyncFreelanceChat:
    """Async client: REST collaborators plus one ChatSession per open conversation."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        user_id: Optional[Any] = None,
        username: Optional[str] = None,
        role: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ws_session: Optional[aiohttp.ClientSession] = None,
    ):
        self._base_url = base_url
        self._access_token = access_token
        self._user_id = user_id
        self._username = username
        self._role = role
        self._reconnect_policy = reconnect_policy

        self.http = HttpClient(base_url=base_url, token=access_token, timeout=timeout, transport=transport)
        self.auth = Auth(self.http)
        self.rooms = RoomsAPI(self.http)
        self.history = HistoryLoader(self.http)
        self.channel = LiveChannel(base_url, session=ws_session, connect_timeout=connect_timeout)

    @property
    def user_id(self) -> Optional[Any]:
        return self._user_id

    @property
    def role(self) -> Optional[str]:
        return self._role

    async def login(self, username: str, password: str) -> Credentials:
        credentials = await self.auth.login(username, password)
        self._access_token = credentials.access_token
        self._user_id = credentials.user_id
        self._username = credentials.username
        self._role = credentials.role.value if credentials.role else None
        return credentials

    def display_name(self, room: Room) -> str:
        return room.display_name(self._role or Role.CLIENT)

    def session(self) -> ChatSession:
        """A new, unopened ChatSession bound to the current credentials."""
        if not self._access_token:
            raise AuthError("access_token required. Log in first.")
        return ChatSession(
            self.history,
            self.channel,
            viewer_id=self._user_id,
            viewer_name=self._username,
            token=self._access_token,
            reconnect_policy=self._reconnect_policy,
        )

    async def open_conversation(self, room_id: Any) -> ChatSession:
        """Create a ChatSession and open ``room_id`` in it."""
        chat = self.session()
        await chat.open(room_id)
        return chat

    async def close(self) -> None:
        await self.http.close()
