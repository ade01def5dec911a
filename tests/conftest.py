import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer


class FakeClock:
    """Settable UTC clock; ``at(seconds)`` jumps to that unix time."""

    def __init__(self, start: float = 1000.0):
        self.now = datetime.fromtimestamp(start, timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def at(self, seconds: float) -> None:
        self.now = datetime.fromtimestamp(seconds, timezone.utc)

    def advance(self, seconds: float = 1.0) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class ChatPeer:
    """Echoes every frame back the way the chat consumer does.

    The first ``reject_first`` connections are closed with 4001 right after
    the handshake completes.
    """

    def __init__(self, reject_first: int = 0):
        self.reject_first = reject_first
        self.tokens: list[str] = []
        self.rooms: list[str] = []
        self.received: list[dict] = []
        self.sockets: list[web.WebSocketResponse] = []
        self.connected = asyncio.Event()

    async def handler(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.tokens.append(request.query.get("token", ""))
        self.rooms.append(request.match_info["room"])
        self.sockets.append(ws)
        self.connected.set()
        if self.reject_first:
            self.reject_first -= 1
            await ws.close(code=4001)
            return ws
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                data = json.loads(msg.data)
                self.received.append(data)
                await ws.send_json({"message": data["message"], "sender": "alice", "sender_id": 7})
        return ws


@pytest_asyncio.fixture
async def peer():
    chat_peer = ChatPeer()
    app = web.Application()
    app.router.add_get("/ws/chat/{room}/", chat_peer.handler)
    server = TestServer(app)
    await server.start_server()
    chat_peer.base_url = str(server.make_url("/"))
    yield chat_peer
    await server.close()
