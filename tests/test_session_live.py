"""ChatSession over a real LiveChannel and an in-process WebSocket peer."""

import asyncio

import httpx
import pytest

from freelance_chat.history import HistoryLoader
from freelance_chat.models.message import MessageState
from freelance_chat.reconnect import ReconnectPolicy
from freelance_chat.session import ChatSession
from freelance_chat.transport.http import HttpClient
from freelance_chat.transport.websocket import ChannelState, LiveChannel


async def eventually(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def empty_history() -> HistoryLoader:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
    return HistoryLoader(HttpClient(base_url="https://api.example.test", token="tok", transport=transport))


def timeline(session):
    return [(m.body, m.state) for m in session.snapshot()]


def make_session(peer, **kwargs) -> ChatSession:
    return ChatSession(empty_history(), LiveChannel(peer.base_url), viewer_id=7, viewer_name="me", token="tok", **kwargs)


class TestLiveSession:
    @pytest.mark.asyncio
    async def test_echo_reconciles_send(self, peer):
        session = make_session(peer)
        await session.open(4)
        assert session.channel_state is ChannelState.OPEN

        await session.send_message("hello")
        await eventually(lambda: timeline(session) == [("hello", MessageState.CONFIRMED)])
        assert peer.received == [{"message": "hello"}]
        await session.close()

    @pytest.mark.asyncio
    async def test_server_close_without_policy(self, peer):
        session = make_session(peer)
        await session.open(4)
        await peer.sockets[0].close(code=4001)
        await eventually(lambda: session.channel_error is not None)

        assert session.channel_state is ChannelState.CLOSED
        assert session.channel_error.details == {"close_code": 4001}
        assert len(peer.sockets) == 1
        failed = await session.send_message("anyone?")
        assert failed.state is MessageState.FAILED
        await session.close()

    @pytest.mark.asyncio
    async def test_server_close_with_policy_reconnects(self, peer):
        session = make_session(peer, reconnect_policy=ReconnectPolicy(initial_delay=0, max_attempts=3))
        await session.open(4)
        await peer.sockets[0].close(code=4001)
        await eventually(lambda: len(peer.sockets) == 2 and session.channel_state is ChannelState.OPEN)

        await session.send_message("back")
        await eventually(lambda: timeline(session) == [("back", MessageState.CONFIRMED)])
        await session.close()


class TestCloseDuringHandshake:
    @pytest.mark.asyncio
    async def test_drop_is_surfaced_without_policy(self, peer):
        peer.reject_first = 1
        session = make_session(peer)
        await session.open(4)
        await eventually(lambda: session.channel_error is not None)

        assert session.channel_state is ChannelState.CLOSED
        assert len(peer.sockets) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_drop_triggers_reconnect_with_policy(self, peer):
        peer.reject_first = 1
        session = make_session(peer, reconnect_policy=ReconnectPolicy(initial_delay=0, max_attempts=3))
        await session.open(4)
        await eventually(lambda: len(peer.sockets) == 2 and session.channel_state is ChannelState.OPEN)

        await session.send_message("made it")
        await eventually(lambda: timeline(session) == [("made it", MessageState.CONFIRMED)])
        await session.close()
