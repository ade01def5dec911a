"""LiveChannel lifecycle against an in-process aiohttp WebSocket peer."""

import asyncio

import pytest

from freelance_chat.errors import ConnectError, NotConnectedError
from freelance_chat.transport.websocket import (
    ChannelEvent,
    ChannelState,
    LiveChannel,
    build_channel_url,
    redact_url,
)


class Recorder:
    def __init__(self):
        self.events: list[ChannelEvent] = []
        self.got: dict[str, asyncio.Event] = {}

    def __call__(self, event: ChannelEvent) -> None:
        self.events.append(event)
        self.waiter(event.type).set()

    def waiter(self, type: str) -> asyncio.Event:
        return self.got.setdefault(type, asyncio.Event())

    async def wait_for(self, type: str, timeout: float = 5.0) -> None:
        await asyncio.wait_for(self.waiter(type).wait(), timeout=timeout)

    def types(self) -> list[str]:
        return [e.type for e in self.events]


def test_build_channel_url():
    assert build_channel_url("https://api.example.com", 12, "abc") == "wss://api.example.com/ws/chat/12/?token=abc"
    assert build_channel_url("http://10.0.2.2:8000/", "5", None) == "ws://10.0.2.2:8000/ws/chat/5/"


def test_redact_url_hides_token():
    assert "secret" not in redact_url("wss://api.example.com/ws/chat/1/?token=secret")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_open_send_receive_close(self, peer):
        recorder = Recorder()
        conn = await LiveChannel(peer.base_url).open(4, "tok-1", on_event=recorder)
        assert conn.state is ChannelState.OPEN
        assert recorder.types() == [ChannelEvent.OPEN]
        assert peer.tokens == ["tok-1"]
        assert peer.rooms == ["4"]

        await conn.send({"message": "hello"})
        await recorder.wait_for(ChannelEvent.MESSAGE)
        assert peer.received == [{"message": "hello"}]
        message = [e for e in recorder.events if e.type == ChannelEvent.MESSAGE][0]
        assert message.data == {"message": "hello", "sender": "alice", "sender_id": 7}
        assert message.conversation_id == "4"

        await conn.close()
        assert conn.state is ChannelState.CLOSED
        assert recorder.types().count(ChannelEvent.CLOSE) == 1
        assert ChannelEvent.ERROR not in recorder.types()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, peer):
        recorder = Recorder()
        conn = await LiveChannel(peer.base_url).open(4, "tok", on_event=recorder)
        await conn.close()
        await conn.close()
        assert conn.state is ChannelState.CLOSED
        assert recorder.types().count(ChannelEvent.CLOSE) == 1

    @pytest.mark.asyncio
    async def test_send_after_close_raises_not_connected(self, peer):
        conn = await LiveChannel(peer.base_url).open(4, "tok")
        await conn.close()
        with pytest.raises(NotConnectedError):
            await conn.send({"message": "too late"})

    @pytest.mark.asyncio
    async def test_server_close_emits_single_close(self, peer):
        recorder = Recorder()
        conn = await LiveChannel(peer.base_url).open(4, "tok", on_event=recorder)
        await asyncio.wait_for(peer.connected.wait(), timeout=5)
        await peer.sockets[0].close(code=4001)
        await recorder.wait_for(ChannelEvent.CLOSE)
        assert conn.state is ChannelState.CLOSED
        assert conn.close_code == 4001
        assert recorder.types() == [ChannelEvent.OPEN, ChannelEvent.CLOSE]

    @pytest.mark.asyncio
    async def test_malformed_frames_are_dropped(self, peer):
        recorder = Recorder()
        conn = await LiveChannel(peer.base_url).open(4, "tok", on_event=recorder)
        await asyncio.wait_for(peer.connected.wait(), timeout=5)
        await peer.sockets[0].send_str("not json")
        await peer.sockets[0].send_str("[1, 2]")
        await peer.sockets[0].send_json({"message": "ok", "sender_id": 2})
        await recorder.wait_for(ChannelEvent.MESSAGE)
        messages = [e.data for e in recorder.events if e.type == ChannelEvent.MESSAGE]
        assert messages == [{"message": "ok", "sender_id": 2}]
        await conn.close()

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_break_the_channel(self, peer):
        recorder = Recorder()

        def broken(event: ChannelEvent) -> None:
            raise RuntimeError("listener bug")

        conn = await LiveChannel(peer.base_url).open(4, "tok", on_event=broken)
        conn.add_event_handler(recorder)
        await conn.send({"message": "still works"})
        await recorder.wait_for(ChannelEvent.MESSAGE)
        await conn.close()
        assert conn.state is ChannelState.CLOSED


class TestConnectFailure:
    @pytest.mark.asyncio
    async def test_handshake_rejected(self, peer):
        recorder = Recorder()
        channel = LiveChannel(peer.base_url.rstrip("/") + "/nowhere")
        with pytest.raises(ConnectError) as exc:
            await channel.open(4, "tok", on_event=recorder)
        assert exc.value.code == "connect_error"
        assert recorder.types() == [ChannelEvent.ERROR, ChannelEvent.CLOSE]
        close = recorder.events[-1]
        assert close.data == 1006

    @pytest.mark.asyncio
    async def test_unreachable_host(self):
        recorder = Recorder()
        channel = LiveChannel("http://127.0.0.1:9", connect_timeout=2.0)
        with pytest.raises(ConnectError):
            await channel.open(4, "tok", on_event=recorder)
        assert recorder.types() == [ChannelEvent.ERROR, ChannelEvent.CLOSE]
