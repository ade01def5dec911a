"""CLI: freelance-chat history, freelance-chat chat, freelance-chat send"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console

from freelance_chat.models.message import Message, MessageState

console = Console()

STATE_MARKERS = {
    MessageState.PENDING: " [dim](sending…)[/dim]",
    MessageState.CONFIRMED: "",
    MessageState.FAILED: " [red](not delivered, /retry to resend)[/red]",
}


def _get_client():
    from freelance_chat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from freelance_chat.cli.main import _run
    return _run(coro)


def _format(message: Message, viewer_id: Optional[str]) -> str:
    when = message.created_at.astimezone().strftime("%H:%M")
    if message.is_mine(viewer_id):
        who = "[cyan]You[/cyan]"
    else:
        who = f"[green]{message.sender_name}[/green]"
    return f"[dim]{when}[/dim] {who}: {message.body}{STATE_MARKERS[message.state]}"


def _message_json(message: Message) -> str:
    return json.dumps(message.model_dump(mode="json"))


@click.command("history")
@click.argument("room_id")
@click.option("--json-output", "--json", is_flag=True)
def history_cmd(room_id: str, json_output: bool):
    """Print the message history of a room."""

    async def _history():
        client = _get_client()
        try:
            messages = await client.history.fetch(room_id)
        finally:
            await client.close()
        messages.sort(key=lambda m: m.created_at)
        if json_output:
            for message in messages:
                click.echo(_message_json(message))
            return
        if not messages:
            console.print("[dim]No messages yet. Say hi![/dim]")
        for message in messages:
            console.print(_format(message, client.user_id))

    _run(_history())


@click.command("chat")
@click.argument("room_id")
def chat_cmd(room_id: str):
    """Interactive live chat in a room."""

    async def _chat():
        client = _get_client()
        with console.status("Opening conversation..."):
            chat = await client.open_conversation(room_id)
        viewer = chat.viewer_id
        if chat.history_error:
            console.print(f"[yellow]Could not load history: {chat.history_error}[/yellow]")
        if chat.channel_error:
            console.print(f"[yellow]Live channel unavailable: {chat.channel_error}[/yellow]")

        timeline = chat.snapshot()
        if not timeline:
            console.print("[dim]No messages yet. Say hi![/dim]")
        for message in timeline:
            console.print(_format(message, viewer))
        seen = {m.id for m in timeline}

        def on_change(snapshot: tuple[Message, ...]) -> None:
            for message in snapshot:
                if message.id in seen:
                    continue
                seen.add(message.id)
                if not message.is_mine(viewer):
                    console.print(_format(message, viewer))

        remove = chat.subscribe(on_change)
        console.print("[cyan]Type your message (/retry resends failed, /quit exits)[/cyan]\n")
        last_failed: Optional[str] = None
        try:
            while True:
                text = await asyncio.to_thread(click.prompt, "You", prompt_suffix=": ")
                if text.lower() in ("/quit", "/exit"):
                    break
                if text.lower() == "/retry":
                    if last_failed is None:
                        console.print("[dim]Nothing to retry.[/dim]")
                        continue
                    result = await chat.retry_message(last_failed)
                else:
                    result = await chat.send_message(text)
                if result is None:
                    continue
                last_failed = result.id if result.state is MessageState.FAILED else None
                if result.state is MessageState.FAILED:
                    console.print(_format(result, viewer))
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            remove()
            await chat.close()
            await client.close()

    _run(_chat())


@click.command("send")
@click.argument("room_id")
@click.argument("message")
@click.option("--wait", default=5.0, type=float, help="Seconds to wait for the server echo")
@click.option("--json-output", "--json", is_flag=True)
def send_cmd(room_id: str, message: str, wait: float, json_output: bool):
    """Send a one-shot message."""

    async def _send():
        client = _get_client()
        chat = await client.open_conversation(room_id)
        confirmed = asyncio.Event()
        try:
            sent = await chat.send_message(message)
            if sent is None:
                raise click.UsageError("Message is empty")
            if sent.state is MessageState.PENDING:
                def on_change(_snapshot: tuple[Message, ...]) -> None:
                    current = chat.snapshot()
                    if any(m.body == sent.body and m.state is MessageState.CONFIRMED and m.is_mine(chat.viewer_id)
                           for m in current):
                        confirmed.set()
                remove = chat.subscribe(on_change)
                try:
                    await asyncio.wait_for(confirmed.wait(), timeout=wait)
                except asyncio.TimeoutError:
                    pass
                finally:
                    remove()
            final = next((m for m in reversed(chat.snapshot()) if m.body == sent.body and m.is_mine(chat.viewer_id)), sent)
        finally:
            await chat.close()
            await client.close()

        if json_output:
            click.echo(_message_json(final))
        else:
            console.print(_format(final, client.user_id))
        if final.state is MessageState.FAILED:
            raise SystemExit(1)

    _run(_send())
