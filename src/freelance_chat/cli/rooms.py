"""CLI: freelance-chat rooms"""

import json

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _get_client():
    from freelance_chat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from freelance_chat.cli.main import _run
    return _run(coro)


@click.command("rooms")
@click.option("--json-output", "--json", is_flag=True)
def rooms_cmd(json_output):
    """List your conversations."""

    async def _list():
        client = _get_client()
        try:
            rooms = await client.rooms.list()
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([
                {"id": r.id, "display_name": client.display_name(r), "last_message": r.last_message}
                for r in rooms
            ], indent=2))
            return
        if not rooms:
            console.print("[dim]No messages yet. Conversations with creatives will appear here.[/dim]")
            return
        table = Table(title=f"Conversations ({len(rooms)})")
        table.add_column("Room", style="bold")
        table.add_column("With")
        table.add_column("Last message")
        for room in rooms:
            table.add_row(str(room.id), client.display_name(room), room.preview)
        console.print(table)

    _run(_list())
