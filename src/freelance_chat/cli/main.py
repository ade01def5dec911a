"""
Freelance chat CLI: `freelance-chat` command.

Commands:
  freelance-chat auth login          Username/password login
  freelance-chat rooms               List conversations
  freelance-chat history <room-id>   Print the message history
  freelance-chat chat <room-id>      Interactive live chat
  freelance-chat send <room-id> <m>  One-shot message
"""

import asyncio
import json
from pathlib import Path

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install freelance-chat[cli]")

from freelance_chat.client import AsyncFreelanceChat
from freelance_chat.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".freelance-chat" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_client() -> AsyncFreelanceChat:
    cfg = _load_config()
    if not cfg.get("access_token"):
        console.print("[red]Not logged in. Run `freelance-chat auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncFreelanceChat(
        access_token=cfg["access_token"],
        user_id=cfg.get("user_id"),
        username=cfg.get("username"),
        role=cfg.get("role"),
        base_url=cfg.get("base_url", DEFAULT_BASE_URL),
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
def main():
    """Freelance marketplace chat from the terminal."""


# Register subcommands from separate modules
from freelance_chat.cli.auth import auth
from freelance_chat.cli.chat import chat_cmd, history_cmd, send_cmd
from freelance_chat.cli.rooms import rooms_cmd

main.add_command(auth)
main.add_command(rooms_cmd)
main.add_command(history_cmd)
main.add_command(chat_cmd)
main.add_command(send_cmd)


if __name__ == "__main__":
    main()
