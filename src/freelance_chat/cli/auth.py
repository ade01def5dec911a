"""CLI: freelance-chat auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from freelance_chat.client import AsyncFreelanceChat
from freelance_chat.errors import AuthError
from freelance_chat.transport.http import DEFAULT_BASE_URL

console = Console()


def _load_config() -> dict:
    from freelance_chat.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from freelance_chat.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from freelance_chat.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="Backend base URL")
def auth_login(base_url: Optional[str]):
    """Log in with username and password."""

    async def _login():
        cfg = _load_config()
        url = base_url or cfg.get("base_url", DEFAULT_BASE_URL)
        client = AsyncFreelanceChat(base_url=url)

        username = click.prompt("Username")
        password = click.prompt("Password", hide_input=True)
        try:
            with console.status("Logging in..."):
                creds = await client.login(username, password)
        except AuthError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()
        role = creds.role.value if creds.role else None
        console.print(f"[green]Logged in as {creds.username} (ID: {creds.user_id}, role: {role})[/green]")

        _save_config({**cfg, "access_token": creds.access_token, "refresh_token": creds.refresh_token,
                      "user_id": creds.user_id, "username": creds.username, "role": role, "base_url": url})
        console.print("[dim]Token saved to ~/.freelance-chat/config.json[/dim]")

    _run(_login())


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("access_token"):
        console.print(f"[green]Logged in[/green] as {cfg.get('username', 'unknown')} "
                      f"(ID: {cfg.get('user_id')}, role: {cfg.get('role')})")
    else:
        console.print("[yellow]Not logged in. Run `freelance-chat auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    cfg = _load_config()
    _save_config({"base_url": cfg["base_url"]} if cfg.get("base_url") else {})
    console.print("[green]Logged out.[/green]")
