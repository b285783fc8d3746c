"""Command-line interface for the mail relay.

Usage:
    mail-relay serve --port 3333 --workers 4
    mail-relay config --json
    mail-relay send --from a@example.com --to b@example.com --subject Hi --text hello

Settings come from ``config.ini`` / environment variables (see
:mod:`mail_relay.config`); command-line options override them.
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import asdict
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from mail_relay.config import Settings, load_settings
from mail_relay.errors import DecodeError, MessageValidationError
from mail_relay.logger import setup_logging
from mail_relay.models import Encoding, MailRequest
from mail_relay.relay import MailRelay

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def settings_summary(settings: Settings) -> dict[str, Any]:
    """Settings as a flat dict with secrets masked."""
    transport = asdict(settings.transport)
    credentials = transport.pop("credentials")
    return {
        "bind_addr": settings.bind_addr,
        "bind_port": settings.bind_port,
        "workers": settings.workers,
        "api_token": "***" if settings.api_token else None,
        "log_level": settings.log_level,
        **{f"smtp_{key}": value for key, value in transport.items()},
        "smtp_username": credentials["username"] if credentials else None,
        "smtp_password": "***" if credentials else None,
    }


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to config.ini (default: $RELAY_CONFIG or config.ini).")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str]) -> None:
    """mail-relay: deliver JSON mail requests to an SMTP server."""
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(config_path)


@main.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to (default: 0.0.0.0).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: 3333).")
@click.option("--workers", "-w", type=int, default=None, help="Worker processes (default: CPU count).")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development.")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int], workers: Optional[int], reload: bool) -> None:
    """Start the HTTP server."""
    import uvicorn

    settings: Settings = ctx.obj["settings"]
    setup_logging(settings.log_level)
    uvicorn.run(
        "mail_relay.server:app",
        host=host or settings.bind_addr,
        port=port or settings.bind_port,
        workers=None if reload else (workers or settings.workers),
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command("config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_config(ctx: click.Context, as_json: bool) -> None:
    """Show the resolved settings (secrets masked)."""
    summary = settings_summary(ctx.obj["settings"])
    if as_json:
        console.print_json(json.dumps(summary, default=str))
        return

    table = Table(title="Mail relay settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in summary.items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


@main.command("send")
@click.option("--from", "from_addr", required=True, help="Sender address.")
@click.option("--to", "to", multiple=True, required=True, help="Recipient address (repeatable).")
@click.option("--subject", "-s", default="", help="Subject line.")
@click.option("--text", "-t", required=True, help="Message body.")
@click.option("--encoding", type=click.Choice([e.value for e in Encoding]), default=Encoding.PLAIN.value,
              help="Encoding of --text (default: plain).")
@click.pass_context
def send(ctx: click.Context, from_addr: str, to: tuple[str, ...], subject: str, text: str, encoding: str) -> None:
    """Deliver one mail directly, bypassing the HTTP server."""
    settings: Settings = ctx.obj["settings"]
    setup_logging(settings.log_level)
    request = MailRequest(from_addr=from_addr, to=list(to), subject=subject, text=text,
                          encoding=Encoding(encoding))
    relay = MailRelay(settings.transport)
    try:
        outcome = run_async(relay.deliver(request))
    except (DecodeError, MessageValidationError) as exc:
        print_error(str(exc))
        sys.exit(2)
    if not outcome.ok:
        print_error(str(outcome.error))
        sys.exit(1)
    print_success(f"Mail sent to {', '.join(outcome.recipients)}")


if __name__ == "__main__":
    main()
