"""CLI entry point for bsky-bridge."""

import logging

import click
import uvicorn

from .bridge import MemoryEventQueue, MemoryStateSink, UserLogin
from .client import BlueskyClient
from .errors import BridgeError
from .login import DEFAULT_SERVER, PasswordLogin
from .store import JSONLoginStore


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """Keep Bluesky chat inboxes mirrored into a bridge."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--server", default=DEFAULT_SERVER, show_default=True, help="Bluesky server domain.")
@click.option("--username", prompt=True, help="Handle or email address.")
@click.option("--password", prompt=True, hide_input=True, help="Account or app password.")
def login(server: str, username: str, password: str):
    """Log in and store the session."""
    flow = PasswordLogin(JSONLoginStore(), MemoryEventQueue(), MemoryStateSink())
    try:
        client = flow.submit(server, username, password, start_sync=False)
    except BridgeError as e:
        raise click.ClickException(str(e))
    click.echo(f"Successfully logged in as {client.login.remote_name} ({client.login.id})")


@main.command()
def logins():
    """List stored logins."""
    records = JSONLoginStore().load_all()
    if not records:
        click.echo("No stored logins.")
        return
    for record in records:
        host = record.get("metadata", {}).get("host", "")
        click.echo(f"{record['id']}\t{record.get('remote_name', '')}\t{host}")


@main.command()
@click.argument("login_id")
def logout(login_id: str):
    """Delete the remote session and forget a stored login."""
    store = JSONLoginStore()
    record = next((r for r in store.load_all() if r["id"] == login_id), None)
    if record is None:
        raise click.ClickException(f"Unknown login: {login_id}")
    client = BlueskyClient(UserLogin.from_record(record, store, MemoryEventQueue(), MemoryStateSink()))
    client.logout()
    try:
        store.delete(login_id)
    except BridgeError as e:
        raise click.ClickException(str(e))
    click.echo(f"Logged out {login_id}")


@main.command()
@click.option("--port", default=29340, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Connect all stored logins and start the HTTP API."""
    click.echo(f"Starting bsky-bridge on http://{host}:{port}")
    uvicorn.run("bsky_bridge.server:app", host=host, port=port, reload=False)
