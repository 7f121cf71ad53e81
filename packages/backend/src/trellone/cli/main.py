"""Trellone CLI — run the server and drive boards from the terminal.

Usage:
    trellone serve                                  # Run the API with uvicorn
    trellone init-db                                # Create the database tables
    trellone register alice@example.com             # Create an account
    trellone login alice@example.com                # Store a token pair locally
    trellone me                                     # Who am I?
    trellone board <board-id>                       # Columns and cards, in order
    trellone move-card <card-id> <column-id> -p 0   # Move a card (top of column)
    trellone refresh                                # Rotate the stored refresh token
    trellone logout                                 # Revoke and forget the tokens
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TRELLONE_API_URL", DEFAULT_API_URL).rstrip("/")


def _credentials_path() -> Path:
    override = os.environ.get("TRELLONE_CREDENTIALS")
    if override:
        return Path(override)
    return Path.home() / ".trellone" / "credentials.json"


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Trellone backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def load_credentials() -> dict:
    path = _credentials_path()
    if not path.exists():
        return {}
    return json.loads(path.read_text())


def save_credentials(tokens: dict) -> None:
    path = _credentials_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(tokens, indent=2))
    path.chmod(0o600)


def clear_credentials() -> None:
    path = _credentials_path()
    if path.exists():
        path.unlink()


def _auth_headers() -> dict:
    creds = load_credentials()
    if not creds.get("access_token"):
        click.secho("Not logged in. Run: trellone login <email>", fg="red", err=True)
        sys.exit(1)
    return {"Authorization": f"Bearer {creds['access_token']}"}


def _check(r: httpx.Response) -> dict:
    """Return the JSON body, or print the API's message and exit."""
    body = r.json() if r.content else {}
    if r.is_success:
        return body
    click.secho(f"Error ({r.status_code}): {body.get('message', r.text)}", fg="red", err=True)
    for field, err in (body.get("errors") or {}).items():
        click.secho(f"  {field}: {err.get('msg')}", fg="red", err=True)
    sys.exit(1)


def compute_move(
    board: dict, card_id: str, to_column_id: str, position: Optional[int]
) -> dict:
    """Build the move-card request body from a board snapshot.

    The server expects both orderings as they look after the move.
    """
    columns = {c["id"]: c for c in board["columns"]}
    source = next(
        (c for c in board["columns"] if card_id in c["card_order_ids"]), None
    )
    if source is None:
        raise click.ClickException(f"Card {card_id} is not on this board")
    if to_column_id not in columns:
        raise click.ClickException(f"Column {to_column_id} is not on this board")

    prev_ids = [cid for cid in source["card_order_ids"] if cid != card_id]
    if to_column_id == source["id"]:
        next_ids = list(prev_ids)
    else:
        next_ids = list(columns[to_column_id]["card_order_ids"])
    index = len(next_ids) if position is None else max(0, min(position, len(next_ids)))
    next_ids.insert(index, card_id)

    return {
        "current_card_id": card_id,
        "prev_column_id": source["id"],
        "prev_card_order_ids": next_ids if to_column_id == source["id"] else prev_ids,
        "next_column_id": to_column_id,
        "next_card_order_ids": next_ids,
    }


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="trellone")
def main():
    """Trellone — Kanban boards from the terminal."""


# ---------------------------------------------------------------------------
# trellone serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: TRELLONE_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: TRELLONE_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from trellone.config import settings

    uvicorn.run(
        "trellone.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create the database tables (idempotent)."""
    _run(_init_db_impl())


async def _init_db_impl():
    from trellone.db.engine import engine
    from trellone.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    click.secho("Database tables ready.", fg="green")


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.option("--name", "display_name", default=None, help="Display name")
@click.password_option()
def register(email: str, display_name: Optional[str], password: str):
    """Create an account. A verification link is emailed."""
    _run(_register_impl(email, display_name, password))


async def _register_impl(email: str, display_name: Optional[str], password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/register", json={
            "email": email,
            "password": password,
            "confirm_password": password,
            "display_name": display_name,
        })
        body = _check(r)
    click.secho(body["message"], fg="green")


@main.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Log in and store the token pair."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/login", json={"email": email, "password": password})
        body = _check(r)
    save_credentials(body["result"])
    click.secho(body["message"], fg="green")


@main.command()
def refresh():
    """Exchange the stored refresh token for a new pair."""
    _run(_refresh_impl())


async def _refresh_impl():
    creds = load_credentials()
    if not creds.get("refresh_token"):
        click.secho("Not logged in.", fg="red", err=True)
        sys.exit(1)
    async with _client() as c:
        r = await c.post(
            "/api/v1/auth/refresh-token", json={"refresh_token": creds["refresh_token"]}
        )
        body = _check(r)
    save_credentials(body["result"])
    click.secho(body["message"], fg="green")


@main.command()
def logout():
    """Revoke the stored refresh token and forget both tokens."""
    _run(_logout_impl())


async def _logout_impl():
    creds = load_credentials()
    headers = _auth_headers()
    async with _client() as c:
        r = await c.post(
            "/api/v1/auth/logout",
            json={"refresh_token": creds.get("refresh_token")},
            headers=headers,
        )
        body = _check(r)
    clear_credentials()
    click.secho(body["message"], fg="green")


@main.command()
def me():
    """Show the logged-in user."""
    _run(_me_impl())


async def _me_impl():
    async with _client() as c:
        r = await c.get("/api/v1/users/me", headers=_auth_headers())
        user = _check(r)["result"]
    verified = {0: "unverified", 1: "verified", 2: "banned"}.get(user["verify"], "?")
    click.echo(f"{user['display_name']} <{user['email']}>  [{verified}]")
    click.echo(f"  id: {user['id']}")


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


@main.command()
@click.argument("board_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON")
def board(board_id: str, as_json: bool):
    """Show a board's columns and cards in display order."""
    _run(_board_impl(board_id, as_json))


async def _board_impl(board_id: str, as_json: bool):
    async with _client() as c:
        r = await c.get(f"/api/v1/boards/{board_id}", headers=_auth_headers())
        data = _check(r)["result"]

    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
        return

    click.secho(f"{data['title']}  ({data['type']})", bold=True)
    if data.get("description"):
        click.echo(data["description"])
    click.echo()
    if not data["columns"]:
        click.echo("No columns.")
        return
    for column in data["columns"]:
        click.secho(f"■ {column['title']}  [{column['id'][:8]}]", fg="cyan")
        if not column["cards"]:
            click.echo("    (empty)")
        for card in column["cards"]:
            click.echo(f"    - {card['title']}  [{card['id'][:8]}]")


@main.command("move-card")
@click.argument("card_id")
@click.argument("to_column_id")
@click.option("--board-id", "-b", required=True, help="Board UUID")
@click.option("--position", "-p", type=int, default=None,
              help="Index in the destination column (default: bottom)")
def move_card(card_id: str, to_column_id: str, board_id: str, position: Optional[int]):
    """Move a card to another column (or another position in its column)."""
    _run(_move_card_impl(card_id, to_column_id, board_id, position))


async def _move_card_impl(
    card_id: str, to_column_id: str, board_id: str, position: Optional[int]
):
    headers = _auth_headers()
    async with _client() as c:
        r = await c.get(f"/api/v1/boards/{board_id}", headers=headers)
        snapshot = _check(r)["result"]
        body = compute_move(snapshot, card_id, to_column_id, position)
        r = await c.put("/api/v1/boards/supports/moving-card", json=body, headers=headers)
        result = _check(r)
    click.secho(result["message"], fg="green")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
