"""Coursegate CLI — admin chores from the terminal.

Usage:
    coursegate login admin@example.com           # Print an access token
    coursegate pending                           # Registrations awaiting approval
    coursegate approve <user-id>                 # Activate an account
    coursegate approve <user-id> --reject        # Reject (delete) a registration
    coursegate stats                             # User and collection counts
    coursegate create-admin admin@example.com    # Bootstrap an admin (direct DB write)

Every command except create-admin talks to the HTTP API and needs a
token in COURSEGATE_TOKEN (or --token).
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("COURSEGATE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Coursegate backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Offloads to a thread when an event loop is already running
    (e.g. CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _token(token: Optional[str]) -> str:
    tok = token or os.environ.get("COURSEGATE_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set COURSEGATE_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _fail(response: httpx.Response) -> None:
    """Print the error envelope and exit when the API refused the call."""
    if response.is_success:
        return
    try:
        body = response.json()
        message = body.get("error") or body.get("message") or response.text
    except ValueError:
        message = response.text
    click.secho(f"Error {response.status_code}: {message}", fg="red", err=True)
    sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        click.echo("  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns))


token_option = click.option("--token", help="Access token (or set COURSEGATE_TOKEN)")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="coursegate")
def main():
    """Coursegate — course platform administration."""


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
def login(email: str, password: str):
    """Log in and print an access token for COURSEGATE_TOKEN."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/auth/login", json={"email": email, "password": password})
        _fail(r)
        click.echo(r.json()["access_token"])


@main.command()
@token_option
def pending(token: Optional[str]):
    """List registrations awaiting approval."""
    _run(_pending_impl(_token(token)))


async def _pending_impl(token: str):
    async with _client(token) as c:
        r = await c.get("/api/admin/users/pending")
        _fail(r)
        users = r.json()["users"]

    if not users:
        click.echo("No pending registrations.")
        return
    for u in users:
        u["name"] = f"{u['first_name']} {u['last_name']}"
    _print_table(users, [
        ("ID", "id", 36),
        ("EMAIL", "email", 32),
        ("NAME", "name", 24),
        ("REGISTERED", "created_at", 19),
    ])


@main.command()
@click.argument("user_id")
@click.option("--reject", is_flag=True, help="Reject and delete the registration")
@token_option
def approve(user_id: str, reject: bool, token: Optional[str]):
    """Approve (or --reject) a pending registration."""
    _run(_approve_impl(user_id, not reject, _token(token)))


async def _approve_impl(user_id: str, approve_user: bool, token: str):
    async with _client(token) as c:
        r = await c.post(
            "/api/admin/users/approve",
            json={"user_id": user_id, "approve": approve_user},
        )
        _fail(r)
        click.secho(r.json()["message"], fg="green" if approve_user else "yellow")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@token_option
def stats(as_json: bool, token: Optional[str]):
    """Show user counts and collection sizes."""
    _run(_stats_impl(as_json, _token(token)))


async def _stats_impl(as_json: bool, token: str):
    async with _client(token) as c:
        r = await c.get("/api/admin/stats")
        _fail(r)
        data = r.json()

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return
    click.secho("Users", bold=True)
    click.echo(f"  total:   {data['total_users']}")
    click.echo(f"  active:  {data['active_users']}")
    click.echo(f"  pending: {data['pending_users']}")
    click.secho("Collections", bold=True)
    for name, count in sorted(data["collections"].items()):
        click.echo(f"  {name:28s} {count}")


@main.command("create-admin")
@click.argument("email")
@click.password_option()
@click.option("--first-name", default="Admin")
@click.option("--last-name", default="User")
def create_admin(email: str, password: str, first_name: str, last_name: str):
    """Create (or promote) an active admin directly in the database."""
    user = _run(_create_admin_impl(email, password, first_name, last_name))
    click.secho(f"Admin ready: {user.email} ({user.id})", fg="green")


async def _create_admin_impl(email: str, password: str, first_name: str, last_name: str):
    from coursegate.db.engine import create_tables, dispose_engine, get_engine, init_engine
    from coursegate.services.user_directory import UserDirectory
    from sqlalchemy.ext.asyncio import AsyncSession

    init_engine()
    try:
        await create_tables()
        async with AsyncSession(get_engine(), expire_on_commit=False) as db:
            return await UserDirectory(db).create_admin(
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
            )
    finally:
        await dispose_engine()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
