"""userpulse CLI — manage users, read logs, and watch live notifications.

Usage:
    userpulse add "Al" al@example.com          # Create a user (publishes user.created)
    userpulse users                            # Live users
    userpulse users --deleted                  # Soft-deleted users
    userpulse user al@example.com              # Cached lookup by email
    userpulse update 3 --name "Alan"           # Change name and/or email
    userpulse delete 3                         # Soft delete
    userpulse log user "User created"          # Post a log line
    userpulse logs --service user              # Read log lines
    userpulse watch                            # Follow the notification stream
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
    return os.environ.get("USERPULSE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(timeout: Optional[float] = 30.0) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the userpulse backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=timeout)


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


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _fail(resp: httpx.Response) -> None:
    """Print the API error and exit non-zero."""
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error ({resp.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


_USER_COLUMNS = [("ID", "id", 6), ("NAME", "name", 24), ("EMAIL", "email", 32)]


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="userpulse")
def main():
    """userpulse — users, logs, and live notifications."""


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name")
@click.argument("email")
def add(name: str, email: str):
    """Create a user."""
    _run(_add_impl(name, email))


async def _add_impl(name: str, email: str):
    async with _client() as c:
        r = await c.post("/api/v1/users", json={"name": name, "email": email})
        if r.status_code != 201:
            _fail(r)
        user = r.json()
        click.secho(f"Saved user #{user['id']} ({user['email']})", fg="green")


@main.command()
@click.option("--deleted", is_flag=True, help="Show soft-deleted users instead")
@click.option("--json", "as_json", is_flag=True, help="Raw JSON output")
def users(deleted: bool, as_json: bool):
    """List users."""
    _run(_users_impl(deleted, as_json))


async def _users_impl(deleted: bool, as_json: bool):
    path = "/api/v1/users/deleted" if deleted else "/api/v1/users"
    async with _client() as c:
        r = await c.get(path)
        if r.status_code != 200:
            _fail(r)
        rows = r.json()

    if as_json:
        click.echo(_pretty_json(rows))
    elif not rows:
        click.echo("No users.")
    else:
        _print_table(rows, _USER_COLUMNS)


@main.command()
@click.argument("email")
def user(email: str):
    """Look up a user by email."""
    _run(_user_impl(email))


async def _user_impl(email: str):
    async with _client() as c:
        r = await c.get("/api/v1/users/by-email", params={"email": email})
        if r.status_code != 200:
            _fail(r)
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("user_id", type=int)
@click.option("--name", "-n", help="New name")
@click.option("--email", "-e", help="New email")
def update(user_id: int, name: Optional[str], email: Optional[str]):
    """Update a user's name and/or email."""
    if not name and not email:
        click.secho("Nothing to update: pass --name and/or --email", fg="yellow", err=True)
        sys.exit(1)
    _run(_update_impl(user_id, name, email))


async def _update_impl(user_id: int, name: Optional[str], email: Optional[str]):
    body = {k: v for k, v in (("name", name), ("email", email)) if v}
    async with _client() as c:
        r = await c.patch(f"/api/v1/users/{user_id}", json=body)
        if r.status_code != 200:
            _fail(r)
        click.secho(f"Updated user #{user_id}", fg="green")


@main.command()
@click.argument("user_id", type=int)
def delete(user_id: int):
    """Soft-delete a user."""
    _run(_delete_impl(user_id))


async def _delete_impl(user_id: int):
    async with _client() as c:
        r = await c.delete(f"/api/v1/users/{user_id}")
        if r.status_code != 200:
            _fail(r)
        click.secho(f"Soft deleted user #{user_id}", fg="green")


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


@main.command()
@click.argument("service")
@click.argument("message")
def log(service: str, message: str):
    """Post a log line on behalf of SERVICE."""
    _run(_log_impl(service, message))


async def _log_impl(service: str, message: str):
    async with _client() as c:
        r = await c.post("/api/v1/logs", json={"service": service, "message": message})
        if r.status_code != 201:
            _fail(r)
        click.echo(f"Logged #{r.json()['id']}")


@main.command()
@click.option("--service", "-s", help="Only this service's entries")
def logs(service: Optional[str]):
    """Read log lines."""
    _run(_logs_impl(service))


async def _logs_impl(service: Optional[str]):
    params = {"service": service} if service else None
    async with _client() as c:
        r = await c.get("/api/v1/logs", params=params)
        if r.status_code != 200:
            _fail(r)
        rows = r.json()

    if not rows:
        click.echo("No log entries.")
        return
    _print_table(
        rows,
        [("TIME", "timestamp", 26), ("SERVICE", "service", 16), ("MESSAGE", "message", 60)],
    )


# ---------------------------------------------------------------------------
# Live notifications
# ---------------------------------------------------------------------------


@main.command()
@click.option("--raw", is_flag=True, help="Print payloads without formatting")
def watch(raw: bool):
    """Follow the live notification stream (Ctrl+C to stop)."""
    try:
        _run(_watch_impl(raw))
    except KeyboardInterrupt:
        pass


def _describe(event: dict) -> str:
    if event.get("type") == "user.created":
        return click.style("user created", fg="green") + f"  {event['name']} <{event['email']}>"
    if event.get("type") == "user.created.failed":
        return (
            click.style("creation failed", fg="red")
            + f"  {event['attemptedEmail']}: {event['reason']}"
        )
    return _pretty_json(event)


async def _watch_impl(raw: bool):
    click.echo(f"Watching {_api_url()}/api/v1/sse/notifications ...")
    async with _client(timeout=None) as c:
        async with c.stream("GET", "/api/v1/sse/notifications") as r:
            if r.status_code != 200:
                await r.aread()
                _fail(r)
            async for line in r.aiter_lines():
                if not line.startswith("data:"):
                    continue
                payload = line[len("data:"):].strip()
                if raw:
                    click.echo(payload)
                    continue
                try:
                    click.echo(_describe(json.loads(payload)))
                except (ValueError, KeyError):
                    click.echo(payload)
