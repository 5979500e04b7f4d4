"""
Command-line interface for qa-tracker.

Provides commands to initialize the record store, provision the first
admin, administer settings, report dispute statistics, and run the API.

Usage:
    qa-tracker init-db          # Create the Postgres records table
    qa-tracker seed-defaults    # Insert default system settings
    qa-tracker add-user         # Provision a user (bootstrap admin)
    qa-tracker set-setting      # Change a system setting as an admin
    qa-tracker dispute-stats    # Print dispute statistics
    qa-tracker health           # Check record store health
    qa-tracker serve            # Run the API server

Commands other than ``serve`` act on the configured store; with the
default in-memory backend their effects last only for the command.
"""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import click

from qa_tracker.config.settings import get_settings
from qa_tracker.errors import StorageError
from qa_tracker.identity.schemas import VALID_ROLES, Role, User
from qa_tracker.observability.logging import setup_logging
from qa_tracker.observability.metrics import get_metrics
from qa_tracker.services.container import QATracker

T = TypeVar("T")


def _run_with_tracker(func: Callable[[QATracker], Awaitable[T]]) -> T:
    """Open the configured tracker, run ``func``, and always close it."""

    async def run() -> T:
        tracker = await QATracker.from_settings()
        try:
            return await func(tracker)
        finally:
            await tracker.close()

    return asyncio.run(run())


def _echo_result(result: Any) -> None:
    if result.success:
        click.echo(click.style(result.message, fg="green"))
    else:
        click.echo(click.style(f"{result.message} ({result.error.value})", fg="red"))
        sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """QA Tracker - quality assurance evaluations with score disputes."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the record store schema."""

    async def run(tracker: QATracker) -> None:
        await tracker.store.create_schema()
        created = await tracker.settings.ensure_defaults()
        click.echo(f"Record store initialized ({get_settings().store_backend})")
        if created:
            click.echo(f"Default settings created: {', '.join(created)}")

    _run_with_tracker(run)


@main.command("seed-defaults")
def seed_defaults() -> None:
    """Insert any missing default system settings."""

    async def run(tracker: QATracker) -> None:
        created = await tracker.settings.ensure_defaults()
        if created:
            click.echo(f"Created: {', '.join(created)}")
        else:
            click.echo("All default settings already present")

    _run_with_tracker(run)


@main.command("add-user")
@click.option("--email", required=True, help="Email address (user id)")
@click.option("--name", required=True, help="Display name")
@click.option("--role", required=True, type=click.Choice(sorted(VALID_ROLES)), help="Role")
@click.option("--department", default="", help="Department")
@click.option("--manager", "manager_id", default=None, help="Manager's email")
@click.option(
    "--as", "acting_user", default=None,
    help="Admin performing the change; omit only to bootstrap the first admin",
)
def add_user(
    email: str,
    name: str,
    role: str,
    department: str,
    manager_id: str | None,
    acting_user: str | None,
) -> None:
    """Provision a user.

    Without --as, the user is written directly, which is allowed only
    while no active admin exists.
    """

    async def run(tracker: QATracker) -> None:
        data = {
            "email": email,
            "name": name,
            "role": role,
            "department": department,
            "manager_id": manager_id,
        }
        if acting_user is not None:
            identity = await tracker.gate.resolve(acting_user)
            _echo_result(await tracker.users.create_user(identity, data))
            return

        admins = await tracker.users.users_with_role(Role.ADMIN)
        if admins:
            click.echo(click.style(
                "An admin already exists; pass --as <admin email>", fg="red",
            ))
            sys.exit(1)
        if role != Role.ADMIN.value:
            click.echo(click.style("The bootstrap user must be an Admin", fg="red"))
            sys.exit(1)

        user = await tracker.users.repository.create(User(
            id=email.strip().lower(),
            name=name,
            role=Role.ADMIN,
            department=department,
        ))
        click.echo(click.style(f"Admin {user.id} created", fg="green"))

    _run_with_tracker(run)


@main.command("set-setting")
@click.argument("key")
@click.argument("value")
@click.option("--as", "acting_user", required=True, help="Admin performing the change")
@click.option("--description", default=None, help="Setting description")
def set_setting(key: str, value: str, acting_user: str, description: str | None) -> None:
    """Change a system setting, e.g. passing_score_percentage 85."""

    async def run(tracker: QATracker) -> None:
        identity = await tracker.gate.resolve(acting_user)
        _echo_result(await tracker.settings.set_value(identity, key, value, description))

    _run_with_tracker(run)


@main.command("dispute-stats")
@click.option("--start", "start_date", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Inclusive start date (YYYY-MM-DD)")
@click.option("--end", "end_date", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Inclusive end date (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def dispute_stats(start_date: datetime | None, end_date: datetime | None, as_json: bool) -> None:
    """Print dispute statistics for disputes submitted in a window."""

    async def run(tracker: QATracker) -> dict[str, Any]:
        return await tracker.disputes.get_statistics(start_date, end_date)

    try:
        stats = _run_with_tracker(run)
    except StorageError:
        click.echo(click.style("Failed to compute dispute statistics: storage unavailable", fg="red"))
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(stats, indent=2))
        return

    click.echo("\nDispute Statistics:")
    click.echo("-" * 40)
    click.echo(f"  Total disputes:      {stats['total']}")
    click.echo(f"  Approval rate:       {stats['approval_rate']}%")
    click.echo(f"  Average adjustment:  {stats['average_adjustment']}")
    click.echo("  By status:")
    for status, count in stats["by_status"].items():
        click.echo(f"    {status:<18} {count}")
    if stats["by_reason"]:
        click.echo("  By reason:")
        for reason, count in stats["by_reason"].items():
            click.echo(f"    {reason:<18} {count}")
    click.echo("-" * 40)


@main.command()
def health() -> None:
    """Check health of the record store."""
    import structlog
    logger = structlog.get_logger()

    async def check(tracker: QATracker) -> bool:
        try:
            return await tracker.health_check()
        except Exception as e:
            logger.error("Record store health check failed", error=str(e))
            return False

    settings = get_settings()
    try:
        healthy = _run_with_tracker(check)
    except Exception as e:
        logger.error("Record store unavailable", error=str(e))
        healthy = False

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)
    icon = "✓" if healthy else "✗"
    color = "green" if healthy else "red"
    click.echo(click.style(f"  {icon} {settings.store_backend}: {healthy}", fg=color))
    click.echo(f"  notification channels configured: {settings.notification_channels_configured}")
    click.echo("-" * 40)

    if healthy:
        click.echo(click.style("Record store healthy!", fg="green"))
        sys.exit(0)
    else:
        click.echo(click.style("Record store unhealthy!", fg="red"))
        sys.exit(1)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "qa_tracker.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
