"""CLI entry point for budgety."""

import asyncio
import sys
from datetime import date, timedelta
from typing import Optional

import typer
import uvicorn
from rich.console import Console

from budgety.audit import AuditLogger, configure_logging
from budgety.config import get_settings, validate_all_settings
from budgety.jobs import DailyJobRunner, RecurringExpenseProcessor
from budgety.services.auth import AccessService
from budgety.services.categories import CategoryService
from budgety.services.errors import BudgetyError
from budgety.services.storage import SqlDatabase, SqlStorage, StorageError
from budgety.services.users import UserService

console = Console()

app = typer.Typer(
    name="budgety",
    help="Budgety - family budget tracker API and maintenance jobs",
    add_completion=False,
)


def _storage() -> SqlStorage:
    database = SqlDatabase()
    try:
        database.init_schema()
    except StorageError as e:
        console.print(f"[red]Database unavailable: {e}[/red]", style="bold")
        sys.exit(1)
    return SqlStorage(database)


@app.callback()
def main() -> None:
    """Budgety - family budget tracker API and maintenance jobs."""
    settings = get_settings().app
    configure_logging(settings.log_level, json_logs=settings.json_logs and not settings.debug_mode)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(3000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP API (and the daily scheduler, unless disabled)."""
    uvicorn.run("budgety.api.app:create_app", factory=True, host=host, port=port, reload=reload)


@app.command(name="check-config")
def check_config() -> None:
    """Validate every settings group."""
    results = validate_all_settings()
    failed = False
    for name, ok in results.items():
        if name.endswith("_error"):
            continue
        if ok:
            console.print(f"[green]✓[/green] {name}")
        else:
            failed = True
            console.print(f"[red]✗ {name}: {results.get(f'{name}_error')}[/red]")
    if failed:
        sys.exit(1)


@app.command(name="init-db")
def init_db() -> None:
    """Create missing database tables."""
    storage = _storage()
    console.print(f"[green]✓[/green] Schema ready on {storage.database.url}")


@app.command(name="seed-categories")
def seed_categories() -> None:
    """Insert the default categories that are not there yet."""
    storage = _storage()
    created = asyncio.run(CategoryService(storage).seed_default_categories())
    console.print(f"[green]✓[/green] {created} default categor{'y' if created == 1 else 'ies'} added")


@app.command(name="process-recurring")
def process_recurring(
    run_date: Optional[str] = typer.Option(
        None, "--date", help="Process as of this date (YYYY-MM-DD), bypassing the daily lock"
    ),
) -> None:
    """Run the recurring-expense pass once."""
    storage = _storage()
    audit_logger = AuditLogger(storage)

    if run_date:
        try:
            today = date.fromisoformat(run_date)
        except ValueError:
            console.print(f"[red]Invalid date: {run_date}[/red]")
            sys.exit(1)
        summary = asyncio.run(RecurringExpenseProcessor(storage, audit_logger).process_due(today))
    else:
        summary = asyncio.run(DailyJobRunner(storage, audit_logger).run_once())

    if summary is None:
        console.print("[yellow]Skipped: today's pass already ran or could not start[/yellow]")
        return

    console.print(
        f"{summary.run_date.isoformat()}: selected {summary.selected}, "
        f"materialized {summary.materialized}, failed {summary.failed}"
    )
    if summary.failed:
        sys.exit(1)


@app.command(name="create-user")
def create_user(
    name: str,
    email: str,
    days: Optional[int] = typer.Option(None, "--days", help="Session lifetime in days"),
) -> None:
    """Register a development user and print a session token for it."""
    storage = _storage()
    ttl = timedelta(days=days or get_settings().auth.dev_session_ttl_days)

    async def _create():
        user = await UserService(storage).register_user(name, email)
        session = await AccessService(storage).issue_session(user.id, ttl)
        return user, session

    try:
        user, session = asyncio.run(_create())
    except BudgetyError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] User {user.id} ({user.email})")
    console.print(f"Session token (expires {session.expires_at:%Y-%m-%d %H:%M} UTC):")
    console.print(session.token, highlight=False)


if __name__ == "__main__":
    app()
