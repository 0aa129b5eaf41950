"""CLI commands for Rethoric."""

import asyncio
import json
import logging
import re
import sys
from datetime import date
from pathlib import Path

import click

from rethoric.config import settings


class SecretRedactingFilter(logging.Filter):
    """Filter to redact sensitive information from logs."""

    # Patterns for common secrets
    SECRET_PATTERNS = [
        (re.compile(r"(api[_-]?key[\s:=]+)[\w-]{20,}", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(password[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(secret[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(bearer\s+)[\w-]+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"whsec_[A-Za-z0-9+/=]+"), "whsec_[REDACTED]"),
        (re.compile(r"sk-ant-[\w-]+"), "sk-ant-[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact secrets from log messages."""
        if isinstance(record.msg, str):
            for pattern, replacement in self.SECRET_PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True


def configure_logging(level: int = logging.INFO) -> None:
    """Root logging with secret redaction."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    root = logging.getLogger()
    if not any(isinstance(f, SecretRedactingFilter) for f in root.filters):
        root.addFilter(SecretRedactingFilter())


logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """Rethoric CLI."""
    configure_logging(logging.DEBUG if verbose or settings.DEBUG else logging.INFO)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
def init_db() -> None:
    """Initialize the database schema."""
    asyncio.run(_init_db())


async def _init_db() -> None:
    from rethoric.db.database import init_db as create_tables

    await create_tables()
    click.echo("Database initialized successfully!")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_questions(file: Path) -> None:
    """Load questions from a JSON list.

    Each item needs a title; description, tags, isDaily, dailyDate and
    isActive are optional.
    """
    try:
        items = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        click.echo(f"Error: {file} is not valid JSON: {e}", err=True)
        sys.exit(1)
    if not isinstance(items, list):
        click.echo("Error: expected a JSON list of questions", err=True)
        sys.exit(1)
    asyncio.run(_import_questions(items))


async def _import_questions(items: list[dict]) -> None:
    from rethoric.db.database import async_session_maker, init_db
    from rethoric.errors import RethoricError
    from rethoric.questions.admin import import_questions

    await init_db()
    async with async_session_maker() as session:
        try:
            count = await import_questions(session, items)
        except RethoricError as e:
            click.echo(f"Import failed: {e.message}", err=True)
            sys.exit(1)
    click.echo(f"Imported {count} questions")


@cli.command()
@click.argument("external_id")
def promote(external_id: str) -> None:
    """Grant the admin role to a user."""
    asyncio.run(_promote(external_id))


async def _promote(external_id: str) -> None:
    from rethoric.auth.users import set_role
    from rethoric.db.database import async_session_maker
    from rethoric.db.models import UserRole
    from rethoric.errors import NotFoundError

    async with async_session_maker() as session:
        try:
            user = await set_role(session, external_id, UserRole.ADMIN)
        except NotFoundError as e:
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(1)
    click.echo(f"{user.email} is now an admin")


@cli.command()
@click.argument("external_id")
@click.option(
    "--date",
    "-d",
    "on_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Calendar date to select for (defaults to today, UTC)",
)
def next_question(external_id: str, on_date) -> None:
    """Show which question a user would get."""
    asyncio.run(_next_question(external_id, on_date.date() if on_date else None))


async def _next_question(external_id: str, on_date: date | None) -> None:
    from rethoric.auth.users import get_user_by_external_id
    from rethoric.db.database import async_session_maker
    from rethoric.questions.selector import QuestionSelector

    async with async_session_maker() as session:
        user = await get_user_by_external_id(session, external_id)
        if user is None:
            click.echo(f"Error: no user with external id {external_id}", err=True)
            sys.exit(1)
        selection = await QuestionSelector(session).select_next_question(user.id, on_date)

    click.echo(f"{selection.kind.value}: {selection.message}")
    if selection.question is not None:
        click.echo(f"  [{selection.question.id}] {selection.question.title}")
        if selection.question.tags:
            click.echo(f"  Tags: {', '.join(selection.question.tags)}")


@cli.command()
@click.option("--host", "-h", default="0.0.0.0", help="Interface to bind")
@click.option("--port", "-p", type=int, default=8000, help="Port to run on")
def serve(host: str, port: int) -> None:
    """Run the HTTP API server."""
    import uvicorn

    click.echo(f"Starting {settings.APP_NAME} API on {host}:{port}")
    uvicorn.run("rethoric.main:app", host=host, port=port)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
