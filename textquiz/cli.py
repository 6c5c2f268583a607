"""
Text4Quiz CLI - Command line interface for running jobs.

Usage:
    textquiz --help                     Show all commands
    textquiz populate                   Queue tomorrow's deliveries
    textquiz populate --date 2026-07-15 Queue deliveries for a date
    textquiz dispatch                   Send due deliveries now
    textquiz sweep                      Purge abandoned answers
    textquiz reconcile +15551234567 B   Score a reply by hand
    textquiz status                     Show today's queue counts
"""

import asyncio
from datetime import date, datetime

import typer

app = typer.Typer(
    name="textquiz",
    help="Text4Quiz CLI - Job runner for the SMS trivia service",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        _print_error(f"Invalid date: {value} (expected YYYY-MM-DD)")
        raise typer.Exit(1)


@app.command()
def populate(
    for_date: str | None = typer.Option(
        None, "--date", "-d", help="Local delivery date (YYYY-MM-DD). Default: tomorrow"
    ),
    skip_past: bool = typer.Option(
        False, "--skip-past", help="Skip deliveries whose time has already passed"
    ),
):
    """Queue one pending delivery per active user (idempotent)."""
    from textquiz.core.datetime_utils import utc_now
    from textquiz.core.logging import setup_logging
    from textquiz.jobs.populate import main

    setup_logging()
    result = asyncio.run(
        main(_parse_date(for_date), not_before=utc_now() if skip_past else None)
    )

    typer.echo(f"\nQueue population for {result.for_date}")
    _print_success(f"{result.scheduled} scheduled")
    typer.echo(f"  {result.skipped_existing} already queued, {result.skipped_past} in the past")
    if result.errors:
        _print_warning(f"{result.errors} users with invalid delivery preferences")


@app.command()
def dispatch():
    """Run one dispatch cycle (send due deliveries)."""
    from textquiz.core.logging import setup_logging
    from textquiz.jobs.dispatch import main

    setup_logging()
    result = asyncio.run(main())

    typer.echo(f"\nDispatch: {result.due} due, {result.expired} expired")
    _print_success(f"{result.sent} sent")
    if result.failed:
        _print_warning(f"{result.failed} failed: {result.failures}")
    if result.stopped_reason:
        _print_warning(f"Stopped early: {result.stopped_reason}")


@app.command()
def sweep():
    """Purge abandoned answers and fail interrupted claims."""
    from textquiz.core.logging import setup_logging
    from textquiz.jobs.sweep import main

    setup_logging()
    result = asyncio.run(main())
    _print_success(
        f"{result.abandoned_answers} abandoned answers purged, "
        f"{result.interrupted_claims} interrupted claims failed"
    )


@app.command()
def reconcile(
    phone_number: str = typer.Argument(..., help="Subscriber phone number"),
    reply: str = typer.Argument(..., help="Reply text, e.g. B"),
):
    """Score a reply for a subscriber, as if it arrived by SMS (no reply is sent)."""
    from textquiz.core.database import AsyncSessionLocal
    from textquiz.core.errors import InvalidPhoneNumber
    from textquiz.core.logging import setup_logging
    from textquiz.core.phone import normalize_phone_number
    from textquiz.services.reconciler import ReconcileStatus, reconcile_answer
    from textquiz.services.users import get_user_by_phone

    setup_logging()

    try:
        normalized = normalize_phone_number(phone_number)
    except InvalidPhoneNumber as e:
        _print_error(str(e))
        raise typer.Exit(1)

    async def run():
        async with AsyncSessionLocal() as db:
            user = await get_user_by_phone(db, normalized)
            if user is None:
                return None
            return await reconcile_answer(db, user, reply)

    outcome = asyncio.run(run())
    if outcome is None:
        _print_error(f"No user with phone number {normalized}")
        raise typer.Exit(1)

    if outcome.status == ReconcileStatus.ANSWERED:
        verdict = "correct" if outcome.is_correct else f"wrong (answer {outcome.correct_answer})"
        _print_success(
            f"{verdict}: +{outcome.points} points, total {outcome.total_score}, "
            f"play streak {outcome.play_streak}, winning streak {outcome.winning_streak}"
        )
    else:
        _print_warning(outcome.status.value)


@app.command()
def status(
    for_date: str | None = typer.Option(
        None, "--date", "-d", help="Local delivery date (YYYY-MM-DD). Default: today (UTC)"
    ),
):
    """Show delivery queue counts for a date."""
    from sqlalchemy import func, select

    from textquiz.core.database import AsyncSessionLocal
    from textquiz.core.datetime_utils import utc_now
    from textquiz.models.delivery import DeliveryQueueEntry

    target = _parse_date(for_date) or utc_now().date()

    async def run():
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(DeliveryQueueEntry.status, func.count())
                .where(DeliveryQueueEntry.delivery_date == target)
                .group_by(DeliveryQueueEntry.status)
            )
            return {row_status.value: count for row_status, count in result.all()}

    counts = asyncio.run(run())
    typer.echo(f"\nDelivery queue for {target}")
    for name in ("pending", "in_progress", "sent", "failed"):
        typer.echo(f"  {name:<12} {counts.get(name, 0)}")


if __name__ == "__main__":
    app()
