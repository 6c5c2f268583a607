"""
Queue population job.

Run with: textquiz populate [--date YYYY-MM-DD]

Creates tomorrow's pending deliveries by default. The scheduler runs it
daily at `delivery.populate_time_utc` for each of `upcoming_dates()`.
"""

from datetime import date, datetime, timedelta

from textquiz.core.database import AsyncSessionLocal
from textquiz.core.datetime_utils import utc_now
from textquiz.core.logging import get_logger
from textquiz.services.dispatcher import DispatchState
from textquiz.services.queue_populator import PopulateResult, populate_queue

logger = get_logger(__name__)


def tomorrow_utc() -> date:
    return (utc_now() + timedelta(days=1)).date()


# A morning delivery in a UTC+14 zone on tomorrow's local date is already
# past at 23:30 UTC, so the nightly run also queues the day after.
DAYS_AHEAD = 2


def upcoming_dates(now: datetime | None = None, days_ahead: int = DAYS_AHEAD) -> list[date]:
    """The local calendar dates the nightly run queues, tomorrow first."""
    today = (now or utc_now()).date()
    return [today + timedelta(days=offset) for offset in range(1, days_ahead + 1)]


async def main(
    for_date: date | None = None,
    *,
    not_before: datetime | None = None,
    state: DispatchState | None = None,
) -> PopulateResult:
    """Populate the delivery queue for `for_date` (default: tomorrow, UTC)."""
    for_date = for_date or tomorrow_utc()
    logger.bind(
        for_date=str(for_date),
        not_before=not_before.isoformat() if not_before else None,
    ).info("populate_job_started")

    async with AsyncSessionLocal() as db:
        result = await populate_queue(db, for_date, not_before=not_before, state=state)

    logger.bind(for_date=str(for_date), scheduled=result.scheduled).info("populate_job_completed")
    return result
