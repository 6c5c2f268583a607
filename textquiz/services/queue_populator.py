"""Creates one pending delivery per active user per day."""

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.core.datetime_utils import local_time_to_utc
from textquiz.core.errors import SchedulingError
from textquiz.core.logging import get_logger
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus
from textquiz.models.user import User
from textquiz.services.dispatcher import DispatchState

logger = get_logger(__name__)


@dataclass
class PopulateResult:
    """Counts for one population run."""

    for_date: date
    scheduled: int = 0
    skipped_existing: int = 0
    skipped_past: int = 0
    errors: int = 0


async def _entry_exists(db: AsyncSession, user_id: int, for_date: date) -> bool:
    result = await db.execute(
        select(DeliveryQueueEntry.id).where(
            DeliveryQueueEntry.user_id == user_id,
            DeliveryQueueEntry.delivery_date == for_date,
        )
    )
    return result.scalar_one_or_none() is not None


async def populate_queue(
    db: AsyncSession,
    for_date: date,
    *,
    not_before: datetime | None = None,
    state: DispatchState | None = None,
) -> PopulateResult:
    """
    Queue a pending delivery for every active user on `for_date`.

    `for_date` is interpreted as each user's local calendar day. Safe to
    re-run: existing (user, date) entries are skipped, and a concurrent
    insert that trips the unique constraint counts as existing.

    Args:
        db: Database session
        for_date: Local calendar date to schedule
        not_before: Skip users whose delivery instant is earlier (naive UTC)
        state: Stop between users once shutdown has been requested

    Returns:
        PopulateResult with counts
    """
    result = PopulateResult(for_date=for_date)

    users = await db.execute(select(User).where(User.is_active.is_(True)).order_by(User.id))

    for user in users.scalars().all():
        if state is not None and not state.accepting_work:
            logger.bind(for_date=str(for_date)).warning("populate_interrupted_by_shutdown")
            break

        try:
            scheduled_for = local_time_to_utc(for_date, user.delivery_time_local, user.timezone)
        except SchedulingError as e:
            result.errors += 1
            logger.bind(user_id=user.id, error=str(e)).error("populate_user_scheduling_error")
            continue

        if not_before is not None and scheduled_for < not_before:
            result.skipped_past += 1
            continue

        if await _entry_exists(db, user.id, for_date):
            result.skipped_existing += 1
            continue

        try:
            async with db.begin_nested():
                db.add(
                    DeliveryQueueEntry(
                        user_id=user.id,
                        delivery_date=for_date,
                        scheduled_for=scheduled_for,
                        status=DeliveryStatus.PENDING,
                    )
                )
        except IntegrityError:
            result.skipped_existing += 1
            continue

        result.scheduled += 1

    await db.commit()

    logger.bind(
        for_date=str(for_date),
        scheduled=result.scheduled,
        skipped_existing=result.skipped_existing,
        skipped_past=result.skipped_past,
        errors=result.errors,
    ).info("queue_populated")
    return result
