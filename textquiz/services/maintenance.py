"""Periodic cleanup of abandoned answers and interrupted claims."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import DeliveryConfig, get_config
from textquiz.core.datetime_utils import get_cutoff, utc_now
from textquiz.core.logging import get_logger
from textquiz.models.answer import AwaitingAnswer
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus

logger = get_logger(__name__)

INTERRUPTED_BEFORE_SEND = "interrupted before send"


async def purge_abandoned_answers(
    db: AsyncSession,
    now: datetime,
    abandon_after_hours: float,
    user_id: int | None = None,
) -> int:
    """Delete outstanding answers older than `abandon_after_hours`, optionally for one user.

    Abandoned answers are never scored. The caller commits.
    """
    stmt = delete(AwaitingAnswer).where(
        AwaitingAnswer.user_answer.is_(None),
        AwaitingAnswer.delivered_at < get_cutoff(now, hours=abandon_after_hours),
    )
    if user_id is not None:
        stmt = stmt.where(AwaitingAnswer.user_id == user_id)
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


@dataclass
class SweepResult:
    abandoned_answers: int = 0
    interrupted_claims: int = 0


async def sweep_abandoned_answers(
    db: AsyncSession,
    now: datetime | None = None,
    config: DeliveryConfig | None = None,
) -> SweepResult:
    """
    Purge stale state.

    - Outstanding answers older than `abandon_after_hours` are deleted
      (abandoned, never scored).
    - Claims stuck in in_progress longer than `interrupted_claim_minutes`
      are failed. A crash between claim and send leaves them there; they
      are never re-sent.
    """
    config = config or get_config().delivery
    now = now or utc_now()
    result = SweepResult()

    result.abandoned_answers = await purge_abandoned_answers(db, now, config.abandon_after_hours)

    interrupted = await db.execute(
        update(DeliveryQueueEntry)
        .where(
            DeliveryQueueEntry.status == DeliveryStatus.IN_PROGRESS,
            DeliveryQueueEntry.claimed_at
            < get_cutoff(now, minutes=config.interrupted_claim_minutes),
        )
        .values(status=DeliveryStatus.FAILED, error_message=INTERRUPTED_BEFORE_SEND)
        .execution_options(synchronize_session=False)
    )
    result.interrupted_claims = interrupted.rowcount

    await db.commit()

    if result.abandoned_answers or result.interrupted_claims:
        logger.bind(
            abandoned_answers=result.abandoned_answers,
            interrupted_claims=result.interrupted_claims,
        ).info("maintenance_sweep_completed")
    else:
        logger.debug("maintenance_sweep_nothing_to_do")
    return result
