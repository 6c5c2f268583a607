"""
Delivery dispatcher.

Each cycle expires entries that missed the catch-up window, then claims
and sends due entries one at a time. A claim is a conditional UPDATE that
only succeeds while the entry is still pending, so concurrent runners never
send the same entry twice. Sends are attempted exactly once.
"""

import asyncio
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import AppConfig, CircuitBreakerConfig, get_config
from textquiz.core.datetime_utils import get_cutoff, utc_now
from textquiz.core.logging import get_logger
from textquiz.core.phone import mask_phone_number
from textquiz.models.answer import AwaitingAnswer
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus
from textquiz.models.question import Question
from textquiz.models.user import User
from textquiz.services.maintenance import purge_abandoned_answers
from textquiz.services.messages import format_question
from textquiz.services.question_selector import QuestionSelector
from textquiz.services.question_store import QuestionStore
from textquiz.services.reconciler import create_awaiting_answer
from textquiz.services.transport import Transport

logger = get_logger(__name__)

MISSED_WINDOW = "missed delivery window"
USER_INACTIVE = "user inactive"
DUPLICATE_PENDING = "duplicate pending"
NO_QUESTION = "no question available"
TRANSPORT_REJECTED = "transport rejected message"


class CircuitBreaker:
    """
    Stops sending after repeated transport failures.

    Opens after `max_consecutive_failures` failures in a row and stays open
    for `cooldown_seconds`, after which sending resumes with a fresh count.
    """

    def __init__(
        self,
        max_consecutive_failures: int = 5,
        cooldown_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_consecutive_failures = max_consecutive_failures
        self.cooldown_seconds = cooldown_seconds
        self.consecutive_failures = 0
        self.opened_at: float | None = None
        self._clock = clock

    @classmethod
    def from_config(cls, config: CircuitBreakerConfig) -> "CircuitBreaker":
        return cls(
            max_consecutive_failures=config.max_consecutive_failures,
            cooldown_seconds=config.cooldown_seconds,
        )

    @property
    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if self._clock() - self.opened_at >= self.cooldown_seconds:
            logger.info("circuit_breaker_closed")
            self.opened_at = None
            self.consecutive_failures = 0
            return False
        return True

    def record_success(self) -> None:
        self.consecutive_failures = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.consecutive_failures += 1
        if self.opened_at is None and self.consecutive_failures >= self.max_consecutive_failures:
            self.opened_at = self._clock()
            logger.bind(
                failures=self.consecutive_failures,
                cooldown_seconds=self.cooldown_seconds,
            ).error("circuit_breaker_opened")


class DispatchState:
    """
    Per-process dispatcher state.

    Built once when the scheduler starts and handed to every dispatch run.
    Holds the circuit breaker, the shutdown flag and the lock that keeps
    this process from overlapping its own cycles.
    """

    def __init__(self, breaker: CircuitBreaker | None = None) -> None:
        self.breaker = breaker or CircuitBreaker.from_config(get_config().circuit_breaker)
        self.lock = asyncio.Lock()
        self._shutdown_requested = False

    def request_shutdown(self) -> None:
        if not self._shutdown_requested:
            logger.info("dispatch_shutdown_requested")
        self._shutdown_requested = True

    @property
    def accepting_work(self) -> bool:
        return not self._shutdown_requested


@dataclass
class DispatchResult:
    """Counts for one dispatch cycle."""

    expired: int = 0
    due: int = 0
    claimed: int = 0
    sent: int = 0
    failed: int = 0
    lost_claims: int = 0
    stopped_reason: str | None = None
    failures: dict[str, int] = field(default_factory=dict)

    def record_failure(self, reason: str) -> None:
        self.failed += 1
        # Group transport errors under their prefix
        key = reason.split(":", 1)[0]
        self.failures[key] = self.failures.get(key, 0) + 1


async def expire_missed_entries(db: AsyncSession, now: datetime, window_hours: float) -> int:
    """Fail pending entries scheduled before the catch-up window. No send is attempted."""
    result = await db.execute(
        update(DeliveryQueueEntry)
        .where(
            DeliveryQueueEntry.status == DeliveryStatus.PENDING,
            DeliveryQueueEntry.scheduled_for < get_cutoff(now, hours=window_hours),
        )
        .values(status=DeliveryStatus.FAILED, error_message=MISSED_WINDOW)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        logger.bind(count=result.rowcount).warning("deliveries_missed_window")
    return result.rowcount


async def claim_entry(db: AsyncSession, entry_id: uuid.UUID, now: datetime) -> bool:
    """
    Claim a pending entry for this runner.

    Returns False when another runner already moved it out of pending.
    The claim is committed before returning.
    """
    result = await db.execute(
        update(DeliveryQueueEntry)
        .where(
            DeliveryQueueEntry.id == entry_id,
            DeliveryQueueEntry.status == DeliveryStatus.PENDING,
        )
        .values(
            status=DeliveryStatus.IN_PROGRESS,
            attempts=DeliveryQueueEntry.attempts + 1,
            claimed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def _fail_entry(db: AsyncSession, entry: DeliveryQueueEntry, reason: str) -> None:
    entry.status = DeliveryStatus.FAILED
    entry.error_message = reason
    await db.commit()
    logger.bind(
        delivery_id=str(entry.id),
        user_id=entry.user_id,
        reason=reason,
    ).warning("delivery_failed")


async def _count_outstanding(
    db: AsyncSession, user: User, now: datetime, abandon_after_hours: float
) -> int:
    """
    Count the outstanding answers that block a new delivery.

    Answers already past the abandonment age are purged first, exactly as
    the maintenance sweep would. Anything younger stays scorable and blocks.
    """
    purged = await purge_abandoned_answers(db, now, abandon_after_hours, user_id=user.id)
    if purged:
        logger.bind(user_id=user.id, count=purged).info("abandoned_answer_purged_before_send")

    remaining = await db.scalar(
        select(func.count())
        .select_from(AwaitingAnswer)
        .where(AwaitingAnswer.user_id == user.id, AwaitingAnswer.user_answer.is_(None))
    )
    return remaining or 0


async def _send(
    transport: Transport, phone_number: str, body: str, timeout: float
) -> str | None:
    """Make the single send attempt. Returns an error description, or None on success."""
    try:
        accepted = await asyncio.wait_for(transport.send(phone_number, body), timeout=timeout)
    except TimeoutError:
        return f"send timeout: no response after {timeout:g}s"
    except Exception as e:
        return f"transport error: {e}"
    if not accepted:
        return TRANSPORT_REJECTED
    return None


async def dispatch_entry(
    db: AsyncSession,
    entry_id: uuid.UUID,
    now: datetime,
    *,
    transport: Transport,
    state: DispatchState,
    selector: QuestionSelector,
    config: AppConfig,
    result: DispatchResult,
) -> None:
    """Claim, verify, and send a single queue entry."""
    if not await claim_entry(db, entry_id, now):
        result.lost_claims += 1
        logger.bind(delivery_id=str(entry_id)).debug("delivery_claim_lost")
        return
    result.claimed += 1

    entry = await db.get(DeliveryQueueEntry, entry_id, populate_existing=True)
    user = await db.get(User, entry.user_id, populate_existing=True)

    if user is None or not user.is_active:
        await _fail_entry(db, entry, USER_INACTIVE)
        result.record_failure(USER_INACTIVE)
        return

    if await _count_outstanding(db, user, now, config.delivery.abandon_after_hours):
        await _fail_entry(db, entry, DUPLICATE_PENDING)
        result.record_failure(DUPLICATE_PENDING)
        return

    question: Question | None
    if entry.question_id is not None:
        question = await selector.store.get(entry.question_id)
    else:
        question = await selector.select(user)

    if question is None:
        await _fail_entry(db, entry, NO_QUESTION)
        result.record_failure(NO_QUESTION)
        return

    body = format_question(question, user.questions_answered + 1, config.messaging)
    error = await _send(transport, user.phone_number, body, config.delivery.send_timeout_seconds)

    if error is not None:
        state.breaker.record_failure()
        entry.question_id = question.id
        await _fail_entry(db, entry, error)
        result.record_failure(error)
        return

    state.breaker.record_success()

    entry.status = DeliveryStatus.SENT
    entry.sent_at = now
    entry.question_id = question.id
    entry.error_message = None
    user.last_delivered_at = now
    await selector.store.increment_usage(question.id)

    # The SMS already went out, so the entry stays sent even if this is rejected
    await create_awaiting_answer(
        db,
        user_id=user.id,
        question_id=question.id,
        delivered_at=now,
        delivery_id=entry.id,
    )

    await db.commit()
    result.sent += 1

    logger.bind(
        delivery_id=str(entry.id),
        user_id=user.id,
        to=mask_phone_number(user.phone_number),
        question_id=question.id,
        category=question.category,
    ).info("delivery_sent")


async def run_dispatch_cycle(
    db: AsyncSession,
    now: datetime | None = None,
    *,
    transport: Transport,
    state: DispatchState,
    selector: QuestionSelector | None = None,
    config: AppConfig | None = None,
) -> DispatchResult:
    """
    Run one dispatch cycle.

    Args:
        db: Database session (committed per entry)
        now: Naive UTC reference time (defaults to current time)
        transport: SMS transport
        state: Process-wide dispatch state (breaker, shutdown flag, lock)
        selector: Question selector (built on `db` if omitted)
        config: Application config (defaults to the cached config)

    Returns:
        DispatchResult with per-outcome counts
    """
    config = config or get_config()
    now = now or utc_now()
    window_hours = config.delivery.catch_up_window_hours

    if selector is None:
        selector = QuestionSelector(QuestionStore(db, config=config.questions), config.questions)

    async with state.lock:
        result = DispatchResult()
        result.expired = await expire_missed_entries(db, now, window_hours)

        due = await db.execute(
            select(DeliveryQueueEntry.id)
            .where(
                DeliveryQueueEntry.status == DeliveryStatus.PENDING,
                DeliveryQueueEntry.scheduled_for >= get_cutoff(now, hours=window_hours),
                DeliveryQueueEntry.scheduled_for <= now,
            )
            .order_by(DeliveryQueueEntry.scheduled_for.asc(), DeliveryQueueEntry.id.asc())
            .limit(config.delivery.max_batch_size)
        )
        entry_ids = list(due.scalars().all())
        result.due = len(entry_ids)

        for entry_id in entry_ids:
            if not state.accepting_work:
                result.stopped_reason = "shutdown"
                break
            if state.breaker.is_open:
                result.stopped_reason = "circuit_open"
                break
            await dispatch_entry(
                db,
                entry_id,
                now,
                transport=transport,
                state=state,
                selector=selector,
                config=config,
                result=result,
            )

    if result.stopped_reason:
        logger.bind(
            reason=result.stopped_reason,
            remaining=result.due - result.claimed - result.lost_claims,
        ).warning("dispatch_cycle_stopped_early")

    return result
