"""
Answer reconciliation.

Matches an inbound reply to the user's outstanding question and scores it
exactly once. Duplicate webhook deliveries race on a conditional UPDATE of
the answer row; only the first one affects a row and gets scored.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.core.datetime_utils import utc_now
from textquiz.core.logging import get_logger
from textquiz.models.answer import AwaitingAnswer
from textquiz.models.question import Question
from textquiz.models.user import User
from textquiz.services.commands import Answer, parse_command
from textquiz.services.scoring import next_streaks, score

logger = get_logger(__name__)


class ReconcileStatus(str, enum.Enum):
    ANSWERED = "answered"
    ALREADY_ANSWERED = "already_answered"
    NOTHING_PENDING = "nothing_pending"
    NOT_AN_ANSWER = "not_an_answer"


@dataclass
class ReconcileOutcome:
    """Result of reconciling one reply; scoring fields are set only when ANSWERED."""

    status: ReconcileStatus
    answer: str | None = None
    correct_answer: str | None = None
    is_correct: bool = False
    explanation: str | None = None
    points: int = 0
    previous_winning_streak: int = 0
    previous_play_streak: int = 0
    winning_streak: int = 0
    play_streak: int = 0
    total_score: int = 0
    answer_id: uuid.UUID | None = None


async def get_outstanding_answers(db: AsyncSession, user_id: int) -> list[AwaitingAnswer]:
    """Outstanding answer rows for a user, most recently delivered first."""
    result = await db.execute(
        select(AwaitingAnswer)
        .where(AwaitingAnswer.user_id == user_id, AwaitingAnswer.user_answer.is_(None))
        .order_by(AwaitingAnswer.delivered_at.desc())
    )
    return list(result.scalars().all())


async def reconcile_answer(
    db: AsyncSession,
    user: User,
    raw_reply: str,
    now: datetime | None = None,
) -> ReconcileOutcome:
    """
    Score a reply against the user's outstanding question.

    Replies are scorable no matter how long ago the question was sent, as
    long as the row is still outstanding.

    Returns:
        ReconcileOutcome; state is only mutated when status is ANSWERED
    """
    command = parse_command(raw_reply)
    if not isinstance(command, Answer):
        return ReconcileOutcome(status=ReconcileStatus.NOT_AN_ANSWER)

    now = now or utc_now()
    outstanding = await get_outstanding_answers(db, user.id)

    if not outstanding:
        logger.bind(user_id=user.id, answer=command.letter).info("answer_nothing_pending")
        return ReconcileOutcome(status=ReconcileStatus.NOTHING_PENDING, answer=command.letter)

    if len(outstanding) > 1:
        logger.bind(
            user_id=user.id,
            count=len(outstanding),
            answer_ids=[str(a.id) for a in outstanding],
        ).error("invariant_violation_multiple_outstanding")

    pending = outstanding[0]
    question = await db.get(Question, pending.question_id)
    if question is None:
        logger.bind(user_id=user.id, question_id=pending.question_id).error(
            "answer_question_missing"
        )
        return ReconcileOutcome(status=ReconcileStatus.NOTHING_PENDING, answer=command.letter)

    # Streaks as they stood before this answer
    await db.refresh(user)
    previous_winning = user.winning_streak
    previous_play = user.play_streak

    correct_answer = question.correct_answer.strip().upper()
    is_correct = command.letter == correct_answer
    points = score(is_correct, previous_winning, previous_play)

    claimed = await db.execute(
        update(AwaitingAnswer)
        .where(AwaitingAnswer.id == pending.id, AwaitingAnswer.user_answer.is_(None))
        .values(
            user_answer=command.letter,
            is_correct=is_correct,
            points_earned=points,
            answered_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        logger.bind(user_id=user.id, answer_id=str(pending.id)).info("answer_already_recorded")
        return ReconcileOutcome(status=ReconcileStatus.ALREADY_ANSWERED, answer=command.letter)

    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            questions_answered=User.questions_answered + 1,
            correct_answers=User.correct_answers + (1 if is_correct else 0),
            total_score=User.total_score + points,
            play_streak=User.play_streak + 1,
            winning_streak=User.winning_streak + 1 if is_correct else 0,
            last_answered_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(user)

    new_winning, new_play = next_streaks(is_correct, previous_winning, previous_play)
    if (user.winning_streak, user.play_streak) != (new_winning, new_play):
        # Another reply for this user committed in between
        logger.bind(user_id=user.id).warning("answer_streaks_changed_concurrently")

    logger.bind(
        user_id=user.id,
        answer_id=str(pending.id),
        question_id=question.id,
        answer=command.letter,
        is_correct=is_correct,
        points=points,
        play_streak=user.play_streak,
        winning_streak=user.winning_streak,
    ).info("answer_reconciled")

    return ReconcileOutcome(
        status=ReconcileStatus.ANSWERED,
        answer=command.letter,
        correct_answer=correct_answer,
        is_correct=is_correct,
        explanation=question.explanation,
        points=points,
        previous_winning_streak=previous_winning,
        previous_play_streak=previous_play,
        winning_streak=user.winning_streak,
        play_streak=user.play_streak,
        total_score=user.total_score,
        answer_id=pending.id,
    )


async def create_awaiting_answer(
    db: AsyncSession,
    *,
    user_id: int,
    question_id: int,
    delivered_at: datetime,
    delivery_id: uuid.UUID | None = None,
) -> bool:
    """
    Record a delivered question as outstanding.

    Returns False (and logs an invariant violation) if the user already has
    an outstanding answer; the partial unique index rejects the insert.
    """
    try:
        async with db.begin_nested():
            db.add(
                AwaitingAnswer(
                    user_id=user_id,
                    question_id=question_id,
                    delivery_id=delivery_id,
                    delivered_at=delivered_at,
                )
            )
    except IntegrityError:
        logger.bind(
            user_id=user_id,
            question_id=question_id,
            delivery_id=str(delivery_id) if delivery_id else None,
        ).error("invariant_violation_outstanding_answer_exists")
        return False
    return True
