"""Picks the next question for a user."""

from sqlalchemy import select, union
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import QuestionsConfig, get_config
from textquiz.core.logging import get_logger
from textquiz.models.answer import AwaitingAnswer
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus
from textquiz.models.question import Question
from textquiz.models.user import User
from textquiz.services.question_store import QuestionStore

logger = get_logger(__name__)


async def get_seen_question_ids(db: AsyncSession, user_id: int) -> set[int]:
    """Question IDs the user has been sent or has answered."""
    answered = select(AwaitingAnswer.question_id).where(AwaitingAnswer.user_id == user_id)
    delivered = select(DeliveryQueueEntry.question_id).where(
        DeliveryQueueEntry.user_id == user_id,
        DeliveryQueueEntry.status == DeliveryStatus.SENT,
        DeliveryQueueEntry.question_id.is_not(None),
    )
    result = await db.execute(union(answered, delivered))
    return {question_id for question_id in result.scalars().all() if question_id is not None}


class QuestionSelector:
    """
    Rotates through a user's categories, one per delivery.

    Fallback order when today's category has nothing unseen:
    any preferred category, then any category, then a freshly generated
    question for today's category (if enabled). Returns None when all fail.
    """

    def __init__(self, store: QuestionStore, config: QuestionsConfig | None = None) -> None:
        self.store = store
        self.config = config or get_config().questions

    def categories_for(self, user: User) -> list[str]:
        return list(user.categories or self.config.default_categories)

    def todays_category(self, user: User) -> str:
        categories = self.categories_for(user)
        return categories[user.category_cursor % len(categories)]

    async def select(self, user: User) -> Question | None:
        categories = self.categories_for(user)
        today = self.todays_category(user)
        seen = await get_seen_question_ids(self.store.db, user.id)

        question = await self.store.get_question([today], seen)
        source = "category"

        if question is None:
            question = await self.store.get_question(categories, seen)
            source = "preferred"

        if question is None:
            question = await self.store.get_question(None, seen)
            source = "any"

        if question is None and self.config.generate_when_exhausted:
            question = await self.store.generate(today)
            source = "generated"

        if question is None:
            logger.bind(user_id=user.id, category=today, seen=len(seen)).warning(
                "no_question_available"
            )
            return None

        user.category_cursor = (user.category_cursor + 1) % len(categories)
        logger.bind(
            user_id=user.id,
            question_id=question.id,
            category=question.category,
            source=source,
        ).debug("question_selected")
        return question
