"""Question bank access."""

import random
from collections.abc import Collection

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import QuestionsConfig, get_config
from textquiz.core.logging import get_logger
from textquiz.models.question import Question
from textquiz.services.question_generator import QuestionGenerator, get_question_generator

logger = get_logger(__name__)


class QuestionStore:
    """Reads questions, tracks usage, and adds generated questions to the bank."""

    def __init__(
        self,
        db: AsyncSession,
        generator: QuestionGenerator | None = None,
        config: QuestionsConfig | None = None,
    ) -> None:
        self.db = db
        self.generator = generator or get_question_generator()
        self.config = config or get_config().questions

    async def get(self, question_id: int) -> Question | None:
        return await self.db.get(Question, question_id)

    async def get_question(
        self,
        categories: Collection[str] | None,
        exclude_ids: Collection[int] = (),
    ) -> Question | None:
        """
        Pick a question, least used first.

        Chooses at random among the `candidate_pool_size` least-used
        questions so users sharing a category don't all get the same one.

        Args:
            categories: Restrict to these categories, or None for any
            exclude_ids: Question IDs the user has already seen
        """
        stmt = select(Question)
        if categories is not None:
            if not categories:
                return None
            stmt = stmt.where(Question.category.in_(list(categories)))
        if exclude_ids:
            stmt = stmt.where(Question.id.not_in(list(exclude_ids)))
        stmt = stmt.order_by(Question.usage_count.asc(), Question.id.asc()).limit(
            self.config.candidate_pool_size
        )

        result = await self.db.execute(stmt)
        candidates = list(result.scalars().all())
        if not candidates:
            return None
        return random.choice(candidates)

    async def increment_usage(self, question_id: int) -> None:
        await self.db.execute(
            update(Question)
            .where(Question.id == question_id)
            .values(usage_count=Question.usage_count + 1)
        )

    async def generate(self, category: str) -> Question | None:
        """Generate a question for `category` and add it to the bank."""
        generated = await self.generator.generate(category, self.config.difficulty)
        if generated is None:
            return None

        question = Question(
            question_text=generated.question_text,
            option_a=generated.option_a,
            option_b=generated.option_b,
            option_c=generated.option_c,
            option_d=generated.option_d,
            correct_answer=generated.correct_answer,
            explanation=generated.explanation,
            category=category,
            difficulty=self.config.difficulty,
        )
        self.db.add(question)
        await self.db.flush()

        logger.bind(
            question_id=question.id,
            category=category,
            provider=self.generator.provider_name,
        ).info("question_added_from_generator")
        return question
