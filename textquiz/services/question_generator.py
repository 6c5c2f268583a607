"""AI question generation used when the question bank runs dry."""

from abc import ABC, abstractmethod

import backoff
from httpx import HTTPStatusError
from openai import AsyncOpenAI, RateLimitError

from textquiz.config import get_settings
from textquiz.core.logging import get_logger
from textquiz.schemas.llm import GeneratedQuestion

logger = get_logger(__name__)

SYSTEM_PROMPT = """You write multiple-choice trivia questions delivered by SMS.

Rules:
- Exactly four options, one unambiguously correct
- Keep the question under 200 characters and each option under 60
- No trick questions, no "all of the above"
- Facts must be well established and not time-sensitive
- The explanation is one or two sentences a curious adult would enjoy

Output format is strictly JSON matching the schema provided."""


class QuestionGenerator(ABC):
    """Abstract base class for question generators."""

    provider_name: str = "unknown"

    @abstractmethod
    async def generate(self, category: str, difficulty: str = "medium") -> GeneratedQuestion | None:
        """
        Generate one question.

        Args:
            category: Category name (e.g. "science")
            difficulty: easy, medium, or hard

        Returns:
            The generated question, or None if generation failed
        """


class NullQuestionGenerator(QuestionGenerator):
    """
    Generator that never produces a question.

    Use when no LLM API key is configured or for testing.
    """

    provider_name = "null"

    async def generate(self, category: str, difficulty: str = "medium") -> GeneratedQuestion | None:
        logger.bind(category=category).debug("question_generation_disabled")
        return None


class OpenAIQuestionGenerator(QuestionGenerator):
    """Structured-output generation through the OpenAI chat API."""

    provider_name = "openai"

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None) -> None:
        settings = get_settings()
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.llm_model

    @backoff.on_exception(
        backoff.expo,
        (RateLimitError, HTTPStatusError),
        max_tries=5,
        max_time=120,
    )
    async def _complete(self, category: str, difficulty: str) -> GeneratedQuestion | None:
        response = await self.client.beta.chat.completions.parse(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Write one {difficulty} trivia question in the category "
                        f'"{category}". Produce a JSON object following the schema.'
                    ),
                },
            ],
            response_format=GeneratedQuestion,
            temperature=0.9,
        )
        result = response.choices[0].message.parsed
        usage = response.usage
        if result and usage:
            logger.bind(
                category=category,
                total_tokens=usage.total_tokens,
            ).info("question_generated")
        return result

    async def generate(self, category: str, difficulty: str = "medium") -> GeneratedQuestion | None:
        try:
            result = await self._complete(category, difficulty)
        except Exception as e:
            logger.bind(category=category, error=str(e)).error("question_generation_error")
            return None

        if result is None:
            logger.bind(category=category).warning("question_generation_no_result")
        return result


def get_question_generator() -> QuestionGenerator:
    """OpenAI generator when an API key is configured, otherwise the null generator."""
    settings = get_settings()
    if not settings.openai_api_key:
        return NullQuestionGenerator()
    return OpenAIQuestionGenerator()
