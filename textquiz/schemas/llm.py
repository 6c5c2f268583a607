from typing import Literal

from pydantic import BaseModel, Field


class GeneratedQuestion(BaseModel):
    """
    Structured output schema for LLM question generation.

    Used with OpenAI's response_format for guaranteed schema compliance.
    """

    question_text: str = Field(
        description="The trivia question, one or two sentences",
        max_length=500,
    )
    option_a: str = Field(description="Answer option A", max_length=200)
    option_b: str = Field(description="Answer option B", max_length=200)
    option_c: str = Field(description="Answer option C", max_length=200)
    option_d: str = Field(description="Answer option D", max_length=200)
    correct_answer: Literal["A", "B", "C", "D"] = Field(
        description="Letter of the single correct option",
    )
    explanation: str = Field(
        description="One or two sentence explanation of the correct answer",
        max_length=500,
    )
