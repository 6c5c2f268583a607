from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from textquiz.core.datetime_utils import is_valid_timezone, normalize_delivery_time
from textquiz.core.errors import InvalidDeliveryTime
from textquiz.core.phone import normalize_phone_number


class SignupRequest(BaseModel):
    """Request body for SMS signup."""

    phone_number: str = Field(max_length=32)
    timezone: str | None = Field(default=None, max_length=50)
    delivery_time_local: str | None = Field(default=None, max_length=5)
    categories: list[str] = Field(default_factory=list, max_length=20)

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        # InvalidPhoneNumber is a ValueError, so pydantic reports it as a 422
        return normalize_phone_number(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not is_valid_timezone(v):
            raise ValueError(f"Invalid timezone: {v}")
        return v

    @field_validator("delivery_time_local")
    @classmethod
    def validate_delivery_time(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            return normalize_delivery_time(v)
        except InvalidDeliveryTime as e:
            raise ValueError(str(e)) from e

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v: list[str]) -> list[str]:
        cleaned: list[str] = []
        for category in v:
            name = category.strip().lower()
            if name and name not in cleaned:
                cleaned.append(name)
        return cleaned


class SignupResponse(BaseModel):
    """Response after a successful signup."""

    ok: bool = True
    phone_number: str
    timezone: str
    delivery_time_local: str
    categories: list[str]
    welcome_question_sent: bool


class RecentAnswer(BaseModel):
    question_id: int
    user_answer: str | None
    is_correct: bool
    points_earned: int
    delivered_at: datetime
    answered_at: datetime | None


class UserStatsResponse(BaseModel):
    """Response for /api/users/{phone}/stats."""

    phone_number: str
    is_active: bool
    questions_answered: int
    correct_answers: int
    accuracy_rate: int
    total_score: int
    play_streak: int
    winning_streak: int
    last_answered_at: datetime | None
    recent_answers: list[RecentAnswer]
