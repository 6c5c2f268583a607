from datetime import datetime

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from textquiz.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """SMS subscriber.

    Streak and score columns are only written by the answer reconciler;
    the dispatcher touches `last_delivered_at` and the category cursor.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    categories: Mapped[list[str]] = mapped_column(JSON, default=list)
    delivery_time_local: Mapped[str] = mapped_column(String(5), default="09:00")
    timezone: Mapped[str] = mapped_column(String(50), default="America/New_York")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Index into `categories` for the next delivery
    category_cursor: Mapped[int] = mapped_column(Integer, default=0)

    # Running totals
    questions_answered: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    total_score: Mapped[int] = mapped_column(Integer, default=0)
    play_streak: Mapped[int] = mapped_column(Integer, default=0)
    winning_streak: Mapped[int] = mapped_column(Integer, default=0)

    last_delivered_at: Mapped[datetime | None] = mapped_column(default=None)
    last_answered_at: Mapped[datetime | None] = mapped_column(default=None)

    @property
    def accuracy_rate(self) -> int:
        """Percentage of answered questions that were correct."""
        if not self.questions_answered:
            return 0
        return round(self.correct_answers / self.questions_answered * 100)

    def __repr__(self) -> str:
        return f"<User {self.phone_number}>"
