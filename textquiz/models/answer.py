"""Delivered questions awaiting (or holding) a user's reply."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from textquiz.models.base import Base


class AwaitingAnswer(Base):
    """One question delivered to a user.

    A null `user_answer` marks the row as outstanding. The partial unique
    index allows at most one outstanding row per user.
    """

    __tablename__ = "user_answers"
    __table_args__ = (
        Index(
            "uq_user_answers_one_outstanding",
            "user_id",
            unique=True,
            postgresql_where=text("user_answer IS NULL"),
            sqlite_where=text("user_answer IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), index=True
    )
    # Null for the welcome question sent at signup
    delivery_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("delivery_queue.id", ondelete="SET NULL"), default=None
    )
    user_answer: Mapped[str | None] = mapped_column(String(1), default=None)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0)
    delivered_at: Mapped[datetime]
    answered_at: Mapped[datetime | None] = mapped_column(default=None)

    @property
    def is_outstanding(self) -> bool:
        return self.user_answer is None

    def __repr__(self) -> str:
        state = "outstanding" if self.is_outstanding else self.user_answer
        return f"<AwaitingAnswer user={self.user_id} question={self.question_id} {state}>"
