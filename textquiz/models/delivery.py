"""Per-user, per-day delivery queue."""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, Enum, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from textquiz.models.base import Base, TimestampMixin


class DeliveryStatus(str, enum.Enum):
    """Delivery queue entry status.

    pending -> in_progress (claimed) -> sent | failed.
    pending -> failed when the catch-up window is missed.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SENT = "sent"
    FAILED = "failed"


class DeliveryQueueEntry(Base, TimestampMixin):
    """One scheduled question send for a user's local calendar day.

    The unique constraint on (user_id, delivery_date) makes queue population
    idempotent even when two populators race.
    """

    __tablename__ = "delivery_queue"
    __table_args__ = (
        UniqueConstraint("user_id", "delivery_date", name="uq_delivery_user_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    delivery_date: Mapped[date] = mapped_column(Date, index=True)
    scheduled_for: Mapped[datetime] = mapped_column(index=True)  # naive UTC
    status: Mapped[DeliveryStatus] = mapped_column(
        Enum(
            DeliveryStatus,
            values_callable=lambda e: [x.value for x in e],
            name="deliverystatus",
            native_enum=False,
            length=20,
        ),
        default=DeliveryStatus.PENDING,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    question_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="SET NULL"), default=None
    )
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    claimed_at: Mapped[datetime | None] = mapped_column(default=None)
    sent_at: Mapped[datetime | None] = mapped_column(default=None)

    def __repr__(self) -> str:
        return f"<DeliveryQueueEntry user={self.user_id} date={self.delivery_date} {self.status.value}>"
