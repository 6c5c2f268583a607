import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from textquiz.models.delivery import DeliveryStatus


class DeliveryResponse(BaseModel):
    """A delivery queue entry as seen by operators."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: int
    delivery_date: date
    scheduled_for: datetime
    status: DeliveryStatus
    attempts: int
    question_id: int | None
    error_message: str | None
    claimed_at: datetime | None
    sent_at: datetime | None


class DeliveryStatusCounts(BaseModel):
    pending: int = 0
    in_progress: int = 0
    sent: int = 0
    failed: int = 0


class DeliveryListResponse(BaseModel):
    counts: DeliveryStatusCounts
    items: list[DeliveryResponse]
