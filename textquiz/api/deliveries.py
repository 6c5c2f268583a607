"""Delivery queue inspection."""

from datetime import date

from fastapi import APIRouter, Query
from sqlalchemy import func, select

from textquiz.dependencies import AdminRequired, DBSession
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus
from textquiz.schemas.deliveries import (
    DeliveryListResponse,
    DeliveryResponse,
    DeliveryStatusCounts,
)

router = APIRouter(dependencies=[AdminRequired])


@router.get("/deliveries", response_model=DeliveryListResponse)
async def list_deliveries(
    db: DBSession,
    status: DeliveryStatus | None = Query(default=None, description="Filter by status"),
    delivery_date: date | None = Query(default=None, description="Filter by local delivery date"),
    limit: int = Query(default=100, le=500),
    offset: int = Query(default=0, ge=0),
) -> DeliveryListResponse:
    """
    Inspect the delivery queue.

    Counts are per status for the selected date (all dates if omitted);
    failed entries carry their error message.
    """
    counts_query = select(DeliveryQueueEntry.status, func.count()).group_by(
        DeliveryQueueEntry.status
    )
    query = select(DeliveryQueueEntry).order_by(DeliveryQueueEntry.scheduled_for.desc())

    if delivery_date:
        counts_query = counts_query.where(DeliveryQueueEntry.delivery_date == delivery_date)
        query = query.where(DeliveryQueueEntry.delivery_date == delivery_date)
    if status:
        query = query.where(DeliveryQueueEntry.status == status)

    counts_result = await db.execute(counts_query)
    counts = DeliveryStatusCounts(
        **{row_status.value: count for row_status, count in counts_result.all()}
    )

    result = await db.execute(query.offset(offset).limit(limit))
    return DeliveryListResponse(
        counts=counts,
        items=[DeliveryResponse.model_validate(entry) for entry in result.scalars().all()],
    )
