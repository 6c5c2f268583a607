"""
Delivery dispatch job.

Run with: textquiz dispatch

Sends every due pending delivery once. The scheduler runs it every
`delivery.dispatch_interval_minutes`.
"""

from datetime import datetime

from textquiz.core.database import AsyncSessionLocal
from textquiz.core.logging import get_logger
from textquiz.services.dispatcher import DispatchResult, DispatchState, run_dispatch_cycle
from textquiz.services.transport import Transport, get_transport

logger = get_logger(__name__)


async def main(
    now: datetime | None = None,
    *,
    state: DispatchState | None = None,
    transport: Transport | None = None,
) -> DispatchResult:
    """Run one dispatch cycle with a fresh session."""
    state = state or DispatchState()
    transport = transport or get_transport()

    async with AsyncSessionLocal() as db:
        result = await run_dispatch_cycle(db, now, transport=transport, state=state)

    if result.due or result.expired:
        logger.bind(
            due=result.due,
            sent=result.sent,
            failed=result.failed,
            expired=result.expired,
            lost_claims=result.lost_claims,
            failures=result.failures,
            transport=transport.name,
        ).info("dispatch_job_completed")
    else:
        logger.debug("dispatch_job_nothing_due")
    return result
