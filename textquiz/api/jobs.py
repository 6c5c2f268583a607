"""Job monitoring and manual trigger endpoints."""

from datetime import date, datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel
from sqlalchemy import select

from textquiz.core.scheduler import get_dispatch_state, get_job_schedules
from textquiz.dependencies import AdminRequired, Config, DBSession, SMSTransport
from textquiz.models.job_run import JobRun
from textquiz.services.dispatcher import run_dispatch_cycle
from textquiz.services.maintenance import sweep_abandoned_answers
from textquiz.services.queue_populator import populate_queue

router = APIRouter(dependencies=[AdminRequired])


class ScheduleResponse(BaseModel):
    """Response model for a job schedule."""

    id: str
    task_id: str
    trigger: str
    next_fire_time: str | None
    last_fire_time: str | None


class JobRunResponse(BaseModel):
    """Response model for a job run."""

    id: str
    job_id: str
    scheduled_at: datetime
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
    outcome: str
    error: str | None


class PopulateRequest(BaseModel):
    for_date: date
    not_before: datetime | None = None


class PopulateResponse(BaseModel):
    for_date: date
    scheduled: int
    skipped_existing: int
    skipped_past: int
    errors: int


class DispatchResponse(BaseModel):
    expired: int
    due: int
    claimed: int
    sent: int
    failed: int
    lost_claims: int
    stopped_reason: str | None
    failures: dict[str, int]


class SweepResponse(BaseModel):
    abandoned_answers: int
    interrupted_claims: int


@router.get("/jobs/schedules", response_model=list[ScheduleResponse])
async def list_schedules() -> list[ScheduleResponse]:
    """
    List all registered job schedules.

    Returns schedule information including next/last fire times.
    """
    schedules = await get_job_schedules()
    return [ScheduleResponse(**s) for s in schedules]


@router.get("/jobs/runs", response_model=list[JobRunResponse])
async def list_job_runs(
    db: DBSession,
    job_id: str | None = Query(default=None, description="Filter by job ID"),
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobRunResponse]:
    """List job execution history, newest first."""
    query = select(JobRun).order_by(JobRun.scheduled_at.desc())

    if job_id:
        query = query.where(JobRun.job_id == job_id)

    query = query.offset(offset).limit(limit)
    result = await db.execute(query)
    runs = result.scalars().all()

    return [
        JobRunResponse(
            id=run.id,
            job_id=run.job_id,
            scheduled_at=run.scheduled_at,
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_seconds=(run.finished_at - run.started_at).total_seconds(),
            outcome=run.outcome,
            error=run.error,
        )
        for run in runs
    ]


@router.post("/jobs/populate", response_model=PopulateResponse)
async def trigger_populate(body: PopulateRequest, db: DBSession) -> PopulateResponse:
    """Queue deliveries for a date. Safe to repeat."""
    result = await populate_queue(db, body.for_date, not_before=body.not_before)
    return PopulateResponse(
        for_date=result.for_date,
        scheduled=result.scheduled,
        skipped_existing=result.skipped_existing,
        skipped_past=result.skipped_past,
        errors=result.errors,
    )


@router.post("/jobs/dispatch", response_model=DispatchResponse)
async def trigger_dispatch(
    db: DBSession,
    config: Config,
    transport: SMSTransport,
) -> DispatchResponse:
    """Run one dispatch cycle now, sharing the scheduler's state."""
    result = await run_dispatch_cycle(
        db,
        transport=transport,
        state=get_dispatch_state(),
        config=config,
    )
    return DispatchResponse(
        expired=result.expired,
        due=result.due,
        claimed=result.claimed,
        sent=result.sent,
        failed=result.failed,
        lost_claims=result.lost_claims,
        stopped_reason=result.stopped_reason,
        failures=result.failures,
    )


@router.post("/jobs/sweep", response_model=SweepResponse)
async def trigger_sweep(db: DBSession, config: Config) -> SweepResponse:
    """Purge abandoned answers and fail interrupted claims now."""
    result = await sweep_abandoned_answers(db, config=config.delivery)
    return SweepResponse(
        abandoned_answers=result.abandoned_answers,
        interrupted_claims=result.interrupted_claims,
    )
