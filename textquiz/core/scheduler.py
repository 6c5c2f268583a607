"""
APScheduler integration for FastAPI.

Runs the delivery jobs in-process.

Jobs:
- Populate: queues deliveries for tomorrow and the day after, daily at
  `populate_time_utc`
- Dispatch: sends due deliveries every `dispatch_interval_minutes`
- Sweep: purges abandoned answers and interrupted claims at :45 every hour

On startup the current day and the same upcoming days are populated, skipping
deliveries whose time has already passed.
"""

from datetime import datetime
from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy, JobOutcome, JobReleased
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger

from textquiz.config import get_config, get_settings
from textquiz.core.database import AsyncSessionLocal
from textquiz.core.datetime_utils import parse_delivery_time, to_naive_utc, utc_now
from textquiz.core.logging import get_logger
from textquiz.services.dispatcher import DispatchState

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncScheduler | None = None

# Shared by every dispatch and populate run in this process
dispatch_state: DispatchState | None = None

JOB_IDS = ["populate_queue", "dispatch", "sweep"]


def get_dispatch_state() -> DispatchState:
    """Return the process-wide dispatch state, creating it on first use."""
    global dispatch_state
    if dispatch_state is None:
        dispatch_state = DispatchState()
    return dispatch_state


async def populate_job() -> None:
    """Daily job - queues deliveries for tomorrow and the day after."""
    from textquiz.jobs.populate import main as run_populate
    from textquiz.jobs.populate import upcoming_dates

    logger.info("scheduled_populate_started")
    try:
        for for_date in upcoming_dates():
            result = await run_populate(for_date, state=get_dispatch_state())
            logger.bind(
                for_date=str(result.for_date),
                scheduled=result.scheduled,
                skipped_existing=result.skipped_existing,
                errors=result.errors,
            ).info("scheduled_populate_completed")
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_populate_failed")
        raise  # Re-raise so APScheduler records the failure


async def dispatch_job() -> None:
    """Periodic job - sends deliveries that are due."""
    from textquiz.jobs.dispatch import main as run_dispatch

    state = get_dispatch_state()
    if not state.accepting_work:
        logger.debug("scheduled_dispatch_skipped_shutdown")
        return

    try:
        await run_dispatch(state=state)
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_dispatch_failed")
        raise


async def sweep_job() -> None:
    """Hourly job - purges abandoned answers and interrupted claims."""
    from textquiz.jobs.sweep import main as run_sweep

    try:
        await run_sweep()
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_sweep_failed")
        raise


async def populate_on_startup() -> None:
    """Populate today and the nightly run's dates, skipping deliveries already in the past."""
    from textquiz.jobs.populate import main as run_populate
    from textquiz.jobs.populate import upcoming_dates

    now = utc_now()
    for for_date in [now.date(), *upcoming_dates(now)]:
        try:
            await run_populate(for_date, not_before=now, state=get_dispatch_state())
        except Exception as e:
            logger.bind(for_date=str(for_date), error=str(e)).error("startup_populate_failed")


async def _record_job_result(
    job_id: str,
    scheduled_at: datetime,
    started_at: datetime,
    outcome: JobOutcome,
    error: str | None = None,
) -> None:
    """Record job execution result to database."""
    from textquiz.models.job_run import JobRun

    async with AsyncSessionLocal() as db:
        job_run = JobRun(
            job_id=job_id,
            scheduled_at=to_naive_utc(scheduled_at),
            started_at=to_naive_utc(started_at),
            finished_at=utc_now(),
            outcome=outcome.name,
            error=error,
        )
        db.add(job_run)
        await db.commit()


async def _on_job_completed(event: Any) -> None:
    """Handle job completion events."""
    if isinstance(event, JobReleased):
        try:
            scheduled_at = getattr(event, "scheduled_fire_time", None) or utc_now()
            started_at = getattr(event, "started_at", None) or utc_now()
            error = getattr(event, "exception_message", None) or getattr(event, "exception", None)
            await _record_job_result(
                job_id=event.schedule_id or "manual",
                scheduled_at=scheduled_at,
                started_at=started_at,
                outcome=event.outcome,
                error=str(error) if event.outcome == JobOutcome.error and error else None,
            )
        except Exception as e:
            logger.bind(error=str(e)).error("failed_to_record_job_result")


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    delivery = get_config().delivery
    populate_at = parse_delivery_time(delivery.populate_time_utc)
    get_dispatch_state()

    # Schedules are rebuilt from config on every start
    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    # Subscribe to job events for history tracking
    scheduler.subscribe(_on_job_completed)

    await scheduler.add_schedule(
        populate_job,
        CronTrigger(hour=populate_at.hour, minute=populate_at.minute, timezone="UTC"),
        id="populate_queue",
        conflict_policy=ConflictPolicy.replace,
    )

    await scheduler.add_schedule(
        dispatch_job,
        CronTrigger(minute=f"*/{delivery.dispatch_interval_minutes}", timezone="UTC"),
        id="dispatch",
        conflict_policy=ConflictPolicy.replace,
    )

    await scheduler.add_schedule(
        sweep_job,
        CronTrigger(minute=45, timezone="UTC"),
        id="sweep",
        conflict_policy=ConflictPolicy.replace,
    )

    # Start the scheduler's background worker to actually process jobs
    await scheduler.start_in_background()

    logger.bind(jobs=JOB_IDS).info("scheduler_started")

    await populate_on_startup()

    return scheduler


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler.

    The dispatcher finishes its in-flight entry; unstarted entries stay
    pending for the next process.
    """
    global scheduler
    if dispatch_state is not None:
        dispatch_state.request_shutdown()
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None


async def get_job_schedules() -> list[dict[str, Any]]:
    """Get all registered job schedules."""
    if not scheduler:
        return []

    schedules = await scheduler.get_schedules()
    return [
        {
            "id": s.id,
            "task_id": s.task_id,
            "trigger": str(s.trigger),
            "next_fire_time": s.next_fire_time.isoformat() if s.next_fire_time else None,
            "last_fire_time": s.last_fire_time.isoformat() if s.last_fire_time else None,
        }
        for s in schedules
    ]
