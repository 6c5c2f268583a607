"""
Maintenance sweep job.

Run with: textquiz sweep

Purges abandoned outstanding answers and fails interrupted claims.
"""

from datetime import datetime

from textquiz.core.database import AsyncSessionLocal
from textquiz.services.maintenance import SweepResult, sweep_abandoned_answers


async def main(now: datetime | None = None) -> SweepResult:
    async with AsyncSessionLocal() as db:
        return await sweep_abandoned_answers(db, now)
