"""Red Zone Sweep Scheduler - Periodic evaluation of Red Zone rules.

Runs every ``RED_ZONE_SWEEP_INTERVAL_MINUTES`` when
``RED_ZONE_SWEEP_ENABLED`` is set. Each run evaluates every customer against
the enabled rules, committing per customer, and stops between customers once
``RED_ZONE_SWEEP_MAX_SECONDS`` has elapsed. The next run picks up where
alerts left off since alert creation is idempotent.
"""

import logging
import time
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.database import async_session_maker
from app.middleware.correlation import correlation_scope
from app.schemas.red_zone import SweepResponse
from app.services.red_zone.engine import RedZoneEngine

logger = logging.getLogger(__name__)

JOB_ID = "red_zone_sweep"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler()
    return scheduler


def time_budget(max_seconds: float, clock: Callable[[], float] = time.monotonic) -> Callable[[], bool]:
    """``should_continue`` callback that turns false after ``max_seconds``."""
    deadline = clock() + max_seconds

    def should_continue() -> bool:
        return clock() < deadline

    return should_continue


async def run_red_zone_sweep() -> Optional[SweepResponse]:
    """Main job: sweep all customers with a fresh session."""
    with correlation_scope("red-zone-sweep"):
        logger.info("Starting Red Zone sweep...")
        try:
            async with async_session_maker() as db:
                engine = RedZoneEngine(db)
                summary = await engine.run_sweep(
                    should_continue=time_budget(settings.RED_ZONE_SWEEP_MAX_SECONDS)
                )
        except Exception as e:
            logger.error(f"Fatal error in Red Zone sweep: {e}", exc_info=True)
            return None

        if summary.interrupted:
            logger.warning(
                f"Red Zone sweep hit its {settings.RED_ZONE_SWEEP_MAX_SECONDS}s limit "
                f"after customer {summary.last_customer_id}"
            )
        return summary


def start_red_zone_scheduler() -> None:
    """Register the sweep job and start the scheduler."""
    if not settings.RED_ZONE_SWEEP_ENABLED:
        logger.info("Red Zone sweep disabled (RED_ZONE_SWEEP_ENABLED=false)")
        return

    sched = get_scheduler()
    sched.add_job(
        run_red_zone_sweep,
        IntervalTrigger(minutes=settings.RED_ZONE_SWEEP_INTERVAL_MINUTES),
        id=JOB_ID,
        name="Red Zone sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    if not sched.running:
        sched.start()
    logger.info(f"Red Zone sweep scheduled every {settings.RED_ZONE_SWEEP_INTERVAL_MINUTES} minutes")


def stop_red_zone_scheduler() -> None:
    """Stop the scheduler if it is running."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Red Zone scheduler stopped")
    scheduler = None
