"""
Daily sync trigger.

Runs an incremental sync on the SYNC_SCHEDULE crontab (default: every day
at 12:00) inside an AsyncIOScheduler.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from storesync.core.config import Settings, get_settings
from storesync.services.sync_service import SyncResult, SyncService

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "daily_sync"


async def scheduled_sync_task(service: SyncService) -> SyncResult:
    """Task to sync all platforms"""
    logger.info("=== SCHEDULED SYNC STARTING ===")
    result = await service.run_sync(is_initial_sync=False)
    if result.success:
        logger.info(
            f"Scheduled sync completed: {result.orders_synced} orders, "
            f"{result.products_synced} products, {result.customers_synced} customers"
        )
    else:
        logger.error(f"Scheduled sync synced nothing: {result.errors}")
    return result


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(service: SyncService, settings: Optional[Settings] = None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    settings = settings or get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.SYNC_SCHEDULE_ENABLED:
        scheduler.add_job(
            scheduled_sync_task,
            CronTrigger.from_crontab(settings.SYNC_SCHEDULE, timezone="UTC"),
            args=[service],
            id=SYNC_JOB_ID,
            name="Daily Store Sync",
            replace_existing=True,
            max_instances=1,  # Only one sync at a time
            misfire_grace_time=3600,
        )
        logger.info(f"Scheduled sync job added with schedule: {settings.SYNC_SCHEDULE}")
    else:
        logger.info("Scheduled sync is disabled. Set SYNC_SCHEDULE_ENABLED=true to enable")

    return scheduler
