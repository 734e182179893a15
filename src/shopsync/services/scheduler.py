"""
Periodic sync scheduling with APScheduler.

One interval job calls ``SyncOrchestrator.run_sync()`` for every installed
tenant. ``max_instances=1`` keeps a slow run from overlapping the next one.
"""

from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from shopsync.core.models import SyncReport, SyncTrigger
from shopsync.services.sync_orchestrator import SyncOrchestrator
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)

SYNC_JOB_ID = "periodic_tenant_sync"


class SyncScheduler:
    """Runs the all-tenant sync on a fixed interval."""

    def __init__(self, orchestrator: SyncOrchestrator, interval_minutes: int = 15):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.last_report: Optional[SyncReport] = None
        self.scheduler = self._create_scheduler()

    def _create_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            executors={'default': AsyncIOExecutor()},
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 60,
            },
            timezone='UTC',
        )
        scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
        scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)
        return scheduler

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Register the sync job and start the scheduler. Must run inside the event loop."""
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            self.run_scheduled_sync,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SYNC_JOB_ID,
            name="Periodic tenant sync",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started (every {self.interval_minutes} min)")

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Sync scheduler stopped")

    async def run_scheduled_sync(self) -> SyncReport:
        """Job body; also callable directly."""
        report = await self.orchestrator.run_sync(trigger=SyncTrigger.SCHEDULED)
        self.last_report = report
        for failure in report.failed:
            logger.warning(f"Scheduled sync failed for {failure.tenant_domain}: {failure.error}")
        return report

    def _job_executed_listener(self, event: JobExecutionEvent) -> None:
        logger.debug(f"Job {event.job_id} executed")

    def _job_error_listener(self, event: JobExecutionEvent) -> None:
        logger.error(f"Job {event.job_id} failed: {event.exception}")
