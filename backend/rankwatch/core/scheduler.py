"""APScheduler wrapper running the weekly collection in-process.

Uses the asyncio scheduler so that coroutine jobs run on the application
event loop. Jobs live in memory: the only job is the weekly collection,
which is re-registered from settings at every start.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import Any

from apscheduler.events import (
    EVENT_JOB_ADDED,
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    EVENT_SCHEDULER_SHUTDOWN,
    EVENT_SCHEDULER_STARTED,
    JobEvent,
    JobExecutionEvent,
    SchedulerEvent,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from rankwatch.core.config import Settings
from rankwatch.core.logging import get_logger, scheduler_logger

logger = get_logger(__name__)

WEEKLY_COLLECTION_JOB_ID = "weekly_collection"


class SchedulerState(Enum):
    """Scheduler state enumeration."""

    STOPPED = "stopped"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class SchedulerManager:
    """Owns the application's AsyncIOScheduler and its event logging."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._state: SchedulerState = SchedulerState.STOPPED

    @property
    def state(self) -> SchedulerState:
        """Get current scheduler state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._state == SchedulerState.RUNNING

    def _setup_event_listeners(self, scheduler: AsyncIOScheduler) -> None:
        """Set up event listeners for scheduler events."""

        def on_scheduler_event(event: SchedulerEvent) -> None:
            if event.code == EVENT_SCHEDULER_STARTED:
                scheduler_logger.scheduler_start(len(scheduler.get_jobs()))
            elif event.code == EVENT_SCHEDULER_SHUTDOWN:
                scheduler_logger.scheduler_stop(graceful=True)

        def on_job_added(event: JobEvent) -> None:
            job = scheduler.get_job(event.job_id)
            scheduler_logger.job_added(
                job_id=event.job_id,
                job_name=job.name if job else None,
                trigger=str(job.trigger) if job else "unknown",
                next_run=(
                    job.next_run_time.isoformat()
                    if job and getattr(job, "next_run_time", None)
                    else None
                ),
            )

        def on_job_execution_event(event: JobExecutionEvent) -> None:
            scheduled_time = (
                event.scheduled_run_time.isoformat() if event.scheduled_run_time else None
            )
            if event.code == EVENT_JOB_EXECUTED:
                scheduler_logger.job_execution_success(event.job_id, scheduled_time)
            elif event.code == EVENT_JOB_ERROR:
                scheduler_logger.job_execution_error(
                    job_id=event.job_id,
                    scheduled_time=scheduled_time,
                    error=str(event.exception),
                    error_type=type(event.exception).__name__,
                )
            elif event.code == EVENT_JOB_MISSED:
                scheduler_logger.job_missed(event.job_id, scheduled_time)

        scheduler.add_listener(
            on_scheduler_event, EVENT_SCHEDULER_STARTED | EVENT_SCHEDULER_SHUTDOWN
        )
        scheduler.add_listener(on_job_added, EVENT_JOB_ADDED)
        scheduler.add_listener(
            on_job_execution_event,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED,
        )

    def init_scheduler(self, settings: Settings) -> bool:
        """Create the scheduler. Returns False when disabled by configuration."""
        if not settings.scheduler_enabled:
            logger.info("Scheduler is disabled via configuration")
            return False

        if self._scheduler is not None:
            logger.warning("Scheduler already initialized")
            return True

        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": settings.scheduler_misfire_grace_time,
            },
            timezone="UTC",
        )
        self._setup_event_listeners(self._scheduler)
        logger.info("Scheduler initialized successfully")
        return True

    def add_cron_job(
        self,
        func: Callable[..., Awaitable[Any]],
        cron: str,
        id: str,
        name: str,
        args: tuple[Any, ...] = (),
    ) -> str | None:
        """Register a coroutine job on a crontab expression.

        Returns the job id, or None if the scheduler is not initialized.
        """
        if self._scheduler is None:
            logger.warning(
                "Cannot add job, scheduler is not initialized",
                extra={"job_id": id},
            )
            return None

        job = self._scheduler.add_job(
            func,
            trigger=CronTrigger.from_crontab(cron, timezone="UTC"),
            args=args,
            id=id,
            name=name,
            replace_existing=True,
        )
        return str(job.id)

    def start(self) -> bool:
        """Start the scheduler. Must be called from a running event loop."""
        if self._scheduler is None:
            return False

        if self._state == SchedulerState.RUNNING:
            logger.warning("Scheduler is already running")
            return True

        try:
            self._scheduler.start()
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}", exc_info=True)
            self._state = SchedulerState.STOPPED
            return False

        self._state = SchedulerState.RUNNING
        return True

    def stop(self, wait: bool = False) -> None:
        """Stop the scheduler and drop it."""
        if self._scheduler is None or self._state != SchedulerState.RUNNING:
            self._scheduler = None
            self._state = SchedulerState.STOPPED
            return

        self._state = SchedulerState.SHUTTING_DOWN
        try:
            self._scheduler.shutdown(wait=wait)
        finally:
            self._state = SchedulerState.STOPPED
            self._scheduler = None

    def next_collection_run(self) -> datetime | None:
        """When the weekly collection fires next, or None if it is not scheduled."""
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(WEEKLY_COLLECTION_JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def check_health(self) -> dict[str, Any]:
        """Check scheduler health."""
        if self._scheduler is None:
            return {
                "status": "not_initialized",
                "running": False,
                "state": self._state.value,
                "job_count": 0,
            }

        next_run = self.next_collection_run()
        return {
            "status": "ok" if self.is_running else "degraded",
            "running": self.is_running,
            "state": self._state.value,
            "job_count": len(self._scheduler.get_jobs()),
            "next_collection_run": next_run.isoformat() if next_run else None,
        }


# Global scheduler manager instance
scheduler_manager = SchedulerManager()
