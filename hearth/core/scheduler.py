"""Periodic schedulers registering jobs on APScheduler.

Each scheduler contributes one job to a shared ``AsyncIOScheduler``. Runs of
one job never overlap. A failing run is logged and recorded, and the job stays
scheduled. ``stop()`` removes the job and waits for a run already in flight.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from apscheduler.job import Job as ScheduledJob
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from hearth.core.config import settings
from hearth.core.scheduler_tracker import JobTracker


logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


def local_now(timezone: str | None = None) -> datetime:
    """Current time in the household time zone."""
    return datetime.now(ZoneInfo(timezone or settings.timezone))


class BaseScheduler(ABC):
    """Run a job repeatedly on a trigger defined by subclasses."""

    def __init__(self, *, name: str, job: Job, tracker: JobTracker, timezone: str | None = None) -> None:
        self.name = name
        self.timezone = timezone or settings.timezone
        self._job = job
        self._tracker = tracker
        self._run_lock = asyncio.Lock()
        self._scheduler: AsyncIOScheduler | None = None
        self._scheduled: ScheduledJob | None = None

    @abstractmethod
    def trigger(self) -> BaseTrigger:
        """Build the APScheduler trigger for this job."""

    @property
    def is_running(self) -> bool:
        return self._scheduled is not None and self._scheduler is not None and self._scheduler.running

    def start(self, scheduler: AsyncIOScheduler) -> None:
        """Register the job. Starting a scheduler that is already registered is a no-op."""
        if self._scheduled is not None:
            return
        self._scheduler = scheduler
        self._scheduled = scheduler.add_job(
            self.run_once,
            trigger=self.trigger(),
            id=self.name,
            name=self.name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduler started", extra={"job_name": self.name})

    async def stop(self) -> None:
        """Remove the job and wait for an in-flight run to finish."""
        if self._scheduled is None:
            return
        self._scheduled.remove()
        self._scheduled = None
        async with self._run_lock:
            pass
        logger.info("Scheduler stopped", extra={"job_name": self.name})

    async def run_once(self) -> bool:
        """Run the job one time, recording the outcome. Never raises on job failure."""
        async with self._run_lock:
            await self._tracker.record_job_start(self.name)
            try:
                await self._job()
            except Exception as e:
                consecutive = await self._tracker.record_job_failure(self.name, str(e))
                logger.exception(
                    "Scheduled job failed",
                    extra={"job_name": self.name, "consecutive_failures": consecutive},
                )
                return False

            await self._tracker.record_job_success(self.name)
            return True


class DailyScheduler(BaseScheduler):
    """Run once a day at a local time of day."""

    def __init__(
        self,
        *,
        name: str,
        job: Job,
        tracker: JobTracker,
        run_at: time,
        timezone: str | None = None,
    ) -> None:
        super().__init__(name=name, job=job, tracker=tracker, timezone=timezone)
        self.run_at = run_at

    def trigger(self) -> CronTrigger:
        return CronTrigger(hour=self.run_at.hour, minute=self.run_at.minute, timezone=self.timezone)

    def next_run_after(self, now: datetime) -> datetime:
        """Today at run_at if that is still ahead, otherwise tomorrow."""
        return self.trigger().get_next_fire_time(None, now + timedelta(microseconds=1))


class IntervalScheduler(BaseScheduler):
    """Run at a fixed interval."""

    def __init__(
        self,
        *,
        name: str,
        job: Job,
        tracker: JobTracker,
        interval: timedelta,
        timezone: str | None = None,
    ) -> None:
        if interval <= timedelta(0):
            msg = f"Interval must be positive, got {interval}"
            raise ValueError(msg)
        super().__init__(name=name, job=job, tracker=tracker, timezone=timezone)
        self.interval = interval

    def trigger(self) -> IntervalTrigger:
        return IntervalTrigger(seconds=self.interval.total_seconds(), timezone=self.timezone)
