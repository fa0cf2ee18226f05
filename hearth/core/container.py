"""Application wiring: builds the dispatcher, outbox processor and schedulers."""

import logging
from datetime import date, time, timedelta
from functools import partial

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from hearth.core.config import Settings
from hearth.core.db_client import Database
from hearth.core.dispatcher import EventDispatcher
from hearth.core.scheduler import BaseScheduler, DailyScheduler, IntervalScheduler, local_now
from hearth.core.scheduler_tracker import JobTracker
from hearth.interface.notification_sender import NotificationSender, build_notification_sender
from hearth.services import scheduler_jobs
from hearth.services.event_handlers import register_handlers
from hearth.services.outbox_effects import build_effects
from hearth.services.outbox_processor import OutboxProcessor


logger = logging.getLogger(__name__)


class Container:
    """Holds the long-lived collaborators of a running application."""

    def __init__(
        self,
        *,
        settings: Settings,
        db: Database,
        sender: NotificationSender | None = None,
        tracker: JobTracker | None = None,
    ) -> None:
        self.settings = settings
        self.db = db
        self.sender = sender or build_notification_sender(settings)
        self.tracker = tracker or JobTracker()
        self.dispatcher = register_handlers(EventDispatcher(), max_retries=settings.outbox_max_retries)
        self.outbox_processor = OutboxProcessor(
            db=db,
            effects=build_effects(dispatcher=self.dispatcher),
            sender=self.sender,
            batch_size=settings.outbox_batch_size,
        )
        self.schedulers: list[BaseScheduler] = self._build_schedulers()
        self.job_scheduler: AsyncIOScheduler | None = None

    def today(self) -> date:
        return local_now(self.settings.timezone).date()

    async def _generate_today(self) -> None:
        await scheduler_jobs.run_daily_generation(self.db, self.dispatcher, today=self.today())

    async def _notify_not_completed(self) -> None:
        await scheduler_jobs.send_daily_not_completed_notifications(self.db, sender=self.sender, today=self.today())

    async def _notify_tomorrow(self) -> None:
        await scheduler_jobs.send_tomorrow_notifications(self.db, sender=self.sender, today=self.today())

    async def _remind_overdue(self) -> None:
        await scheduler_jobs.send_overdue_reminders(
            self.db, sender=self.sender, now=local_now(self.settings.timezone)
        )

    def _build_schedulers(self) -> list[BaseScheduler]:
        s = self.settings
        common = {"tracker": self.tracker, "timezone": s.timezone}
        return [
            DailyScheduler(
                name="task_generation",
                job=self._generate_today,
                run_at=time(s.generation_hour, s.generation_minute),
                **common,
            ),
            IntervalScheduler(
                name="outbox_processor",
                job=partial(scheduler_jobs.process_outbox, self.outbox_processor),
                interval=timedelta(seconds=s.outbox_interval_seconds),
                **common,
            ),
            DailyScheduler(
                name="daily_not_completed_notification",
                job=self._notify_not_completed,
                run_at=time(s.daily_notification_hour, s.daily_notification_minute),
                **common,
            ),
            DailyScheduler(
                name="tomorrow_notification",
                job=self._notify_tomorrow,
                run_at=time(s.tomorrow_notification_hour, s.tomorrow_notification_minute),
                **common,
            ),
            IntervalScheduler(
                name="overdue_reminder",
                job=self._remind_overdue,
                interval=timedelta(minutes=s.reminder_interval_minutes),
                **common,
            ),
        ]

    def start_schedulers(self) -> None:
        self.job_scheduler = AsyncIOScheduler(timezone=self.settings.timezone)
        for scheduler in self.schedulers:
            scheduler.start(self.job_scheduler)
        self.job_scheduler.start()
        logger.info("Started %d schedulers", len(self.schedulers))

    async def stop_schedulers(self) -> None:
        for scheduler in self.schedulers:
            await scheduler.stop()
        if self.job_scheduler is not None:
            self.job_scheduler.shutdown(wait=False)
            self.job_scheduler = None
        logger.info("All schedulers stopped")
