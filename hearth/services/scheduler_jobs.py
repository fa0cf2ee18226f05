"""Scheduled jobs: task generation, outbox draining and reminder notifications."""

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, timedelta
from uuid import NAMESPACE_URL, UUID, uuid5

from hearth.core.db_client import Database
from hearth.core.dispatcher import EventDispatcher
from hearth.core.logging import span
from hearth.domain.enums import TaskScope
from hearth.domain.schedule import falls_on, is_daily
from hearth.domain.task_definition import TaskDefinition
from hearth.interface.notification_sender import NotificationSender
from hearth.repositories import (
    member_repository,
    processed_event_repository,
    task_definition_repository,
    task_execution_repository,
)
from hearth.services import generation_service, notification_service
from hearth.services.notification_service import Notification
from hearth.services.outbox_processor import OutboxProcessingResult, OutboxProcessor


logger = logging.getLogger(__name__)

OVERDUE_REMINDER_EVENT_TYPE = "OverdueReminderSent"


async def run_daily_generation(db: Database, dispatcher: EventDispatcher, *, today: date) -> list[UUID]:
    """Generate today's executions. Runs once a day."""
    return await generation_service.run_generation(db, dispatcher, target_date=today)


async def process_outbox(processor: OutboxProcessor) -> OutboxProcessingResult:
    """Drain one batch of the outbox. Runs every few seconds."""
    return await processor.process_pending()


async def _deliver_all(db: Database, *, sender: NotificationSender, notifications: list[Notification]) -> None:
    for notification in notifications:
        await notification_service.deliver(db, sender=sender, notification=notification)


def _per_member(
    tasks_by_member: dict[UUID, list[str]], *, title: str, body: Callable[[list[str]], str]
) -> list[Notification]:
    return [
        Notification(member_ids=(member_id,), title=title, body=body(task_names))
        for member_id, task_names in tasks_by_member.items()
    ]


async def send_daily_not_completed_notifications(
    db: Database,
    *,
    sender: NotificationSender,
    today: date,
) -> int:
    """Remind members about today's executions that are still open.

    Assigned executions go to their assignee; unassigned family executions go
    to every member.

    Returns:
        Number of members that were sent a reminder
    """
    with span("scheduler_jobs.send_daily_not_completed_notifications"):
        async with db.session() as session:
            executions = await task_execution_repository.list_open_for_date(session, today)
            if not executions:
                logger.info("No open task executions for %s", today.isoformat())
                return 0

            members = await member_repository.list_members(session)
            definitions: dict[UUID, TaskDefinition] = {}
            tasks_by_member: dict[UUID, list[str]] = defaultdict(list)

            for execution in executions:
                definition_id = execution.task_definition_id
                if definition_id not in definitions:
                    definitions[definition_id] = await task_definition_repository.get(session, definition_id)
                definition = definitions[definition_id]

                if execution.assignee_id is not None:
                    tasks_by_member[execution.assignee_id].append(definition.name)
                elif definition.scope == TaskScope.FAMILY:
                    for member in members:
                        tasks_by_member[member.id].append(definition.name)

        notifications = _per_member(
            tasks_by_member,
            title="Unfinished chores today",
            body=lambda names: f"You have {len(names)} unfinished chore(s): {', '.join(names)}",
        )
        await _deliver_all(db, sender=sender, notifications=notifications)

        logger.info("Sent not-completed reminders to %d members", len(tasks_by_member))
        return len(tasks_by_member)


async def send_tomorrow_notifications(
    db: Database,
    *,
    sender: NotificationSender,
    today: date,
) -> int:
    """Preview tomorrow's non-daily chores (weekly, monthly and one-time).

    Family chores go to every member, personal chores to their owner.

    Returns:
        Number of members that were sent a preview
    """
    tomorrow = today + timedelta(days=1)
    with span("scheduler_jobs.send_tomorrow_notifications"):
        async with db.session() as session:
            definitions = await task_definition_repository.list_active(session)
            upcoming = [d for d in definitions if not is_daily(d.schedule) and falls_on(d.schedule, tomorrow)]
            if not upcoming:
                logger.info("No non-daily chores on %s", tomorrow.isoformat())
                return 0

            members = await member_repository.list_members(session)

        tasks_by_member: dict[UUID, list[str]] = defaultdict(list)
        for definition in upcoming:
            if definition.scope == TaskScope.PERSONAL and definition.owner_id is not None:
                tasks_by_member[definition.owner_id].append(definition.name)
            else:
                for member in members:
                    tasks_by_member[member.id].append(definition.name)

        notifications = _per_member(
            tasks_by_member,
            title="Chores for tomorrow",
            body=lambda names: f"Tomorrow: {', '.join(names)}",
        )
        await _deliver_all(db, sender=sender, notifications=notifications)

        logger.info("Sent tomorrow previews to %d members", len(tasks_by_member))
        return len(tasks_by_member)


def overdue_reminder_key(execution_id: UUID) -> UUID:
    """Deterministic dedup id so each execution is reminded at most once."""
    return uuid5(NAMESPACE_URL, f"hearth:overdue-reminder:{execution_id}")


async def send_overdue_reminders(
    db: Database,
    *,
    sender: NotificationSender,
    now: datetime,
) -> int:
    """Remind assignees of IN_PROGRESS executions running past their estimated duration.

    Reminders are claimed in the dedup store and committed before any push goes out.

    Returns:
        Number of reminders sent
    """
    with span("scheduler_jobs.send_overdue_reminders"):
        notifications: list[Notification] = []
        async with db.transaction() as session:
            for execution in await task_execution_repository.list_in_progress(session):
                due_at = execution.started_at + timedelta(minutes=execution.snapshot.duration_minutes)
                if due_at > now:
                    continue

                key = overdue_reminder_key(execution.id)
                if await processed_event_repository.exists(session, key):
                    continue

                await processed_event_repository.save(session, event_id=key, event_type=OVERDUE_REMINDER_EVENT_TYPE)
                notifications.append(
                    Notification(
                        member_ids=(execution.assignee_id,),
                        title="Still working on it?",
                        body=f"\"{execution.snapshot.name}\" was expected to take "
                        f"{execution.snapshot.duration_minutes} minutes.",
                    )
                )

        await _deliver_all(db, sender=sender, notifications=notifications)

        if notifications:
            logger.info("Sent %d overdue reminders", len(notifications))
        return len(notifications)
