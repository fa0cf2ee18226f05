"""Tests for scheduled reminder and generation jobs."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from hearth.domain.enums import TaskScope
from hearth.domain.member import Member
from hearth.domain.schedule import MonthlyPattern, OneTimeSchedule, RecurringSchedule
from hearth.repositories import member_repository
from hearth.services import generation_service, task_execution_service
from hearth.services.scheduler_jobs import (
    overdue_reminder_key,
    run_daily_generation,
    send_daily_not_completed_notifications,
    send_overdue_reminders,
    send_tomorrow_notifications,
)
from tests.unit.helpers import MONDAY, TUESDAY, RecordingSender, create_definition, weekly_on


@pytest.mark.unit
class TestDailyGenerationJob:
    """Tests for run_daily_generation."""

    async def test_generates_for_today(self, db, dispatcher):
        await create_definition(db, dispatcher)

        created = await run_daily_generation(db, dispatcher, today=MONDAY)

        assert len(created) == 1


@pytest.mark.unit
class TestDailyNotCompletedNotifications:
    """Tests for send_daily_not_completed_notifications."""

    async def test_unassigned_family_task_goes_to_everyone(self, db, dispatcher, members, sender):
        await create_definition(db, dispatcher, name="Dishes")
        await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        notified = await send_daily_not_completed_notifications(db, sender=sender, today=MONDAY)

        assert notified == 3
        assert sorted(sender.recipients) == sorted(member.id for member in members.values())
        _, title, body = sender.sent[0]
        assert title == "Unfinished chores today"
        assert "Dishes" in body

    async def test_assigned_task_goes_to_assignee_only(self, db, dispatcher, members, sender):
        await create_definition(db, dispatcher, name="Stretch", scope=TaskScope.PERSONAL, owner_id=members["bob"].id)
        await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        notified = await send_daily_not_completed_notifications(db, sender=sender, today=MONDAY)

        assert notified == 1
        assert sender.recipients == [members["bob"].id]

    async def test_completed_tasks_are_not_reminded(self, db, dispatcher, members, sender):
        await create_definition(db, dispatcher)
        (execution_id,) = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)
        actor = members["alice"].id
        await task_execution_service.start_execution(db, dispatcher, execution_id=execution_id, actor_id=actor)
        await task_execution_service.complete_execution(db, dispatcher, execution_id=execution_id, actor_id=actor)

        notified = await send_daily_not_completed_notifications(db, sender=sender, today=MONDAY)

        assert notified == 0
        assert sender.sent == []


@pytest.mark.unit
class TestTomorrowNotifications:
    """Tests for send_tomorrow_notifications."""

    async def test_daily_tasks_are_not_previewed(self, db, dispatcher, members, sender):
        await create_definition(db, dispatcher)

        assert await send_tomorrow_notifications(db, sender=sender, today=MONDAY) == 0
        assert sender.sent == []

    async def test_weekly_family_task_previewed_to_everyone(self, db, dispatcher, members, sender):
        await create_definition(db, dispatcher, name="Trash", schedule=weekly_on(TUESDAY.weekday()))

        notified = await send_tomorrow_notifications(db, sender=sender, today=MONDAY)

        assert notified == 3
        _, title, body = sender.sent[0]
        assert title == "Chores for tomorrow"
        assert "Trash" in body

    async def test_personal_one_time_task_previewed_to_owner(self, db, dispatcher, members, sender):
        owner = members["carol"].id
        await create_definition(
            db,
            dispatcher,
            name="Dentist",
            scope=TaskScope.PERSONAL,
            owner_id=owner,
            schedule=OneTimeSchedule(deadline=TUESDAY),
        )

        notified = await send_tomorrow_notifications(db, sender=sender, today=MONDAY)

        assert notified == 1
        assert sender.recipients == [owner]

    async def test_monthly_task_on_other_day_is_skipped(self, db, dispatcher, members, sender):
        await create_definition(
            db,
            dispatcher,
            schedule=RecurringSchedule(pattern=MonthlyPattern(day_of_month=15), start_date=MONDAY),
        )

        assert await send_tomorrow_notifications(db, sender=sender, today=MONDAY) == 0


@pytest.mark.unit
class TestOverdueReminders:
    """Tests for send_overdue_reminders."""

    async def _start(self, db, dispatcher, actor_id):
        await create_definition(db, dispatcher, duration_minutes=30)
        (execution_id,) = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)
        return await task_execution_service.start_execution(
            db, dispatcher, execution_id=execution_id, actor_id=actor_id
        )

    async def test_not_yet_due(self, db, dispatcher, members, sender):
        execution = await self._start(db, dispatcher, members["alice"].id)

        sent = await send_overdue_reminders(db, sender=sender, now=execution.started_at + timedelta(minutes=10))

        assert sent == 0

    async def test_overdue_reminded_once(self, db, dispatcher, members, sender):
        execution = await self._start(db, dispatcher, members["alice"].id)
        later = execution.started_at + timedelta(minutes=45)

        first = await send_overdue_reminders(db, sender=sender, now=later)
        second = await send_overdue_reminders(db, sender=sender, now=later + timedelta(minutes=30))

        assert first == 1
        assert second == 0
        assert sender.recipients == [members["alice"].id]

    def test_reminder_key_is_stable(self):
        execution_id = uuid4()

        assert overdue_reminder_key(execution_id) == overdue_reminder_key(execution_id)
        assert overdue_reminder_key(execution_id) != overdue_reminder_key(uuid4())

    async def test_no_in_progress_executions(self, db, sender):
        assert await send_overdue_reminders(db, sender=sender, now=datetime.now(UTC)) == 0



class WritingSender(RecordingSender):
    """Sender that commits an unrelated write while each push is in flight."""

    def __init__(self, db) -> None:
        super().__init__()
        self.db = db

    async def send(self, *, subscription, title, body):
        async with self.db.transaction() as session:
            await member_repository.add_member(session, Member(name=f"Guest of {subscription.endpoint}"))
        return await super().send(subscription=subscription, title=title, body=body)


@pytest.mark.unit
class TestRemindersHoldNoWriteLock:
    """Tests that reminder pushes leave the database free for writes."""

    async def test_overdue_reminder_push(self, db, dispatcher, members):
        await create_definition(db, dispatcher, duration_minutes=30)
        (execution_id,) = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)
        execution = await task_execution_service.start_execution(
            db, dispatcher, execution_id=execution_id, actor_id=members["alice"].id
        )
        writing_sender = WritingSender(db)

        sent = await send_overdue_reminders(
            db, sender=writing_sender, now=execution.started_at + timedelta(minutes=45)
        )

        assert sent == 1
        assert writing_sender.recipients == [members["alice"].id]

    async def test_not_completed_push(self, db, dispatcher, members):
        await create_definition(db, dispatcher)
        await generation_service.run_generation(db, dispatcher, target_date=MONDAY)
        writing_sender = WritingSender(db)

        notified = await send_daily_not_completed_notifications(db, sender=writing_sender, today=MONDAY)

        assert notified == 3
        async with db.session() as session:
            assert len(await member_repository.list_members(session)) == 6
