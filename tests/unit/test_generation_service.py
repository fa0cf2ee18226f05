"""Tests for daily task generation."""

from datetime import date

import pytest

from hearth.domain.enums import TaskScope
from hearth.domain.schedule import DailyPattern, MonthlyPattern, OneTimeSchedule, RecurringSchedule
from hearth.repositories import task_execution_repository
from hearth.services import generation_service, task_definition_service
from tests.unit.helpers import MONDAY, SATURDAY, TUESDAY, create_definition, weekly_on


async def _executions(db, definition_id):
    async with db.session() as session:
        return await task_execution_repository.list_for_definition(session, definition_id)


@pytest.mark.unit
class TestRunGeneration:
    """Tests for run_generation."""

    async def test_generates_matching_definitions_only(self, db, dispatcher):
        daily = await create_definition(db, dispatcher, name="Dishes")
        weekly_tuesday = await create_definition(db, dispatcher, name="Trash", schedule=weekly_on(1))
        monthly = await create_definition(
            db,
            dispatcher,
            name="Filters",
            schedule=RecurringSchedule(pattern=MonthlyPattern(day_of_month=1), start_date=MONDAY),
        )

        created = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        assert len(created) == 2
        assert len(await _executions(db, daily.id)) == 1
        assert await _executions(db, weekly_tuesday.id) == []
        assert len(await _executions(db, monthly.id)) == 1

    async def test_generation_is_idempotent(self, db, dispatcher):
        definition = await create_definition(db, dispatcher)

        first = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)
        second = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        assert len(first) == 1
        assert second == []
        assert len(await _executions(db, definition.id)) == 1

    async def test_separate_dates_get_separate_executions(self, db, dispatcher):
        definition = await create_definition(db, dispatcher)

        await generation_service.run_generation(db, dispatcher, target_date=MONDAY)
        await generation_service.run_generation(db, dispatcher, target_date=TUESDAY)

        executions = await _executions(db, definition.id)
        assert [execution.scheduled_date for execution in executions] == [MONDAY, TUESDAY]

    async def test_skip_weekends_generates_nothing_on_saturday(self, db, dispatcher):
        await create_definition(
            db,
            dispatcher,
            schedule=RecurringSchedule(pattern=DailyPattern(skip_weekends=True), start_date=MONDAY),
        )

        assert await generation_service.run_generation(db, dispatcher, target_date=SATURDAY) == []

    async def test_personal_execution_assigned_to_owner(self, db, dispatcher, members):
        owner = members["bob"]
        definition = await create_definition(db, dispatcher, scope=TaskScope.PERSONAL, owner_id=owner.id)

        await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        (execution,) = await _executions(db, definition.id)
        assert execution.assignee_id == owner.id

    async def test_deleted_definitions_are_skipped(self, db, dispatcher, members):
        definition = await create_definition(db, dispatcher)
        await task_definition_service.delete_task_definition(
            db, dispatcher, definition_id=definition.id, actor_id=members["alice"].id
        )

        assert await generation_service.run_generation(db, dispatcher, target_date=MONDAY) == []

    async def test_one_time_definitions_are_not_generated(self, db, dispatcher):
        definition = await create_definition(db, dispatcher, schedule=OneTimeSchedule(deadline=MONDAY))

        created = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        assert created == []
        assert len(await _executions(db, definition.id)) == 1

    async def test_outside_date_range_generates_nothing(self, db, dispatcher):
        await create_definition(
            db,
            dispatcher,
            schedule=RecurringSchedule(pattern=DailyPattern(), start_date=MONDAY, end_date=date(2024, 1, 3)),
        )

        assert await generation_service.run_generation(db, dispatcher, target_date=date(2024, 1, 4)) == []

    async def test_lost_insert_race_counts_as_generated(self, db, dispatcher, monkeypatch):
        """An insert rejected by the unique index is skipped, not raised."""
        definition = await create_definition(db, dispatcher)
        await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        async def never_exists(*_args, **_kwargs):
            return False

        monkeypatch.setattr(task_execution_repository, "exists_for", never_exists)

        created = await generation_service.run_generation(db, dispatcher, target_date=MONDAY)

        assert created == []
        assert len(await _executions(db, definition.id)) == 1
