"""Shared test doubles and builders for unit tests."""

from datetime import date
from uuid import UUID

from hearth.core.db_client import Database
from hearth.core.dispatcher import EventDispatcher
from hearth.domain.enums import TaskScope
from hearth.domain.member import PushSubscription
from hearth.domain.schedule import DailyPattern, OneTimeSchedule, RecurringSchedule, WeeklyPattern
from hearth.domain.task_definition import TaskDefinition
from hearth.interface.notification_sender import SendResult
from hearth.services import task_definition_service


# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)
TUESDAY = date(2024, 1, 2)
SATURDAY = date(2024, 1, 6)


class RecordingSender:
    """Notification sender that records every send and returns scripted results."""

    def __init__(self) -> None:
        self.sent: list[tuple[PushSubscription, str, str]] = []
        self.results: dict[str, SendResult] = {}

    async def send(self, *, subscription: PushSubscription, title: str, body: str) -> SendResult:
        self.sent.append((subscription, title, body))
        return self.results.get(subscription.endpoint, SendResult.ok())

    @property
    def recipients(self) -> list[UUID]:
        return [subscription.member_id for subscription, _, _ in self.sent]


async def create_definition(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    name: str = "Dishes",
    scope: TaskScope = TaskScope.FAMILY,
    owner_id: UUID | None = None,
    schedule: OneTimeSchedule | RecurringSchedule | None = None,
    duration_minutes: int = 30,
    points: int = 0,
) -> TaskDefinition:
    """Create a task definition through the service, daily from MONDAY by default."""
    return await task_definition_service.create_task_definition(
        db,
        dispatcher,
        name=name,
        duration_minutes=duration_minutes,
        points=points,
        scope=scope,
        owner_id=owner_id,
        schedule=schedule or RecurringSchedule(pattern=DailyPattern(), start_date=MONDAY),
    )


def weekly_on(day_of_week: int, start_date: date = MONDAY) -> RecurringSchedule:
    return RecurringSchedule(pattern=WeeklyPattern(day_of_week=day_of_week), start_date=start_date)
