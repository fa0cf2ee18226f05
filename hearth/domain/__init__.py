"""Domain models, events and pure state transitions."""

from hearth.domain.enums import CancellationReason, ExecutionStatus, TaskScope
from hearth.domain.member import Member, PushSubscription
from hearth.domain.schedule import (
    DailyPattern,
    MonthlyPattern,
    OneTimeSchedule,
    RecurringSchedule,
    WeeklyPattern,
    should_occur,
)
from hearth.domain.task_definition import TaskDefinition
from hearth.domain.task_execution import (
    Cancelled,
    Completed,
    InProgress,
    NotStarted,
    StateChange,
    TaskSnapshot,
)


__all__ = [
    "CancellationReason",
    "Cancelled",
    "Completed",
    "DailyPattern",
    "ExecutionStatus",
    "InProgress",
    "Member",
    "MonthlyPattern",
    "NotStarted",
    "OneTimeSchedule",
    "PushSubscription",
    "RecurringSchedule",
    "StateChange",
    "TaskDefinition",
    "TaskScope",
    "TaskSnapshot",
    "WeeklyPattern",
    "should_occur",
]
