"""Task execution state machine.

An execution is one occurrence of a task definition on a scheduled date. Its
status is a tagged union; each transition is a pure function that returns the
new state together with the event describing it and never touches storage.

    NOT_STARTED --start--> IN_PROGRESS --complete--> COMPLETED
         |                      |
         +-------cancel---------+-----cancel-------> CANCELLED
"""

from datetime import UTC, date, datetime
from typing import Annotated, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from hearth.core.errors import DeletedDefinitionError, InvalidStateTransitionError
from hearth.domain.enums import CancellationReason, ExecutionStatus
from hearth.domain.events import (
    TaskExecutionAssigned,
    TaskExecutionCancelled,
    TaskExecutionCompleted,
    TaskExecutionCreated,
    TaskExecutionEvent,
    TaskExecutionStarted,
)
from hearth.domain.task_definition import TaskDefinition


class TaskSnapshot(BaseModel):
    """Definition details frozen at the moment work started."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    duration_minutes: int
    points: int = 0
    definition_version: int
    captured_at: datetime

    @classmethod
    def capture(cls, definition: TaskDefinition, *, captured_at: datetime) -> "TaskSnapshot":
        return cls(
            name=definition.name,
            description=definition.description,
            duration_minutes=definition.duration_minutes,
            points=definition.points,
            definition_version=definition.version,
            captured_at=captured_at,
        )


class _ExecutionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique task execution ID")
    task_definition_id: UUID = Field(..., description="Definition this execution belongs to")
    scheduled_date: date = Field(..., description="Date the execution is scheduled for")

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.CANCELLED)  # type: ignore[attr-defined]


class NotStarted(_ExecutionBase):
    status: Literal["NOT_STARTED"] = "NOT_STARTED"
    assignee_id: UUID | None = None


class InProgress(_ExecutionBase):
    status: Literal["IN_PROGRESS"] = "IN_PROGRESS"
    assignee_id: UUID
    snapshot: TaskSnapshot
    started_at: datetime


class Completed(_ExecutionBase):
    status: Literal["COMPLETED"] = "COMPLETED"
    assignee_id: UUID
    snapshot: TaskSnapshot
    started_at: datetime
    completed_at: datetime
    completed_by: UUID
    earned_points: int = Field(default=0, ge=0, description="Points credited to the assignee")

    @model_validator(mode="after")
    def _completed_after_start(self) -> "Completed":
        if self.completed_at <= self.started_at:
            msg = f"completed_at {self.completed_at} must be after started_at {self.started_at}"
            raise ValueError(msg)
        return self


class Cancelled(_ExecutionBase):
    status: Literal["CANCELLED"] = "CANCELLED"
    assignee_id: UUID | None = None
    snapshot: TaskSnapshot | None = None
    started_at: datetime | None = None
    cancelled_at: datetime


TaskExecution = Annotated[NotStarted | InProgress | Completed | Cancelled, Field(discriminator="status")]

AnyTaskExecution = NotStarted | InProgress | Completed | Cancelled

task_execution_adapter: TypeAdapter[AnyTaskExecution] = TypeAdapter(TaskExecution)


class StateChange(BaseModel):
    """Result of a transition: the state to persist and the event to dispatch."""

    model_config = ConfigDict(frozen=True)

    new_state: TaskExecution
    event: TaskExecutionEvent


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


def _reject(execution: _ExecutionBase, action: str) -> InvalidStateTransitionError:
    status = getattr(execution, "status", "unknown")
    return InvalidStateTransitionError(f"Cannot {action}: task execution {execution.id} is {status}")


def create_execution(
    definition: TaskDefinition,
    *,
    scheduled_date: date,
    execution_id: UUID | None = None,
) -> StateChange:
    """Create a NOT_STARTED execution; personal tasks are assigned to their owner."""
    execution = NotStarted(
        id=execution_id or uuid4(),
        task_definition_id=definition.id,
        scheduled_date=scheduled_date,
        assignee_id=definition.default_assignee(),
    )
    event = TaskExecutionCreated(
        task_execution_id=execution.id,
        task_definition_id=definition.id,
        scheduled_date=scheduled_date,
        assignee_id=execution.assignee_id,
    )
    return StateChange(new_state=execution, event=event)


def start(
    execution: AnyTaskExecution,
    *,
    assignee_id: UUID,
    definition: TaskDefinition,
    now: datetime | None = None,
) -> StateChange:
    """Start work on a NOT_STARTED execution, capturing a snapshot of the definition.

    Raises:
        InvalidStateTransitionError: If the execution is not NOT_STARTED
        DeletedDefinitionError: If the definition has been deleted
    """
    if not isinstance(execution, NotStarted):
        raise _reject(execution, "start")
    if definition.is_deleted:
        msg = f"Cannot start: task definition {definition.id} is deleted"
        raise DeletedDefinitionError(msg)

    started_at = _now(now)
    in_progress = InProgress(
        id=execution.id,
        task_definition_id=execution.task_definition_id,
        scheduled_date=execution.scheduled_date,
        assignee_id=assignee_id,
        snapshot=TaskSnapshot.capture(definition, captured_at=started_at),
        started_at=started_at,
    )
    event = TaskExecutionStarted(
        task_execution_id=execution.id,
        task_definition_id=execution.task_definition_id,
        assignee_id=assignee_id,
        task_name=definition.name,
        occurred_at=started_at,
    )
    return StateChange(new_state=in_progress, event=event)


def complete(
    execution: AnyTaskExecution,
    *,
    completed_by: UUID,
    definition_deleted: bool,
    now: datetime | None = None,
) -> StateChange:
    """Complete an IN_PROGRESS execution.

    Raises:
        InvalidStateTransitionError: If the execution is not IN_PROGRESS
        DeletedDefinitionError: If the definition has been deleted
        InvalidStateTransitionError: If completion is not strictly after the start
    """
    if not isinstance(execution, InProgress):
        raise _reject(execution, "complete")
    if definition_deleted:
        msg = f"Cannot complete: task definition {execution.task_definition_id} is deleted"
        raise DeletedDefinitionError(msg)

    completed_at = _now(now)
    if completed_at <= execution.started_at:
        msg = f"Cannot complete task execution {execution.id}: completed_at {completed_at} is not after started_at"
        raise InvalidStateTransitionError(msg)

    completed = Completed(
        id=execution.id,
        task_definition_id=execution.task_definition_id,
        scheduled_date=execution.scheduled_date,
        assignee_id=execution.assignee_id,
        snapshot=execution.snapshot,
        started_at=execution.started_at,
        completed_at=completed_at,
        completed_by=completed_by,
        earned_points=execution.snapshot.points,
    )
    event = TaskExecutionCompleted(
        task_execution_id=execution.id,
        task_definition_id=execution.task_definition_id,
        completed_by=completed_by,
        task_name=execution.snapshot.name,
        occurred_at=completed_at,
    )
    return StateChange(new_state=completed, event=event)


def cancel(
    execution: AnyTaskExecution,
    *,
    reason: CancellationReason = CancellationReason.USER,
    now: datetime | None = None,
) -> StateChange:
    """Cancel an open execution. Used both by members and by the deletion cascade.

    Raises:
        InvalidStateTransitionError: If the execution is already COMPLETED or CANCELLED
    """
    cancelled_at = _now(now)
    match execution:
        case NotStarted():
            cancelled = Cancelled(
                id=execution.id,
                task_definition_id=execution.task_definition_id,
                scheduled_date=execution.scheduled_date,
                assignee_id=execution.assignee_id,
                cancelled_at=cancelled_at,
            )
        case InProgress():
            cancelled = Cancelled(
                id=execution.id,
                task_definition_id=execution.task_definition_id,
                scheduled_date=execution.scheduled_date,
                assignee_id=execution.assignee_id,
                snapshot=execution.snapshot,
                started_at=execution.started_at,
                cancelled_at=cancelled_at,
            )
        case _:
            raise _reject(execution, "cancel")

    event = TaskExecutionCancelled(
        task_execution_id=execution.id,
        task_definition_id=execution.task_definition_id,
        reason=reason,
        occurred_at=cancelled_at,
    )
    return StateChange(new_state=cancelled, event=event)


def assign(
    execution: AnyTaskExecution,
    *,
    assignee_id: UUID | None,
) -> StateChange:
    """Change the assignee of an open execution.

    NOT_STARTED executions may be unassigned (assignee_id=None); IN_PROGRESS
    executions always keep an assignee.

    Raises:
        InvalidStateTransitionError: If the execution is terminal, or an
            IN_PROGRESS execution would lose its assignee
    """
    match execution:
        case NotStarted():
            reassigned = execution.model_copy(update={"assignee_id": assignee_id})
        case InProgress():
            if assignee_id is None:
                msg = f"Cannot unassign: task execution {execution.id} is IN_PROGRESS"
                raise InvalidStateTransitionError(msg)
            reassigned = execution.model_copy(update={"assignee_id": assignee_id})
        case _:
            raise _reject(execution, "assign")

    event = TaskExecutionAssigned(
        task_execution_id=execution.id,
        task_definition_id=execution.task_definition_id,
        assignee_id=assignee_id,
    )
    return StateChange(new_state=reassigned, event=event)
