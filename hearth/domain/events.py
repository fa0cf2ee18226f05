"""Domain events emitted by task definitions and task executions.

Every event carries a stable ``event_id`` that survives serialization into the
outbox; consumers use it to deduplicate at-least-once deliveries.
"""

import json
from datetime import UTC, date, datetime
from typing import ClassVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from hearth.domain.enums import CancellationReason, TaskScope


class DomainEvent(BaseModel):
    """Base class for all domain events."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    aggregate_type: ClassVar[str] = "unknown"

    event_id: UUID = Field(default_factory=uuid4, description="Stable id used for deduplication")
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def event_type(cls) -> str:
        return cls.__name__

    @property
    def aggregate_id(self) -> UUID:
        raise NotImplementedError


class TaskDefinitionEvent(DomainEvent):
    aggregate_type: ClassVar[str] = "task_definition"

    task_definition_id: UUID

    @property
    def aggregate_id(self) -> UUID:
        return self.task_definition_id


class TaskDefinitionCreated(TaskDefinitionEvent):
    name: str
    scope: TaskScope
    owner_id: UUID | None = None


class TaskDefinitionUpdated(TaskDefinitionEvent):
    version: int


class TaskDefinitionDeleted(TaskDefinitionEvent):
    name: str = ""


class TaskExecutionEvent(DomainEvent):
    aggregate_type: ClassVar[str] = "task_execution"

    task_execution_id: UUID
    task_definition_id: UUID

    @property
    def aggregate_id(self) -> UUID:
        return self.task_execution_id


class TaskExecutionCreated(TaskExecutionEvent):
    scheduled_date: date
    assignee_id: UUID | None = None


class TaskExecutionStarted(TaskExecutionEvent):
    assignee_id: UUID
    task_name: str


class TaskExecutionCompleted(TaskExecutionEvent):
    completed_by: UUID
    task_name: str


class TaskExecutionCancelled(TaskExecutionEvent):
    reason: CancellationReason = CancellationReason.USER


class TaskExecutionAssigned(TaskExecutionEvent):
    assignee_id: UUID | None = None


EVENT_TYPES: dict[str, type[DomainEvent]] = {
    cls.event_type(): cls
    for cls in (
        TaskDefinitionCreated,
        TaskDefinitionUpdated,
        TaskDefinitionDeleted,
        TaskExecutionCreated,
        TaskExecutionStarted,
        TaskExecutionCompleted,
        TaskExecutionCancelled,
        TaskExecutionAssigned,
    )
}


def serialize_event(event: DomainEvent) -> str:
    """Serialize an event to its JSON payload (event_id included)."""
    return event.model_dump_json()


def deserialize_event(event_type: str, payload: str) -> DomainEvent:
    """Rebuild an event from its outbox payload.

    Unknown fields are ignored so older readers accept newer payloads.

    Raises:
        KeyError: If the event type is not known
        pydantic.ValidationError: If the payload does not match the event model
    """
    event_cls = EVENT_TYPES[event_type]
    return event_cls.model_validate_json(payload)


def extract_event_id(payload: str) -> UUID:
    """Read the event id from a serialized payload without decoding the full event."""
    data = json.loads(payload)
    raw_id = data.get("event_id") if isinstance(data, dict) else None
    if not raw_id:
        msg = "Event payload has no event_id"
        raise ValueError(msg)
    return UUID(str(raw_id))
