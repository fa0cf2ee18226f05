"""Task definition aggregate: what a chore is and when it recurs."""

from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hearth.core.config import Constants
from hearth.core.errors import DeletedDefinitionError
from hearth.domain.enums import TaskScope
from hearth.domain.events import TaskDefinitionCreated, TaskDefinitionDeleted, TaskDefinitionUpdated
from hearth.domain.schedule import OneTimeSchedule, RecurringSchedule, TaskSchedule


class TaskDefinition(BaseModel):
    """Task definition aggregate."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique task definition ID")
    name: str = Field(..., description="Task name")
    description: str = Field(default="", description="Detailed task description")
    duration_minutes: int = Field(
        ...,
        ge=Constants.MIN_DURATION_MINUTES,
        le=Constants.MAX_DURATION_MINUTES,
        description="Estimated duration in minutes",
    )
    points: int = Field(
        default=0,
        ge=0,
        le=Constants.MAX_TASK_POINTS,
        description="Points earned by completing an execution",
    )
    scope: TaskScope = Field(..., description="FAMILY or PERSONAL")
    owner_id: UUID | None = Field(default=None, description="Owning member, required for PERSONAL tasks")
    schedule: TaskSchedule
    version: int = Field(default=1, ge=1, description="Incremented on every update")
    is_deleted: bool = Field(default=False, description="Logical delete flag")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            msg = "Task name must not be blank"
            raise ValueError(msg)
        return stripped

    @model_validator(mode="after")
    def _check_owner(self) -> "TaskDefinition":
        if self.scope == TaskScope.PERSONAL and self.owner_id is None:
            msg = "PERSONAL tasks require an owner"
            raise ValueError(msg)
        if self.scope == TaskScope.FAMILY and self.owner_id is not None:
            msg = "FAMILY tasks cannot have an owner"
            raise ValueError(msg)
        return self

    @property
    def is_one_time(self) -> bool:
        return isinstance(self.schedule, OneTimeSchedule)

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.schedule, RecurringSchedule)

    def can_be_changed_by(self, member_id: UUID) -> bool:
        """Personal tasks are owner-only; family tasks are open to every member."""
        if self.scope == TaskScope.PERSONAL:
            return self.owner_id == member_id
        return True

    def default_assignee(self) -> UUID | None:
        """Executions of personal tasks go to the owner, family tasks start unassigned."""
        return self.owner_id if self.scope == TaskScope.PERSONAL else None


def create_task_definition(
    *,
    name: str,
    duration_minutes: int,
    scope: TaskScope,
    schedule: OneTimeSchedule | RecurringSchedule,
    description: str = "",
    points: int = 0,
    owner_id: UUID | None = None,
    definition_id: UUID | None = None,
) -> tuple[TaskDefinition, TaskDefinitionCreated]:
    """Build a new definition at version 1 together with its creation event.

    Raises:
        pydantic.ValidationError: If any field violates the definition invariants
    """
    definition = TaskDefinition(
        id=definition_id or uuid4(),
        name=name,
        description=description,
        duration_minutes=duration_minutes,
        points=points,
        scope=scope,
        owner_id=owner_id,
        schedule=schedule,
    )
    event = TaskDefinitionCreated(
        task_definition_id=definition.id,
        name=definition.name,
        scope=definition.scope,
        owner_id=definition.owner_id,
    )
    return definition, event


def update_task_definition(
    definition: TaskDefinition,
    *,
    name: str | None = None,
    description: str | None = None,
    duration_minutes: int | None = None,
    points: int | None = None,
    schedule: OneTimeSchedule | RecurringSchedule | None = None,
) -> tuple[TaskDefinition, TaskDefinitionUpdated]:
    """Apply field changes and bump the version.

    Scope and owner are fixed at creation.

    Raises:
        DeletedDefinitionError: If the definition is already deleted
        pydantic.ValidationError: If the changed fields violate the invariants
    """
    if definition.is_deleted:
        msg = f"Cannot update: task definition {definition.id} is deleted"
        raise DeletedDefinitionError(msg)

    data = definition.model_dump()
    changes = {
        "name": name,
        "description": description,
        "duration_minutes": duration_minutes,
        "points": points,
        "schedule": schedule,
    }
    data.update({key: value for key, value in changes.items() if value is not None})
    data["version"] = definition.version + 1

    # Re-validate so invariants hold on the new state
    updated = TaskDefinition.model_validate(data)
    return updated, TaskDefinitionUpdated(task_definition_id=updated.id, version=updated.version)


def delete_task_definition(definition: TaskDefinition) -> tuple[TaskDefinition, TaskDefinitionDeleted]:
    """Mark the definition deleted; the deletion event drives the cascade.

    Raises:
        DeletedDefinitionError: If the definition is already deleted
    """
    if definition.is_deleted:
        msg = f"Cannot delete: task definition {definition.id} is already deleted"
        raise DeletedDefinitionError(msg)

    deleted = definition.model_copy(update={"is_deleted": True})
    return deleted, TaskDefinitionDeleted(task_definition_id=deleted.id, name=deleted.name)
