"""Service layer for creating, updating and deleting task definitions."""

import logging
from uuid import UUID

from hearth.core.db_client import Database
from hearth.core.dispatcher import EventDispatcher
from hearth.core.logging import span
from hearth.domain import task_definition as definitions
from hearth.domain.enums import TaskScope
from hearth.domain.schedule import OneTimeSchedule, RecurringSchedule
from hearth.domain.task_definition import TaskDefinition
from hearth.repositories import task_definition_repository


logger = logging.getLogger(__name__)


def _ensure_can_change(definition: TaskDefinition, actor_id: UUID) -> None:
    if not definition.can_be_changed_by(actor_id):
        msg = f"Permission denied: task definition {definition.id} belongs to another member"
        raise PermissionError(msg)


async def create_task_definition(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    name: str,
    duration_minutes: int,
    scope: TaskScope,
    schedule: OneTimeSchedule | RecurringSchedule,
    description: str = "",
    points: int = 0,
    owner_id: UUID | None = None,
) -> TaskDefinition:
    """Create a task definition.

    A one-time definition gets its single execution in the same transaction.
    Recurring definitions get executions from the daily generation run.

    Args:
        db: Database handle
        dispatcher: Synchronous event dispatcher
        name: Task name (non-blank)
        duration_minutes: Estimated duration (1-1440)
        scope: FAMILY or PERSONAL
        schedule: One-time or recurring schedule
        description: Optional description
        points: Points earned per completed execution
        owner_id: Owning member, required for PERSONAL tasks

    Returns:
        The persisted task definition
    """
    with span("task_definition_service.create_task_definition"):
        definition, event = definitions.create_task_definition(
            name=name,
            description=description,
            duration_minutes=duration_minutes,
            points=points,
            scope=scope,
            owner_id=owner_id,
            schedule=schedule,
        )

        async with db.transaction() as session:
            await task_definition_repository.add(session, definition)
            await dispatcher.dispatch(event, session=session)

        logger.info("Created task definition %s (%s)", definition.id, definition.name)
        return definition


async def update_task_definition(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    definition_id: UUID,
    actor_id: UUID,
    name: str | None = None,
    description: str | None = None,
    duration_minutes: int | None = None,
    points: int | None = None,
    schedule: OneTimeSchedule | RecurringSchedule | None = None,
) -> TaskDefinition:
    """Update a task definition and bump its version.

    Raises:
        NotFoundError: If the definition does not exist
        PermissionError: If a non-owner edits a PERSONAL definition
        DeletedDefinitionError: If the definition is deleted
    """
    with span("task_definition_service.update_task_definition"):
        async with db.transaction() as session:
            definition = await task_definition_repository.get(session, definition_id)
            _ensure_can_change(definition, actor_id)

            updated, event = definitions.update_task_definition(
                definition,
                name=name,
                description=description,
                duration_minutes=duration_minutes,
                points=points,
                schedule=schedule,
            )
            await task_definition_repository.save(session, updated)
            await dispatcher.dispatch(event, session=session)

        logger.info("Updated task definition %s to version %d", updated.id, updated.version)
        return updated


async def delete_task_definition(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    definition_id: UUID,
    actor_id: UUID,
) -> TaskDefinition:
    """Logically delete a task definition.

    Open executions are cancelled asynchronously by the outbox processor.

    Raises:
        NotFoundError: If the definition does not exist
        PermissionError: If a non-owner deletes a PERSONAL definition
        DeletedDefinitionError: If the definition is already deleted
    """
    with span("task_definition_service.delete_task_definition"):
        async with db.transaction() as session:
            definition = await task_definition_repository.get(session, definition_id)
            _ensure_can_change(definition, actor_id)

            deleted, event = definitions.delete_task_definition(definition)
            await task_definition_repository.save(session, deleted)
            await dispatcher.dispatch(event, session=session)

        logger.info("Deleted task definition %s", definition_id)
        return deleted


async def get_task_definition(db: Database, *, definition_id: UUID) -> TaskDefinition:
    """Load a task definition by id."""
    async with db.session() as session:
        return await task_definition_repository.get(session, definition_id)
