"""Service layer for task execution lifecycle actions."""

import logging
from uuid import UUID

from hearth.core.db_client import Database
from hearth.core.dispatcher import EventDispatcher
from hearth.core.logging import span
from hearth.domain import task_execution as transitions
from hearth.domain.enums import CancellationReason
from hearth.domain.task_definition import TaskDefinition, delete_task_definition
from hearth.domain.task_execution import AnyTaskExecution
from hearth.repositories import task_definition_repository, task_execution_repository


logger = logging.getLogger(__name__)


def _ensure_can_act(definition: TaskDefinition, actor_id: UUID) -> None:
    if not definition.can_be_changed_by(actor_id):
        msg = f"Permission denied: task {definition.id} is a personal task of another member"
        raise PermissionError(msg)


async def start_execution(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    execution_id: UUID,
    actor_id: UUID,
) -> AnyTaskExecution:
    """Start a NOT_STARTED execution; the actor becomes the assignee.

    Raises:
        NotFoundError: If the execution or its definition does not exist
        PermissionError: If the actor may not work on a PERSONAL task
        InvalidStateTransitionError: If the execution is not NOT_STARTED
        DeletedDefinitionError: If the definition was deleted
    """
    with span("task_execution_service.start_execution"):
        async with db.transaction() as session:
            execution = await task_execution_repository.get(session, execution_id)
            definition = await task_definition_repository.get(session, execution.task_definition_id)
            _ensure_can_act(definition, actor_id)

            change = transitions.start(execution, assignee_id=actor_id, definition=definition)
            await task_execution_repository.save(session, change.new_state)
            await dispatcher.dispatch(change.event, session=session)

        logger.info("Started task execution %s by %s", execution_id, actor_id)
        return change.new_state


async def complete_execution(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    execution_id: UUID,
    actor_id: UUID,
) -> AnyTaskExecution:
    """Complete an IN_PROGRESS execution.

    Completing the execution of a one-time task also deletes its definition in
    the same transaction, since nothing is left to do for it.

    Raises:
        NotFoundError: If the execution or its definition does not exist
        PermissionError: If the actor may not work on a PERSONAL task
        InvalidStateTransitionError: If the execution is not IN_PROGRESS
        DeletedDefinitionError: If the definition was deleted
    """
    with span("task_execution_service.complete_execution"):
        async with db.transaction() as session:
            execution = await task_execution_repository.get(session, execution_id)
            definition = await task_definition_repository.get(session, execution.task_definition_id)
            _ensure_can_act(definition, actor_id)

            change = transitions.complete(
                execution,
                completed_by=actor_id,
                definition_deleted=definition.is_deleted,
            )
            await task_execution_repository.save(session, change.new_state)
            await dispatcher.dispatch(change.event, session=session)

            if definition.is_one_time:
                deleted, deleted_event = delete_task_definition(definition)
                await task_definition_repository.save(session, deleted)
                await dispatcher.dispatch(deleted_event, session=session)
                logger.info("Deleted one-time task definition %s after completion", definition.id)

        logger.info("Completed task execution %s by %s", execution_id, actor_id)
        return change.new_state


async def cancel_execution(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    execution_id: UUID,
    actor_id: UUID,
) -> AnyTaskExecution:
    """Cancel an open execution on behalf of a member.

    Allowed whether or not the definition has been deleted.

    Raises:
        NotFoundError: If the execution or its definition does not exist
        PermissionError: If the actor may not work on a PERSONAL task
        InvalidStateTransitionError: If the execution is COMPLETED or CANCELLED
    """
    with span("task_execution_service.cancel_execution"):
        async with db.transaction() as session:
            execution = await task_execution_repository.get(session, execution_id)
            definition = await task_definition_repository.get(session, execution.task_definition_id)
            _ensure_can_act(definition, actor_id)

            change = transitions.cancel(execution, reason=CancellationReason.USER)
            await task_execution_repository.save(session, change.new_state)
            await dispatcher.dispatch(change.event, session=session)

        logger.info("Cancelled task execution %s by %s", execution_id, actor_id)
        return change.new_state


async def assign_execution(
    db: Database,
    dispatcher: EventDispatcher,
    *,
    execution_id: UUID,
    actor_id: UUID,
    assignee_id: UUID | None,
) -> AnyTaskExecution:
    """Reassign an open execution (None unassigns a NOT_STARTED one)."""
    with span("task_execution_service.assign_execution"):
        async with db.transaction() as session:
            execution = await task_execution_repository.get(session, execution_id)
            definition = await task_definition_repository.get(session, execution.task_definition_id)
            _ensure_can_act(definition, actor_id)

            change = transitions.assign(execution, assignee_id=assignee_id)
            await task_execution_repository.save(session, change.new_state)
            await dispatcher.dispatch(change.event, session=session)

        logger.info("Assigned task execution %s to %s", execution_id, assignee_id)
        return change.new_state


async def get_execution(db: Database, *, execution_id: UUID) -> AnyTaskExecution:
    """Load a task execution by id."""
    async with db.session() as session:
        return await task_execution_repository.get(session, execution_id)
