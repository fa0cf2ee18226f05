"""Deferred side effects applied by the outbox processor, keyed by event type.

An effect runs inside the record's transaction and returns the notifications to
push once that transaction has committed.
"""

import logging
from collections.abc import Awaitable, Callable
from functools import partial
from uuid import UUID

from hearth.core.db_client import Session
from hearth.core.dispatcher import EventDispatcher
from hearth.domain.enums import CancellationReason, TaskScope
from hearth.domain.events import (
    DomainEvent,
    TaskDefinitionDeleted,
    TaskExecutionCompleted,
    TaskExecutionStarted,
)
from hearth.domain.task_execution import cancel
from hearth.repositories import member_repository, task_definition_repository, task_execution_repository
from hearth.services.notification_service import Notification, family_notification


logger = logging.getLogger(__name__)

EffectHandler = Callable[[DomainEvent, Session], Awaitable[list[Notification]]]


async def cascade_cancel_executions(
    event: DomainEvent, session: Session, *, dispatcher: EventDispatcher
) -> list[Notification]:
    """Cancel every open execution of a deleted definition; terminal ones are left alone."""
    if not isinstance(event, TaskDefinitionDeleted):
        msg = f"Expected TaskDefinitionDeleted, got {event.event_type()}"
        raise TypeError(msg)

    executions = await task_execution_repository.list_for_definition(session, event.task_definition_id)
    cancelled = 0
    for execution in executions:
        if execution.is_terminal:
            continue
        change = cancel(execution, reason=CancellationReason.DEFINITION_DELETED)
        await task_execution_repository.save(session, change.new_state)
        await dispatcher.dispatch(change.event, session=session)
        cancelled += 1

    logger.info(
        "Cascade cancelled %d task executions",
        cancelled,
        extra={"task_definition_id": str(event.task_definition_id)},
    )
    return []


async def _family_task_progress(
    session: Session,
    *,
    event: TaskExecutionStarted | TaskExecutionCompleted,
    actor_id: UUID,
    verb: str,
) -> list[Notification]:
    definition = await task_definition_repository.get(session, event.task_definition_id)
    if definition.scope != TaskScope.FAMILY:
        return []

    try:
        actor = await member_repository.get_member(session, actor_id)
        actor_name = actor.name
    except KeyError:
        logger.warning("Member not found for task notification: %s", actor_id)
        actor_name = "Someone"

    notification = await family_notification(
        session,
        exclude_member_id=actor_id,
        title=f"{actor_name} {verb} a task",
        body=f"{actor_name} {verb} \"{event.task_name}\"",
    )
    return [notification] if notification is not None else []


async def notify_execution_started(event: DomainEvent, session: Session) -> list[Notification]:
    if not isinstance(event, TaskExecutionStarted):
        msg = f"Expected TaskExecutionStarted, got {event.event_type()}"
        raise TypeError(msg)
    return await _family_task_progress(session, event=event, actor_id=event.assignee_id, verb="started")


async def notify_execution_completed(event: DomainEvent, session: Session) -> list[Notification]:
    if not isinstance(event, TaskExecutionCompleted):
        msg = f"Expected TaskExecutionCompleted, got {event.event_type()}"
        raise TypeError(msg)
    return await _family_task_progress(session, event=event, actor_id=event.completed_by, verb="completed")


def build_effects(*, dispatcher: EventDispatcher) -> dict[str, EffectHandler]:
    """Map event type names to the effect applied when the outbox record is processed."""
    return {
        TaskDefinitionDeleted.event_type(): partial(cascade_cancel_executions, dispatcher=dispatcher),
        TaskExecutionStarted.event_type(): notify_execution_started,
        TaskExecutionCompleted.event_type(): notify_execution_completed,
    }
