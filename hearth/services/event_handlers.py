"""Handlers that react to domain events inside the originating transaction."""

import logging
from functools import partial

from hearth.core.db_client import Session
from hearth.core.dispatcher import EventDispatcher
from hearth.core.outbox import OutboxRecord
from hearth.domain.events import (
    DomainEvent,
    TaskDefinitionCreated,
    TaskDefinitionDeleted,
    TaskExecutionCompleted,
    TaskExecutionStarted,
)
from hearth.domain.schedule import OneTimeSchedule
from hearth.domain.task_execution import create_execution
from hearth.repositories import outbox_repository, task_definition_repository, task_execution_repository


logger = logging.getLogger(__name__)

# Events whose side effects run later through the outbox
OUTBOX_EVENT_TYPES: tuple[type[DomainEvent], ...] = (
    TaskDefinitionDeleted,
    TaskExecutionStarted,
    TaskExecutionCompleted,
)


async def log_event(event: DomainEvent, _session: Session) -> None:
    logger.info(
        "Domain event",
        extra={
            "event_type": event.event_type(),
            "event_id": str(event.event_id),
            "aggregate_id": str(event.aggregate_id),
        },
    )


async def create_one_time_execution(
    event: DomainEvent,
    session: Session,
    *,
    dispatcher: EventDispatcher,
) -> None:
    """Create the single execution of a one-time definition on its deadline."""
    if not isinstance(event, TaskDefinitionCreated):
        return

    definition = await task_definition_repository.get(session, event.task_definition_id)
    if not isinstance(definition.schedule, OneTimeSchedule):
        return

    change = create_execution(definition, scheduled_date=definition.schedule.deadline)
    await task_execution_repository.add(session, change.new_state)
    logger.info(
        "Created one-time task execution",
        extra={"task_definition_id": str(definition.id), "task_execution_id": str(change.new_state.id)},
    )
    await dispatcher.dispatch(change.event, session=session)


async def enqueue_outbox(event: DomainEvent, session: Session, *, max_retries: int) -> None:
    """Persist the event to the outbox in the current transaction."""
    record = OutboxRecord.create(event, max_retries=max_retries)
    await outbox_repository.add(session, record)
    logger.debug(
        "Enqueued outbox record",
        extra={"outbox_id": str(record.id), "event_type": record.event_type, "event_id": str(event.event_id)},
    )


def register_handlers(dispatcher: EventDispatcher, *, max_retries: int) -> EventDispatcher:
    """Register every synchronous handler on the dispatcher and return it."""
    dispatcher.register(DomainEvent, log_event)
    dispatcher.register(TaskDefinitionCreated, partial(create_one_time_execution, dispatcher=dispatcher))
    for event_type in OUTBOX_EVENT_TYPES:
        dispatcher.register(event_type, partial(enqueue_outbox, max_retries=max_retries))
    return dispatcher
