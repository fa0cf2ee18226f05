"""Daily task generation: materialize recurring definitions into executions."""

import logging
from datetime import date
from uuid import UUID

from hearth.core.db_client import Database, Session, UniqueConstraintError
from hearth.core.dispatcher import EventDispatcher
from hearth.core.logging import span
from hearth.domain.schedule import fires_on
from hearth.domain.task_execution import create_execution
from hearth.repositories import task_definition_repository, task_execution_repository


logger = logging.getLogger(__name__)


async def generate_for_date(
    session: Session,
    dispatcher: EventDispatcher,
    *,
    target_date: date,
) -> list[UUID]:
    """Create a NOT_STARTED execution for every recurring definition firing on the date.

    Idempotent: definitions that already have an execution on the date are
    skipped. The UNIQUE (definition, date) index is authoritative, so an insert
    that loses a race is treated as already generated.

    Args:
        session: Session of the caller's transaction
        dispatcher: Dispatcher receiving TaskExecutionCreated events
        target_date: Date to generate executions for

    Returns:
        Ids of the executions created by this call
    """
    created: list[UUID] = []
    definitions = await task_definition_repository.list_active(session)

    for definition in definitions:
        if not fires_on(definition.schedule, target_date):
            continue

        if await task_execution_repository.exists_for(
            session, task_definition_id=definition.id, scheduled_date=target_date
        ):
            continue

        change = create_execution(definition, scheduled_date=target_date)
        try:
            await task_execution_repository.add(session, change.new_state)
        except UniqueConstraintError:
            logger.info(
                "Execution already generated",
                extra={"task_definition_id": str(definition.id), "scheduled_date": target_date.isoformat()},
            )
            continue

        await dispatcher.dispatch(change.event, session=session)
        created.append(change.new_state.id)

    return created


async def run_generation(db: Database, dispatcher: EventDispatcher, *, target_date: date) -> list[UUID]:
    """Generate executions for a date inside one transaction."""
    with span("generation_service.run_generation"):
        async with db.transaction() as session:
            created = await generate_for_date(session, dispatcher, target_date=target_date)

        logger.info("Generated %d task executions for %s", len(created), target_date.isoformat())
        return created
