"""Dedup store: ids of events whose effects have already been applied."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from hearth.core.db_client import RecordNotFoundError, Session, UniqueConstraintError


logger = logging.getLogger(__name__)

COLLECTION = "processed_events"


async def exists(session: Session, event_id: UUID) -> bool:
    try:
        await session.get_record(collection=COLLECTION, record_id=event_id)
    except RecordNotFoundError:
        return False
    return True


async def save(session: Session, *, event_id: UUID, event_type: str) -> None:
    """Record the event as processed; saving an id twice is a no-op."""
    try:
        await session.create_record(
            collection=COLLECTION,
            data={"id": str(event_id), "event_type": event_type, "processed_at": datetime.now(UTC)},
        )
    except UniqueConstraintError:
        logger.debug("Event already marked processed", extra={"event_id": str(event_id)})
