"""Persistence of outbox records."""

from typing import Any
from uuid import UUID

from hearth.core.config import Constants
from hearth.core.db_client import RecordNotFoundError, Session
from hearth.core.errors import NotFoundError
from hearth.core.outbox import OutboxRecord, OutboxStatus


COLLECTION = "outbox"


def _to_record(record: OutboxRecord) -> dict[str, Any]:
    data = record.model_dump(mode="json")
    # Fixed-width timestamps keep created_at ordering lexicographic
    data["created_at"] = record.created_at.isoformat(timespec="microseconds")
    if record.processed_at is not None:
        data["processed_at"] = record.processed_at.isoformat(timespec="microseconds")
    return data


async def add(session: Session, record: OutboxRecord) -> None:
    await session.create_record(collection=COLLECTION, data=_to_record(record))


async def get(session: Session, record_id: UUID) -> OutboxRecord:
    try:
        data = await session.get_record(collection=COLLECTION, record_id=record_id)
    except RecordNotFoundError as e:
        msg = f"Outbox record not found: {record_id}"
        raise NotFoundError(msg) from e
    return OutboxRecord.model_validate(data)


async def save(session: Session, record: OutboxRecord) -> None:
    data = _to_record(record)
    data.pop("id")
    await session.update_record(collection=COLLECTION, record_id=record.id, data=data)


async def find_pending(session: Session, *, limit: int) -> list[OutboxRecord]:
    """Oldest PENDING records first; FAILED and PROCESSED records are never returned."""
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=f'status = "{OutboxStatus.PENDING}"',
        sort="created_at ASC",
        per_page=limit,
    )
    return [OutboxRecord.model_validate(record) for record in records]


async def list_failed(session: Session) -> list[OutboxRecord]:
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=f'status = "{OutboxStatus.FAILED}"',
        sort="created_at ASC",
        per_page=Constants.MAX_LIST_LIMIT,
    )
    return [OutboxRecord.model_validate(record) for record in records]
