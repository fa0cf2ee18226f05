"""Persistence of task definitions."""

import json
import logging
from typing import Any
from uuid import UUID

from hearth.core.config import Constants
from hearth.core.db_client import RecordNotFoundError, Session
from hearth.core.errors import NotFoundError
from hearth.domain.task_definition import TaskDefinition


logger = logging.getLogger(__name__)

COLLECTION = "task_definitions"


def _to_record(definition: TaskDefinition) -> dict[str, Any]:
    data = definition.model_dump(mode="json")
    data["schedule"] = json.dumps(data["schedule"])
    return data


def _from_record(record: dict[str, Any]) -> TaskDefinition:
    return TaskDefinition.model_validate(
        {
            **record,
            "schedule": json.loads(record["schedule"]),
            "is_deleted": bool(record["is_deleted"]),
        }
    )


async def add(session: Session, definition: TaskDefinition) -> None:
    await session.create_record(collection=COLLECTION, data=_to_record(definition))


async def get(session: Session, definition_id: UUID) -> TaskDefinition:
    """Load a definition by id, deleted ones included.

    Raises:
        NotFoundError: If no definition has the id
    """
    try:
        record = await session.get_record(collection=COLLECTION, record_id=definition_id)
    except RecordNotFoundError as e:
        msg = f"Task definition not found: {definition_id}"
        raise NotFoundError(msg) from e
    return _from_record(record)


async def save(session: Session, definition: TaskDefinition) -> None:
    data = _to_record(definition)
    data.pop("id")
    await session.update_record(collection=COLLECTION, record_id=definition.id, data=data)


async def list_active(session: Session) -> list[TaskDefinition]:
    """Return every definition that is not logically deleted."""
    records = await session.list_records(
        collection=COLLECTION,
        filter_query='is_deleted = "false"',
        per_page=Constants.MAX_LIST_LIMIT,
    )
    return [_from_record(record) for record in records]
