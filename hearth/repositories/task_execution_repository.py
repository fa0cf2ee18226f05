"""Persistence of task executions."""

import json
from datetime import date
from typing import Any
from uuid import UUID

from hearth.core.config import Constants
from hearth.core.db_client import RecordNotFoundError, Session, sanitize_param
from hearth.core.errors import NotFoundError
from hearth.domain.enums import ExecutionStatus
from hearth.domain.task_execution import AnyTaskExecution, Completed, InProgress, task_execution_adapter


COLLECTION = "task_executions"

_COLUMNS = (
    "id",
    "task_definition_id",
    "scheduled_date",
    "status",
    "assignee_id",
    "snapshot",
    "started_at",
    "completed_at",
    "completed_by",
    "earned_points",
    "cancelled_at",
)

OPEN_FILTER = f'(status = "{ExecutionStatus.NOT_STARTED}" || status = "{ExecutionStatus.IN_PROGRESS}")'


def _to_record(execution: AnyTaskExecution) -> dict[str, Any]:
    data = execution.model_dump(mode="json")
    record = {column: data.get(column) for column in _COLUMNS}
    if record["snapshot"] is not None:
        record["snapshot"] = json.dumps(record["snapshot"])
    return record


def _from_record(record: dict[str, Any]) -> AnyTaskExecution:
    data = {key: value for key, value in record.items() if value is not None}
    if "snapshot" in data:
        data["snapshot"] = json.loads(data["snapshot"])
    return task_execution_adapter.validate_python(data)


async def add(session: Session, execution: AnyTaskExecution) -> None:
    """Insert a new execution.

    Raises:
        UniqueConstraintError: If the definition already has an execution on that date
    """
    await session.create_record(collection=COLLECTION, data=_to_record(execution))


async def get(session: Session, execution_id: UUID) -> AnyTaskExecution:
    """Load an execution by id.

    Raises:
        NotFoundError: If no execution has the id
    """
    try:
        record = await session.get_record(collection=COLLECTION, record_id=execution_id)
    except RecordNotFoundError as e:
        msg = f"Task execution not found: {execution_id}"
        raise NotFoundError(msg) from e
    return _from_record(record)


async def save(session: Session, execution: AnyTaskExecution) -> None:
    data = _to_record(execution)
    data.pop("id")
    await session.update_record(collection=COLLECTION, record_id=execution.id, data=data)


async def exists_for(session: Session, *, task_definition_id: UUID, scheduled_date: date) -> bool:
    record = await session.get_first_record(
        collection=COLLECTION,
        filter_query=(
            f'task_definition_id = "{sanitize_param(task_definition_id)}" '
            f'&& scheduled_date = "{scheduled_date.isoformat()}"'
        ),
    )
    return record is not None


async def list_for_definition(session: Session, task_definition_id: UUID) -> list[AnyTaskExecution]:
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=f'task_definition_id = "{sanitize_param(task_definition_id)}"',
        sort="scheduled_date ASC",
        per_page=Constants.MAX_LIST_LIMIT,
    )
    return [_from_record(record) for record in records]


async def list_open_for_date(session: Session, scheduled_date: date) -> list[AnyTaskExecution]:
    """Executions scheduled on the date that are NOT_STARTED or IN_PROGRESS."""
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=f'scheduled_date = "{scheduled_date.isoformat()}" && {OPEN_FILTER}',
        per_page=Constants.MAX_LIST_LIMIT,
    )
    return [_from_record(record) for record in records]


async def list_in_progress(session: Session) -> list[InProgress]:
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=f'status = "{ExecutionStatus.IN_PROGRESS}"',
        sort="started_at ASC",
        per_page=Constants.MAX_LIST_LIMIT,
    )
    return [execution for execution in map(_from_record, records) if isinstance(execution, InProgress)]


async def list_completed(
    session: Session,
    *,
    assignee_id: UUID | None = None,
    scheduled_date: date | None = None,
    page: int = 1,
    per_page: int = Constants.DEFAULT_PER_PAGE_LIMIT,
) -> list[Completed]:
    """Completed executions, most recently completed first."""
    filters = [f'status = "{ExecutionStatus.COMPLETED}"']
    if assignee_id is not None:
        filters.append(f'assignee_id = "{sanitize_param(assignee_id)}"')
    if scheduled_date is not None:
        filters.append(f'scheduled_date = "{scheduled_date.isoformat()}"')
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=" && ".join(filters),
        sort="completed_at DESC",
        page=page,
        per_page=per_page,
    )
    return [execution for execution in map(_from_record, records) if isinstance(execution, Completed)]


async def list_not_cancelled(session: Session) -> list[AnyTaskExecution]:
    records = await session.list_records(
        collection=COLLECTION,
        filter_query=f'status != "{ExecutionStatus.CANCELLED}"',
        per_page=Constants.MAX_LIST_LIMIT,
    )
    return [_from_record(record) for record in records]
