"""HTTP routes for task definitions, task executions and operator actions."""

import logging
from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from hearth.core.config import Constants
from hearth.core.container import Container
from hearth.domain.enums import TaskScope
from hearth.domain.schedule import TaskSchedule
from hearth.repositories import outbox_repository
from hearth.services import generation_service, stats_service, task_definition_service, task_execution_service


logger = logging.getLogger(__name__)

router = APIRouter()


class CreateTaskDefinitionRequest(BaseModel):
    """Payload for creating a task definition."""

    name: str
    description: str = ""
    duration_minutes: int
    points: int = 0
    scope: TaskScope
    owner_id: UUID | None = None
    schedule: TaskSchedule


class ActorRequest(BaseModel):
    """Payload naming the member performing an action."""

    actor_id: UUID


class AssignRequest(ActorRequest):
    assignee_id: UUID | None = None


class GenerateRequest(BaseModel):
    target_date: date | None = Field(default=None, description="Defaults to today in the household time zone")


def _container(request: Request) -> Container:
    return request.app.state.container


@router.post("/task-definitions", status_code=201)
async def create_task_definition(payload: CreateTaskDefinitionRequest, request: Request) -> dict[str, Any]:
    container = _container(request)
    definition = await task_definition_service.create_task_definition(
        container.db,
        container.dispatcher,
        name=payload.name,
        description=payload.description,
        duration_minutes=payload.duration_minutes,
        points=payload.points,
        scope=payload.scope,
        owner_id=payload.owner_id,
        schedule=payload.schedule,
    )
    return definition.model_dump(mode="json")


@router.delete("/task-definitions/{definition_id}")
async def delete_task_definition(definition_id: UUID, payload: ActorRequest, request: Request) -> dict[str, Any]:
    container = _container(request)
    definition = await task_definition_service.delete_task_definition(
        container.db, container.dispatcher, definition_id=definition_id, actor_id=payload.actor_id
    )
    return definition.model_dump(mode="json")


@router.post("/task-executions/{execution_id}/start")
async def start_execution(execution_id: UUID, payload: ActorRequest, request: Request) -> dict[str, Any]:
    container = _container(request)
    execution = await task_execution_service.start_execution(
        container.db, container.dispatcher, execution_id=execution_id, actor_id=payload.actor_id
    )
    return execution.model_dump(mode="json")


@router.post("/task-executions/{execution_id}/complete")
async def complete_execution(execution_id: UUID, payload: ActorRequest, request: Request) -> dict[str, Any]:
    container = _container(request)
    execution = await task_execution_service.complete_execution(
        container.db, container.dispatcher, execution_id=execution_id, actor_id=payload.actor_id
    )
    return execution.model_dump(mode="json")


@router.post("/task-executions/{execution_id}/cancel")
async def cancel_execution(execution_id: UUID, payload: ActorRequest, request: Request) -> dict[str, Any]:
    container = _container(request)
    execution = await task_execution_service.cancel_execution(
        container.db, container.dispatcher, execution_id=execution_id, actor_id=payload.actor_id
    )
    return execution.model_dump(mode="json")


@router.post("/task-executions/{execution_id}/assign")
async def assign_execution(execution_id: UUID, payload: AssignRequest, request: Request) -> dict[str, Any]:
    container = _container(request)
    execution = await task_execution_service.assign_execution(
        container.db,
        container.dispatcher,
        execution_id=execution_id,
        actor_id=payload.actor_id,
        assignee_id=payload.assignee_id,
    )
    return execution.model_dump(mode="json")


@router.post("/admin/generate")
async def trigger_generation(payload: GenerateRequest, request: Request) -> dict[str, Any]:
    """Run task generation for a date outside of the daily schedule."""
    container = _container(request)
    target_date = payload.target_date or container.today()
    created = await generation_service.run_generation(container.db, container.dispatcher, target_date=target_date)
    return {"target_date": target_date.isoformat(), "created": [str(execution_id) for execution_id in created]}


@router.get("/admin/outbox/failed")
async def list_failed_outbox_records(request: Request) -> dict[str, Any]:
    """Outbox records that exhausted their retries."""
    container = _container(request)
    async with container.db.session() as session:
        records = await outbox_repository.list_failed(session)
    return {"count": len(records), "records": [record.model_dump(mode="json") for record in records]}


@router.get("/task-executions/completed")
async def list_completed_tasks(
    request: Request,
    member_id: UUID | None = None,
    scheduled_date: date | None = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=Constants.DEFAULT_PER_PAGE_LIMIT, ge=1, le=Constants.DEFAULT_PER_PAGE_LIMIT),
) -> dict[str, Any]:
    """Completed task history, newest first."""
    container = _container(request)
    executions = await stats_service.list_completed_tasks(
        container.db, member_id=member_id, scheduled_date=scheduled_date, page=page, per_page=per_page
    )
    return {"count": len(executions), "items": [execution.model_dump(mode="json") for execution in executions]}


@router.get("/members/stats")
async def member_stats(request: Request) -> dict[str, Any]:
    container = _container(request)
    stats = await stats_service.get_member_stats(container.db, today=container.today())
    return {"members": [entry.model_dump(mode="json") for entry in stats]}
