"""Read-side statistics: completed task history and per-member counts and points.

Key Concepts:
- Population: a member's executions are the ones assigned to them plus every
  execution of a PERSONAL definition they own. Cancelled executions and
  executions of deleted definitions are left out.
- Completed count: executions in the population that are COMPLETED.
- Earned points: points frozen in the snapshot when work started, credited to
  the assignee on completion.
"""

import logging
from datetime import date
from uuid import UUID

from pydantic import BaseModel

from hearth.core.config import Constants
from hearth.core.db_client import Database
from hearth.core.logging import span
from hearth.domain.enums import TaskScope
from hearth.domain.task_execution import Completed
from hearth.repositories import member_repository, task_definition_repository, task_execution_repository


logger = logging.getLogger(__name__)


class MemberStats(BaseModel):
    """All-time task counts for one member, plus points earned on a given day."""

    member_id: UUID
    name: str
    total_count: int = 0
    completed_count: int = 0
    earned_points_today: int = 0


async def list_completed_tasks(
    db: Database,
    *,
    member_id: UUID | None = None,
    scheduled_date: date | None = None,
    page: int = 1,
    per_page: int = Constants.DEFAULT_PER_PAGE_LIMIT,
) -> list[Completed]:
    """Completed executions, newest completion first, optionally for one member or date."""
    with span("stats_service.list_completed_tasks"):
        async with db.session() as session:
            return await task_execution_repository.list_completed(
                session,
                assignee_id=member_id,
                scheduled_date=scheduled_date,
                page=page,
                per_page=per_page,
            )


async def get_member_stats(db: Database, *, today: date) -> list[MemberStats]:
    """Count each member's tasks over all time and sum the points they earned today.

    Args:
        db: Database handle
        today: Household date used for the points total

    Returns:
        One MemberStats per member, in member listing order
    """
    with span("stats_service.get_member_stats"):
        async with db.session() as session:
            members = await member_repository.list_members(session)
            definitions = {d.id: d for d in await task_definition_repository.list_active(session)}
            executions = await task_execution_repository.list_not_cancelled(session)

        stats = {member.id: MemberStats(member_id=member.id, name=member.name) for member in members}
        for execution in executions:
            definition = definitions.get(execution.task_definition_id)
            if definition is None:
                continue

            involved = {execution.assignee_id}
            if definition.scope == TaskScope.PERSONAL:
                involved.add(definition.owner_id)

            for member_id in involved:
                member_stats = stats.get(member_id)
                if member_stats is None:
                    continue
                member_stats.total_count += 1
                if isinstance(execution, Completed):
                    member_stats.completed_count += 1

            if isinstance(execution, Completed) and execution.scheduled_date == today:
                earner = stats.get(execution.assignee_id)
                if earner is not None:
                    earner.earned_points_today += execution.earned_points

        logger.debug("Computed stats for %d members over %d executions", len(stats), len(executions))
        return list(stats.values())
