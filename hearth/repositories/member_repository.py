"""Persistence of members and their push subscriptions."""

from datetime import UTC, datetime
from uuid import UUID

from hearth.core.config import Constants
from hearth.core.db_client import RecordNotFoundError, Session, sanitize_param
from hearth.core.errors import NotFoundError
from hearth.domain.member import Member, PushSubscription


MEMBERS = "members"
SUBSCRIPTIONS = "push_subscriptions"


async def add_member(session: Session, member: Member) -> None:
    await session.create_record(
        collection=MEMBERS,
        data={"id": str(member.id), "name": member.name, "created": datetime.now(UTC)},
    )


async def get_member(session: Session, member_id: UUID) -> Member:
    try:
        record = await session.get_record(collection=MEMBERS, record_id=member_id)
    except RecordNotFoundError as e:
        msg = f"Member not found: {member_id}"
        raise NotFoundError(msg) from e
    return Member.model_validate(record)


async def list_members(session: Session) -> list[Member]:
    records = await session.list_records(
        collection=MEMBERS,
        sort="name ASC",
        per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [Member.model_validate(record) for record in records]


async def add_subscription(session: Session, subscription: PushSubscription) -> None:
    await session.create_record(
        collection=SUBSCRIPTIONS,
        data={**subscription.model_dump(mode="json"), "created": datetime.now(UTC)},
    )


async def list_active_subscriptions(session: Session, member_id: UUID) -> list[PushSubscription]:
    records = await session.list_records(
        collection=SUBSCRIPTIONS,
        filter_query=f'member_id = "{sanitize_param(member_id)}" && is_active = "true"',
        per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [PushSubscription.model_validate({**record, "is_active": bool(record["is_active"])}) for record in records]


async def deactivate_subscription(session: Session, subscription_id: UUID) -> None:
    await session.update_record(collection=SUBSCRIPTIONS, record_id=subscription_id, data={"is_active": False})
