"""Notification service for pushing messages to household members.

Sends never run inside a write transaction: subscriptions are read first, the
pushes go out with no lock held, and expired subscriptions are deactivated in
a short transaction afterwards. Notification failures never propagate; they
are collected and logged.
"""

import logging
from collections.abc import Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from hearth.core.db_client import Database, DatabaseError, Session
from hearth.core.logging import span
from hearth.domain.member import PushSubscription
from hearth.interface.notification_sender import NotificationSender, SendResult, SendStatus
from hearth.repositories import member_repository


logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """A message to push to a set of members once the producing transaction commits."""

    model_config = ConfigDict(frozen=True)

    member_ids: tuple[UUID, ...]
    title: str
    body: str


class NotificationResult(BaseModel):
    """Delivery outcome for one subscription."""

    member_id: UUID
    subscription_id: UUID
    status: SendStatus
    error: str | None = None


async def family_notification(
    session: Session,
    *,
    exclude_member_id: UUID | None,
    title: str,
    body: str,
) -> Notification | None:
    """Build a notification for every member except the one who triggered the change."""
    members = await member_repository.list_members(session)
    targets = tuple(member.id for member in members if member.id != exclude_member_id)
    if not targets:
        logger.info("No members to notify")
        return None
    return Notification(member_ids=targets, title=title, body=body)


async def _send_one(
    sender: NotificationSender,
    *,
    subscription: PushSubscription,
    title: str,
    body: str,
) -> SendResult:
    try:
        return await sender.send(subscription=subscription, title=title, body=body)
    except Exception as e:
        logger.error("Notification sender raised for subscription %s: %s", subscription.id, e)
        return SendResult.failed(str(e))


async def _deactivate_expired(db: Database, results: list[NotificationResult]) -> None:
    expired = [result for result in results if result.status == SendStatus.SUBSCRIPTION_EXPIRED]
    if not expired:
        return
    try:
        async with db.transaction() as session:
            for result in expired:
                await member_repository.deactivate_subscription(session, result.subscription_id)
    except DatabaseError as e:
        logger.warning("Could not deactivate %d expired subscriptions: %s", len(expired), e)
        return
    for result in expired:
        logger.info("Deactivated expired subscription %s of member %s", result.subscription_id, result.member_id)


async def notify_members(
    db: Database,
    *,
    sender: NotificationSender,
    member_ids: Iterable[UUID],
    title: str,
    body: str,
) -> list[NotificationResult]:
    """Send a notification to every active subscription of the given members.

    Must not be called while the caller holds a write transaction.

    Args:
        db: Database used to read and deactivate subscriptions
        sender: Notification transport
        member_ids: Members to notify
        title: Notification title
        body: Notification body

    Returns:
        One NotificationResult per attempted subscription
    """
    with span("notification_service.notify_members"):
        async with db.session() as session:
            targets = [
                (member_id, await member_repository.list_active_subscriptions(session, member_id))
                for member_id in dict.fromkeys(member_ids)
            ]

        results: list[NotificationResult] = []
        for member_id, subscriptions in targets:
            for subscription in subscriptions:
                send_result = await _send_one(sender, subscription=subscription, title=title, body=body)
                results.append(
                    NotificationResult(
                        member_id=member_id,
                        subscription_id=subscription.id,
                        status=send_result.status,
                        error=send_result.error,
                    )
                )

        await _deactivate_expired(db, results)

        failures = [result for result in results if result.status == SendStatus.FAILED]
        if failures:
            logger.warning(
                "Failed to deliver %d of %d notifications",
                len(failures),
                len(results),
                extra={"failures": [f"{f.subscription_id}: {f.error}" for f in failures]},
            )
        return results


async def deliver(db: Database, *, sender: NotificationSender, notification: Notification) -> list[NotificationResult]:
    return await notify_members(
        db,
        sender=sender,
        member_ids=notification.member_ids,
        title=notification.title,
        body=notification.body,
    )
