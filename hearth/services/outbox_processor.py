"""Outbox processor: drains PENDING outbox records and applies their effects.

Delivery is at-least-once. Each record is handled in its own transaction;
the event id is checked against the dedup store first, and the dedup marker is
written in the same transaction as the effect, so a redelivered event is
applied at most once. Notifications produced by an effect are pushed only after
that transaction commits, so no write lock is held while a push is in flight.
A failure is recorded in a fresh transaction and the record becomes FAILED once
its retries are exhausted.
"""

import logging

from pydantic import BaseModel

from hearth.core.config import settings
from hearth.core.db_client import Database
from hearth.core.errors import UnknownEventTypeError
from hearth.core.logging import log_with_context, span
from hearth.core.outbox import OutboxRecord, OutboxStatus
from hearth.domain.events import deserialize_event
from hearth.interface.notification_sender import NotificationSender
from hearth.repositories import outbox_repository, processed_event_repository
from hearth.services import notification_service
from hearth.services.notification_service import Notification
from hearth.services.outbox_effects import EffectHandler


logger = logging.getLogger(__name__)


class OutboxProcessingResult(BaseModel):
    """Counts for one drain pass."""

    processed_count: int = 0
    failed_count: int = 0


class OutboxProcessor:
    """Applies outbox effects with per-record failure isolation."""

    def __init__(
        self,
        *,
        db: Database,
        effects: dict[str, EffectHandler],
        sender: NotificationSender | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._db = db
        self._effects = effects
        self._sender = sender
        self.batch_size = batch_size or settings.outbox_batch_size

    async def process_pending(self) -> OutboxProcessingResult:
        """Process up to batch_size PENDING records, oldest first."""
        with span("outbox_processor.process_pending"):
            async with self._db.session() as session:
                records = await outbox_repository.find_pending(session, limit=self.batch_size)

            result = OutboxProcessingResult()
            for record in records:
                try:
                    notifications = await self._process_record(record)
                except Exception as e:
                    log_with_context(
                        logger,
                        "warning",
                        "Outbox record processing failed",
                        outbox_id=str(record.id),
                        event_type=record.event_type,
                        error=str(e),
                    )
                    await self._record_failure(record, e)
                    result.failed_count += 1
                    continue

                result.processed_count += 1
                await self._deliver(notifications)

            if records:
                logger.info(
                    "Processed outbox batch: %d processed, %d failed",
                    result.processed_count,
                    result.failed_count,
                )
            return result

    async def _process_record(self, record: OutboxRecord) -> list[Notification]:
        async with self._db.transaction() as session:
            event_id = record.event_id

            if await processed_event_repository.exists(session, event_id):
                logger.info(
                    "Skipping already processed event",
                    extra={"outbox_id": str(record.id), "event_id": str(event_id)},
                )
                await outbox_repository.save(session, record.mark_processed())
                return []

            effect = self._effects.get(record.event_type)
            if effect is None:
                msg = f"No effect registered for event type {record.event_type}"
                raise UnknownEventTypeError(msg)

            event = deserialize_event(record.event_type, record.payload)
            notifications = await effect(event, session)

            await processed_event_repository.save(session, event_id=event_id, event_type=record.event_type)
            await outbox_repository.save(session, record.mark_processed())
        return notifications

    async def _deliver(self, notifications: list[Notification]) -> None:
        if not notifications:
            return
        if self._sender is None:
            logger.warning("No notification sender configured, dropping %d notifications", len(notifications))
            return
        for notification in notifications:
            await notification_service.deliver(self._db, sender=self._sender, notification=notification)

    async def _record_failure(self, record: OutboxRecord, error: Exception) -> None:
        updated = record.increment_retry(f"{type(error).__name__}: {error}")
        async with self._db.transaction() as session:
            await outbox_repository.save(session, updated)

        if updated.status == OutboxStatus.FAILED:
            logger.error(
                "Outbox record exhausted retries",
                extra={
                    "outbox_id": str(updated.id),
                    "event_type": updated.event_type,
                    "retry_count": updated.retry_count,
                    "error": updated.error_message,
                },
            )
