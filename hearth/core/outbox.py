"""Transactional outbox record.

Events that need deferred, failure-isolated work are written to the ``outbox``
collection in the same transaction as the change that produced them. The
outbox processor later drains PENDING records.
"""

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from hearth.core.config import Constants, settings
from hearth.domain.events import DomainEvent, extract_event_id, serialize_event


class OutboxStatus(StrEnum):
    """Outbox record delivery state."""

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"  # Terminal, never polled again


class OutboxRecord(BaseModel):
    """One serialized event awaiting asynchronous processing."""

    id: UUID = Field(default_factory=uuid4, description="Record id (distinct from the event id)")
    event_type: str = Field(..., description="Event class name used to look up the effect")
    aggregate_type: str = Field(..., description="task_definition or task_execution")
    aggregate_id: str = Field(..., description="Id of the aggregate that emitted the event")
    payload: str = Field(..., description="JSON event payload including event_id")
    status: OutboxStatus = Field(default=OutboxStatus.PENDING)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=5, ge=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processed_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def create(cls, event: DomainEvent, *, max_retries: int | None = None) -> "OutboxRecord":
        return cls(
            event_type=event.event_type(),
            aggregate_type=event.aggregate_type,
            aggregate_id=str(event.aggregate_id),
            payload=serialize_event(event),
            max_retries=max_retries or settings.outbox_max_retries,
        )

    @property
    def event_id(self) -> UUID:
        return extract_event_id(self.payload)

    def mark_processed(self, *, now: datetime | None = None) -> "OutboxRecord":
        return self.model_copy(
            update={"status": OutboxStatus.PROCESSED, "processed_at": now or datetime.now(UTC), "error_message": None}
        )

    def increment_retry(self, error_message: str) -> "OutboxRecord":
        """Count a failed attempt; the record becomes FAILED once retries are exhausted."""
        retry_count = self.retry_count + 1
        status = OutboxStatus.FAILED if retry_count >= self.max_retries else OutboxStatus.PENDING
        return self.model_copy(
            update={
                "retry_count": retry_count,
                "status": status,
                "error_message": error_message[: Constants.OUTBOX_ERROR_MAXLEN],
            }
        )
