"""Unit tests for domain event serialization and outbox records."""

import json
from datetime import date
from uuid import uuid4

import pytest

from hearth.core.outbox import OutboxRecord, OutboxStatus
from hearth.domain.enums import CancellationReason
from hearth.domain.events import (
    TaskDefinitionDeleted,
    TaskExecutionCancelled,
    TaskExecutionCreated,
    TaskExecutionStarted,
    deserialize_event,
    extract_event_id,
    serialize_event,
)


def _started() -> TaskExecutionStarted:
    return TaskExecutionStarted(
        task_execution_id=uuid4(),
        task_definition_id=uuid4(),
        assignee_id=uuid4(),
        task_name="Dishes",
    )


@pytest.mark.unit
class TestEventSerialization:
    """Tests for serialize_event and deserialize_event."""

    def test_event_id_survives_serialization(self):
        event = _started()

        restored = deserialize_event("TaskExecutionStarted", serialize_event(event))

        assert restored == event
        assert restored.event_id == event.event_id

    def test_unknown_fields_are_ignored(self):
        event = TaskExecutionCancelled(
            task_execution_id=uuid4(), task_definition_id=uuid4(), reason=CancellationReason.DEFINITION_DELETED
        )
        data = json.loads(serialize_event(event))
        data["added_in_a_later_release"] = 42

        restored = deserialize_event("TaskExecutionCancelled", json.dumps(data))

        assert restored.event_id == event.event_id
        assert restored.reason == CancellationReason.DEFINITION_DELETED

    def test_unknown_event_type_raises(self):
        with pytest.raises(KeyError):
            deserialize_event("SomethingElse", "{}")

    def test_event_type_and_aggregate(self):
        event = TaskExecutionCreated(task_execution_id=uuid4(), task_definition_id=uuid4(), scheduled_date=date.today())

        assert event.event_type() == "TaskExecutionCreated"
        assert event.aggregate_type == "task_execution"
        assert event.aggregate_id == event.task_execution_id

    def test_definition_event_aggregate(self):
        event = TaskDefinitionDeleted(task_definition_id=uuid4())

        assert event.aggregate_type == "task_definition"
        assert event.aggregate_id == event.task_definition_id


@pytest.mark.unit
class TestExtractEventId:
    """Tests for extract_event_id."""

    def test_reads_event_id(self):
        event = _started()

        assert extract_event_id(serialize_event(event)) == event.event_id

    @pytest.mark.parametrize("payload", ["{}", '{"event_id": null}', "[]"])
    def test_missing_event_id_raises(self, payload):
        with pytest.raises(ValueError, match="no event_id"):
            extract_event_id(payload)


@pytest.mark.unit
class TestOutboxRecord:
    """Tests for OutboxRecord state changes."""

    def test_create_from_event(self):
        event = _started()

        record = OutboxRecord.create(event, max_retries=3)

        assert record.status == OutboxStatus.PENDING
        assert record.retry_count == 0
        assert record.max_retries == 3
        assert record.event_type == "TaskExecutionStarted"
        assert record.aggregate_type == "task_execution"
        assert record.aggregate_id == str(event.task_execution_id)
        assert record.event_id == event.event_id
        assert record.id != event.event_id

    def test_retry_below_max_stays_pending(self):
        record = OutboxRecord.create(_started(), max_retries=3)

        retried = record.increment_retry("boom")
        retried = retried.increment_retry("boom again")

        assert retried.retry_count == 2
        assert retried.status == OutboxStatus.PENDING
        assert retried.error_message == "boom again"

    def test_retry_at_max_fails(self):
        record = OutboxRecord.create(_started(), max_retries=3)

        for _ in range(3):
            record = record.increment_retry("boom")

        assert record.retry_count == 3
        assert record.status == OutboxStatus.FAILED

    def test_error_message_truncated(self):
        record = OutboxRecord.create(_started(), max_retries=3)

        retried = record.increment_retry("x" * 5000)

        assert len(retried.error_message) == 1000

    def test_mark_processed_clears_error(self):
        record = OutboxRecord.create(_started(), max_retries=3).increment_retry("boom")

        processed = record.mark_processed()

        assert processed.status == OutboxStatus.PROCESSED
        assert processed.processed_at is not None
        assert processed.error_message is None
        assert processed.retry_count == 1
