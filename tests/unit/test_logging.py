"""Tests for the structured logging helpers."""

import logging

import pytest

from hearth.core.logging import log_with_context


@pytest.mark.unit
class TestLogWithContext:
    """Tests for log_with_context."""

    def test_context_becomes_record_attributes(self, caplog):
        caplog.set_level(logging.INFO, logger="hearth.outbox")
        log_with_context(
            logging.getLogger("hearth.outbox"), "WARNING", "Retrying event", event_id="evt-1", retry_count=2
        )

        (record,) = caplog.records
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "Retrying event"
        assert (record.event_id, record.retry_count) == ("evt-1", 2)

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            log_with_context(logging.getLogger("hearth.outbox"), "verbose", "Retrying event")
