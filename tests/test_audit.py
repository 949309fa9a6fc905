"""
Tests for the audit trail.
"""
import json
import logging

from config.logging_config import AUDIT_LOGGER_NAME
from services.audit import AuditRecord, LoggingAuditSink, record_safely


class TestAuditSink:

    def test_logging_sink_writes_json(self, caplog):
        record = AuditRecord(
            user_id="user-1",
            user_role="consultant",
            request="list clients",
            outcome="generated",
            tables_accessed=["clients"],
            is_valid=True,
        )

        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
            LoggingAuditSink().record(record)

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["outcome"] == "generated"
        assert entry["tables_accessed"] == ["clients"]
        assert entry["timestamp"]

    def test_record_safely_swallows_sink_errors(self, caplog):
        class BrokenSink:
            def record(self, record):
                raise RuntimeError("sink down")

        record = AuditRecord(user_id="user-1", user_role="consultant", request="x", outcome="failed")
        with caplog.at_level(logging.ERROR):
            record_safely(BrokenSink(), record)

        assert "Audit sink failed" in caplog.text
