# services/audit.py
"""Audit trail for assistant queries."""
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from config.logging_config import AUDIT_LOGGER_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    """What a user asked for, which tables the query touched and whether it was allowed."""
    user_id: str
    user_role: str
    request: str
    outcome: str
    query: Optional[str] = None
    tables_accessed: List[str] = field(default_factory=list)
    is_valid: Optional[bool] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    executed: bool = False
    used_fallback: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditSink(Protocol):
    def record(self, record: AuditRecord) -> None:
        ...


class LoggingAuditSink:
    """Writes one JSON line per record to the audit logger."""

    def __init__(self, logger_name: str = AUDIT_LOGGER_NAME):
        self.audit_logger = logging.getLogger(logger_name)

    def record(self, record: AuditRecord) -> None:
        self.audit_logger.info(json.dumps(asdict(record), default=str))


def record_safely(sink: Optional[AuditSink], record: AuditRecord) -> None:
    """Send a record, never letting a sink failure reach the request."""
    if sink is None:
        return
    try:
        sink.record(record)
    except Exception as e:
        logger.error(f"Audit sink failed for user {record.user_id} ({record.outcome}): {e}")
