"""
Audit events.

Every scoring run and every status transition emits one structured record
to an AuditSink. The engine does not own durable storage; see
src.storage.audit_store for the SQLite sink.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    """One attributed record of an engine action."""
    action: str
    entity_type: str
    entity_id: str
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    actor: str = "claim-engine"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: f"AUD-{uuid.uuid4().hex[:16].upper()}")

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "before": self.before,
            "after": self.after,
            "actor": self.actor,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None:
        ...


class InMemoryAuditSink:
    """Collects events in a list. Handy for tests and dry runs."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]


class LoggingAuditSink:
    """Writes each event as a JSON line to a logger."""

    def __init__(self, logger_name: str = "claim_engine.audit"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: AuditEvent) -> None:
        self._logger.info(json.dumps(event.to_dict(), default=str))
