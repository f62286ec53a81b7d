"""
SQLite-based audit event storage.

Durable AuditSink for engine events: scoring runs and status transitions.
No external database setup required - just works.
"""

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from ..engine.audit import AuditEvent

# Database file location
DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "audit.db"


@dataclass
class StoredAuditEvent:
    """An audit event as stored in the database."""
    event_id: str
    action: str
    entity_type: str
    entity_id: str
    actor: str
    timestamp: str
    before: Optional[dict] = None
    after: Optional[dict] = None
    details: Optional[dict] = None


class SQLiteAuditSink:
    """
    SQLite-backed audit sink.

    Usage:
        sink = SQLiteAuditSink()
        processor = ClaimProcessor(audit_sink=sink)

        # Query the trail for one claim
        events = sink.list_for_entity("CLM-001")
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the audit store."""
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_events (
                    event_id TEXT PRIMARY KEY,
                    action TEXT NOT NULL,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    actor TEXT NOT NULL,
                    timestamp TEXT NOT NULL,

                    -- Values (JSON)
                    before_value TEXT,
                    after_value TEXT,
                    details TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_events(entity_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_events(action)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_events(timestamp)")
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def emit(self, event: AuditEvent) -> None:
        """Persist one event."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO audit_events (
                    event_id, action, entity_type, entity_id, actor, timestamp,
                    before_value, after_value, details
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event.event_id,
                event.action,
                event.entity_type,
                event.entity_id,
                event.actor,
                event.timestamp.isoformat(),
                json.dumps(event.before, default=str) if event.before is not None else None,
                json.dumps(event.after, default=str) if event.after is not None else None,
                json.dumps(event.details, default=str) if event.details else None,
            ))
            conn.commit()

    def get(self, event_id: str) -> Optional[StoredAuditEvent]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM audit_events WHERE event_id = ?",
                (event_id,)
            ).fetchone()
            if row:
                return self._row_to_event(row)
        return None

    def list_for_entity(self, entity_id: str, action: Optional[str] = None) -> list[StoredAuditEvent]:
        """Events for one entity, oldest first."""
        query = "SELECT * FROM audit_events WHERE entity_id = ?"
        params: list = [entity_id]
        if action:
            query += " AND action = ?"
            params.append(action)
        query += " ORDER BY timestamp ASC, rowid ASC"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_event(row) for row in rows]

    def list_recent(self, limit: int = 50, action: Optional[str] = None) -> list[StoredAuditEvent]:
        """Most recent events first."""
        query = "SELECT * FROM audit_events"
        params: list = []
        if action:
            query += " WHERE action = ?"
            params.append(action)
        query += " ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_event(row) for row in rows]

    def count(self, action: Optional[str] = None) -> int:
        with self._get_connection() as conn:
            if action:
                row = conn.execute(
                    "SELECT COUNT(*) FROM audit_events WHERE action = ?",
                    (action,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM audit_events").fetchone()
            return row[0]

    def _row_to_event(self, row: sqlite3.Row) -> StoredAuditEvent:
        """Convert a database row to StoredAuditEvent."""
        return StoredAuditEvent(
            event_id=row["event_id"],
            action=row["action"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            actor=row["actor"],
            timestamp=row["timestamp"],
            before=json.loads(row["before_value"]) if row["before_value"] else None,
            after=json.loads(row["after_value"]) if row["after_value"] else None,
            details=json.loads(row["details"]) if row["details"] else None,
        )


@lru_cache
def get_audit_store(db_path: Optional[str] = None) -> SQLiteAuditSink:
    """Get the audit store for a database path (singleton per path)."""
    return SQLiteAuditSink(Path(db_path) if db_path else None)
