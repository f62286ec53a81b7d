"""
Storage module for persisting engine audit events.

Provides SQLite-based storage for scoring runs and status transitions.
"""

from .audit_store import (
    SQLiteAuditSink,
    StoredAuditEvent,
    get_audit_store,
)

__all__ = [
    "SQLiteAuditSink",
    "StoredAuditEvent",
    "get_audit_store",
]
