"""
Audit trail for every ledger mutation.

The audit log is:
- Append-only (entries never modified or deleted)
- Attributed (which actor made the change)
- Detailed (captures old and new values, or the full created entity)

Entries go to the audit_log table when a PostgresClient is supplied and are
kept in process memory otherwise.
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json
from pydantic import BaseModel, Field

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditEntry(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    actor: str
    entity_type: str
    entity_id: int
    action: AuditAction
    changes: dict[str, Any]
    created_at: datetime = Field(default_factory=now_utc)


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at", "version"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at", "version"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in all_keys:
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Append-only audit trail.

    Always pass JSON-compatible values: use model_dump(mode="json") on
    pydantic models so Decimals and dates serialize cleanly.

    Usage:
        audit = AuditLogger()

        audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={"created": invoice.model_dump(mode="json")}
        )

        history = audit.get_entity_history("invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient | None = None, actor: str = "system"):
        self.postgres = postgres
        self.actor = actor
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()

    def ensure_schema(self) -> None:
        if self.postgres is None:
            return
        self.postgres.execute(
            """
            CREATE TABLE IF NOT EXISTS audit_log (
                id UUID PRIMARY KEY,
                actor TEXT NOT NULL,
                entity_type TEXT NOT NULL,
                entity_id BIGINT NOT NULL,
                action TEXT NOT NULL,
                changes JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    def log_change(
        self,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None
    ) -> AuditEntry:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("invoice", "credit_note")
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            actor: Who made the change (defaults to the logger's actor)

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        entry = AuditEntry(
            actor=actor or self.actor,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            changes=changes,
        )

        if self.postgres is not None:
            self.postgres.execute(
                """
                INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    entry.id,
                    entry.actor,
                    entry.entity_type,
                    entry.entity_id,
                    entry.action.value,
                    Json(entry.changes),
                    entry.created_at
                )
            )
        else:
            with self._lock:
                self._entries.append(entry)

        logger.debug(f"Audit {action.value} {entity_type} {entity_id}")
        return entry

    def get_entity_history(self, entity_type: str, entity_id: int) -> list[AuditEntry]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        if self.postgres is not None:
            rows = self.postgres.execute(
                """
                SELECT id, actor, entity_type, entity_id, action, changes, created_at
                FROM audit_log
                WHERE entity_type = %s AND entity_id = %s
                ORDER BY created_at DESC
                """,
                (entity_type, entity_id)
            )
            return [AuditEntry.model_validate(row) for row in rows]

        with self._lock:
            matching = [
                e for e in self._entries
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        return list(reversed(matching))
