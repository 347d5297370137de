"""Tests for the ledger audit trail."""

from unittest.mock import Mock

import pytest

from clients.postgres_client import PostgresClient
from core.audit import AuditAction, AuditLogger, compute_changes


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_has_create_update_delete(self):
        assert AuditAction.CREATE.value == "create"
        assert AuditAction.UPDATE.value == "update"
        assert AuditAction.DELETE.value == "delete"


class TestComputeChanges:
    """Tests for compute_changes utility function."""

    def test_detects_changed_fields(self):
        old = {"notes": "a", "total": "100.00"}
        new = {"notes": "b", "total": "100.00"}

        changes = compute_changes(old, new)

        assert changes == {"notes": {"old": "a", "new": "b"}}

    def test_detects_added_and_removed_fields(self):
        changes = compute_changes({"sent_to": "x@y.test"}, {"paid_date": "2026-03-20"})

        assert changes["sent_to"] == {"old": "x@y.test", "new": None}
        assert changes["paid_date"] == {"old": None, "new": "2026-03-20"}

    def test_ignores_bookkeeping_fields_by_default(self):
        old = {"version": 1, "updated_at": "t1"}
        new = {"version": 2, "updated_at": "t2"}

        assert compute_changes(old, new) == {}

    def test_custom_exclusions(self):
        changes = compute_changes({"a": 1, "b": 1}, {"a": 2, "b": 2}, exclude_fields={"a"})

        assert list(changes) == ["b"]


class TestInMemoryAuditLogger:

    def test_log_change_returns_entry(self):
        audit = AuditLogger(actor="billing-clerk")

        entry = audit.log_change("invoice", 7, AuditAction.CREATE, {"created": {"id": 7}})

        assert entry.actor == "billing-clerk"
        assert entry.entity_id == 7
        assert entry.action == AuditAction.CREATE

    def test_history_newest_first_and_filtered(self):
        audit = AuditLogger()
        audit.log_change("invoice", 1, AuditAction.CREATE, {"created": {}})
        audit.log_change("invoice", 2, AuditAction.CREATE, {"created": {}})
        audit.log_change("invoice", 1, AuditAction.UPDATE, {"notes": {"old": "", "new": "x"}})
        audit.log_change("credit_note", 1, AuditAction.CREATE, {"created": {}})

        history = audit.get_entity_history("invoice", 1)

        assert [e.action for e in history] == [AuditAction.UPDATE, AuditAction.CREATE]

    def test_actor_override(self):
        audit = AuditLogger()

        entry = audit.log_change("invoice", 1, AuditAction.DELETE, {}, actor="admin")

        assert entry.actor == "admin"

    def test_ensure_schema_is_noop_without_database(self):
        AuditLogger().ensure_schema()


class TestPostgresAuditLogger:

    @pytest.fixture
    def postgres(self):
        return Mock(spec=PostgresClient)

    def test_writes_to_audit_log(self, postgres):
        audit = AuditLogger(postgres)

        entry = audit.log_change("invoice", 3, AuditAction.UPDATE, {"status": {"old": "draft", "new": "sent"}})

        query, params = postgres.execute.call_args.args
        assert "INSERT INTO audit_log" in query
        assert params[1:5] == ("system", "invoice", 3, "update")
        assert params[5].adapted == entry.changes

    def test_reads_history_from_database(self, postgres):
        audit = AuditLogger(postgres)
        stored = audit.log_change("invoice", 3, AuditAction.CREATE, {"created": {}})
        postgres.execute.return_value = [{
            **stored.model_dump(),
            "action": "create",
        }]

        history = audit.get_entity_history("invoice", 3)

        assert history[0].id == stored.id
        assert "ORDER BY created_at DESC" in postgres.execute.call_args.args[0]

    def test_ensure_schema_creates_table(self, postgres):
        AuditLogger(postgres).ensure_schema()

        assert "CREATE TABLE IF NOT EXISTS audit_log" in postgres.execute.call_args.args[0]
