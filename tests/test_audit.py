"""Tests for audit events."""

from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from energy_tracker import audit
from energy_tracker.db.repository import Competence, MarketType, Unit


class TestAuditPersistence:
    """Tests for persisted audit entries."""

    def test_competence_created_automatically(self, db):
        admin = db.ensure_admin("Admin", "admin@example.com")

        audit.log_competence_created(db, admin, Competence(1, 2024, 3), automatic=True)

        entry = db.get_audit_logs()["logs"][0]
        assert entry.action == "CREATE"
        assert entry.entity == "Competence"
        assert entry.description == "Created competence '03/2024' (automatically)."
        assert entry.user_id == admin.id

    def test_persisted_when_events_disabled(self, db):
        audit.configure(enabled=False)
        try:
            audit.log_unit_deleted(db, None, Unit(1, "Plant A", MarketType.FREE))
        finally:
            audit.configure(enabled=True)

        assert db.get_audit_logs()["total_logs"] == 1

    def test_persist_failure_does_not_raise(self):
        db = MagicMock()
        db.log_action.side_effect = OperationalError("INSERT", {}, Exception("locked"))

        audit.log_estimates_saved(db, None, "03/2024", 2)

        db.log_action.assert_called_once()

    def test_without_database(self):
        audit.log_report_sent(None, None, "03/2024", ["a@example.com"], sent=1, failed=0)
