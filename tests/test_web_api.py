"""Tests for the JSON API."""

import pytest
from fastapi.testclient import TestClient

from energy_tracker.config import Config, EmailConfig
from energy_tracker.db.repository import Database, MarketType, UserRole, UserStatus
from energy_tracker.web import create_app


@pytest.fixture
def config(temp_db, tmp_path):
    return Config(
        dev_mode=True,
        database={"path": str(temp_db)},
        email=EmailConfig(from_address="reports@example.com"),
        output={"email_dir": str(tmp_path / "emails")},
    )


@pytest.fixture
def seeded(config):
    """Admin, a pending user, two units and competence 2024-03."""
    db = Database(config.database.path)
    db.initialize()
    admin = db.ensure_admin("Admin", "admin@example.com")
    pending = db.create_user("Pending", "pending@example.com")
    plant = db.create_unit("Plant A", MarketType.FREE)
    office = db.create_unit("Office B", MarketType.REGULATED)
    manager = db.create_user(
        "Manager", "manager@example.com",
        role=UserRole.MANAGER, status=UserStatus.ACTIVE,
        accessible_unit_ids=[plant.id],
    )
    march, _ = db.get_or_create_competence(2024, 3)
    db.close()
    return {
        "admin": admin.id,
        "pending": pending.id,
        "manager": manager.id,
        "plant": plant.id,
        "office": office.id,
        "march": march.id,
    }


@pytest.fixture
def client(config, seeded):
    return TestClient(create_app(config=config))


def expense_body(unit_id, amount=500.0, expense_type="retailer", **extra):
    body = {
        "unit_id": unit_id,
        "competence": "2024-03",
        "expense_type": expense_type,
        "amount": amount,
        "due_date": "2024-03-10",
    }
    body.update(extra)
    return body


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestActingUser:
    """Tests for acting user resolution."""

    def test_missing_user(self, client):
        assert client.get("/api/dashboard").status_code == 401

    def test_unknown_user(self, client):
        assert client.get("/api/dashboard", params={"user_id": 999}).status_code == 404

    def test_inactive_user_cannot_mutate(self, client, seeded):
        response = client.post(
            "/api/expenses",
            params={"user_id": seeded["pending"]},
            json=expense_body(seeded["plant"]),
        )

        assert response.status_code == 403


class TestExpensesApi:
    """Tests for expense endpoints."""

    def test_create_list_update_delete(self, client, seeded):
        params = {"user_id": seeded["admin"]}

        created = client.post("/api/expenses", params=params, json=expense_body(seeded["plant"]))
        assert created.status_code == 201
        expense_id = created.json()["id"]
        assert created.json()["expense_type"] == "retailer"

        listed = client.get("/api/expenses", params=params)
        assert [e["id"] for e in listed.json()] == [expense_id]

        updated = client.put(
            f"/api/expenses/{expense_id}", params=params, json=expense_body(seeded["plant"], 650.0)
        )
        assert updated.status_code == 200
        assert updated.json()["amount"] == pytest.approx(650.0)

        assert client.delete(f"/api/expenses/{expense_id}", params=params).status_code == 200
        assert client.delete(f"/api/expenses/{expense_id}", params=params).status_code == 404

    def test_invalid_competence(self, client, seeded):
        response = client.post(
            "/api/expenses",
            params={"user_id": seeded["admin"]},
            json=expense_body(seeded["plant"], competence="March"),
        )

        assert response.status_code == 400

    def test_negative_amount(self, client, seeded):
        response = client.post(
            "/api/expenses",
            params={"user_id": seeded["admin"]},
            json=expense_body(seeded["plant"], amount=-10.0),
        )

        assert response.status_code == 400

    def test_manager_outside_scope(self, client, seeded):
        response = client.post(
            "/api/expenses",
            params={"user_id": seeded["manager"]},
            json=expense_body(seeded["office"]),
        )

        assert response.status_code == 403

    def test_groups(self, client, seeded):
        params = {"user_id": seeded["admin"]}
        for amount in (200.0, 300.0):
            client.post("/api/expenses", params=params, json=expense_body(seeded["plant"], amount))
        client.post(
            "/api/estimates",
            params=params,
            json={"competence_id": seeded["march"], "estimates": {str(seeded["plant"]): 800.0}},
        )

        groups = client.get("/api/expenses/groups", params=params).json()

        assert len(groups) == 1
        assert groups[0]["unit_name"] == "Plant A"
        assert groups[0]["competence"] == "03/2024"
        assert groups[0]["total_real"] == pytest.approx(500.0)
        assert groups[0]["savings"] == pytest.approx(300.0)
        assert len(groups[0]["expenses"]) == 2


class TestDashboardApi:
    """Tests for dashboard endpoints."""

    def test_dashboard(self, client, seeded):
        params = {"user_id": seeded["admin"]}
        client.post("/api/expenses", params=params, json=expense_body(seeded["plant"], 500.0))
        client.post(
            "/api/expenses",
            params=params,
            json=expense_body(
                seeded["office"], 300.0, "distributor",
                distributor_details={"demand_excess_value": 50.0},
            ),
        )
        client.post(
            "/api/estimates",
            params=params,
            json={"competence_id": seeded["march"], "estimates": {str(seeded["plant"]): 700.0}},
        )

        data = client.get("/api/dashboard", params=params).json()

        assert data["kpis"]["total_expense"] == pytest.approx(800.0)
        assert data["kpis"]["total_savings"] == pytest.approx(200.0)
        assert data["charts"]["improvement_opportunities"] == [
            {"name": "Demand penalty", "value": 50.0}
        ]

    def test_manager_dashboard_scoped(self, client, seeded):
        client.post(
            "/api/expenses",
            params={"user_id": seeded["admin"]},
            json=expense_body(seeded["office"], 300.0),
        )

        data = client.get("/api/dashboard", params={"user_id": seeded["manager"]}).json()

        assert data["kpis"]["total_expense"] == 0.0

    def test_unit_details(self, client, seeded):
        params = {"user_id": seeded["admin"]}
        client.post("/api/expenses", params=params, json=expense_body(seeded["plant"], 120.0))

        details = client.get("/api/units/details/Plant A", params=params)
        missing = client.get("/api/units/details/Nowhere", params=params)

        assert details.json()["cost_composition"]["retailer"] == pytest.approx(120.0)
        assert missing.status_code == 404


class TestEstimatesApi:
    """Tests for estimate endpoints."""

    def test_competence_required(self, client, seeded):
        response = client.get("/api/estimates", params={"user_id": seeded["admin"]})

        assert response.status_code == 400

    def test_save_and_list(self, client, seeded):
        params = {"user_id": seeded["admin"]}

        saved = client.post(
            "/api/estimates",
            params=params,
            json={"competence_id": seeded["march"], "estimates": {str(seeded["plant"]): 0.0}},
        )
        listed = client.get(
            "/api/estimates", params={**params, "competence_id": seeded["march"]}
        ).json()

        assert saved.json()["count"] == 1
        assert listed[0]["amount"] == 0.0

    def test_unknown_unit(self, client, seeded):
        response = client.post(
            "/api/estimates",
            params={"user_id": seeded["admin"]},
            json={"competence_id": seeded["march"], "estimates": {"9999": 100.0}},
        )

        assert response.status_code == 400
        assert "9999" in response.json()["detail"]

    def test_manager_outside_scope(self, client, seeded):
        response = client.post(
            "/api/estimates",
            params={"user_id": seeded["manager"]},
            json={"competence_id": seeded["march"], "estimates": {str(seeded["office"]): 5.0}},
        )

        assert response.status_code == 403


class TestReportsApi:
    """Tests for report generation."""

    def test_generate(self, client, seeded, tmp_path):
        params = {"user_id": seeded["admin"]}
        client.post("/api/expenses", params=params, json=expense_body(seeded["plant"], 500.0))

        response = client.post(
            "/api/reports/generate",
            params=params,
            json={"competence_id": seeded["march"], "emails": ["ops@example.com"]},
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 1
        assert response.json()["report"]["competence_label"] == "03/2024"
        assert len(list((tmp_path / "emails").glob("*.html"))) == 1

    def test_missing_recipients(self, client, seeded):
        response = client.post(
            "/api/reports/generate",
            params={"user_id": seeded["admin"]},
            json={"competence_id": seeded["march"], "emails": []},
        )

        assert response.status_code == 400

    def test_notifier_not_configured(self, temp_db, seeded):
        client = TestClient(create_app(config=Config(database={"path": str(temp_db)})))

        response = client.post(
            "/api/reports/generate",
            params={"user_id": seeded["admin"]},
            json={"competence_id": seeded["march"], "emails": ["ops@example.com"]},
        )

        assert response.status_code == 503


class TestAuditLogsApi:
    """Tests for the audit log listing."""

    def test_admin_only(self, client, seeded):
        assert client.get("/api/audit-logs", params={"user_id": seeded["manager"]}).status_code == 403

    def test_lists_mutations(self, client, seeded):
        params = {"user_id": seeded["admin"]}
        client.post("/api/expenses", params=params, json=expense_body(seeded["plant"]))

        data = client.get("/api/audit-logs", params=params).json()

        assert data["total_logs"] == 1
        assert data["logs"][0]["action"] == "CREATE"
        assert data["logs"][0]["entity"] == "Expense"
