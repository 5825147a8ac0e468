"""Tests for the monthly report model."""

import pytest

from energy_tracker.db.repository import DistributorDetails, ExpenseType, MarketType, Unit
from energy_tracker.exceptions import InvalidInputError
from energy_tracker.processing.aggregator import group_expenses
from energy_tracker.processing.projector import project
from energy_tracker.processing.report import (
    DEMAND_PENALTY_KIND,
    REACTIVE_PENALTY_KIND,
    compose_report,
)

from conftest import make_estimate, make_expense


class TestComposeReport:
    """Tests for compose_report."""

    @pytest.fixture
    def units(self):
        return [
            Unit(id=1, name="Zeta", market_type=MarketType.FREE),
            Unit(id=2, name="Alpha", market_type=MarketType.FREE),
            Unit(id=3, name="Office", market_type=MarketType.REGULATED),
        ]

    @pytest.fixture
    def groups(self, competences):
        expenses = [
            make_expense(1, 1, 3, 400.0),
            make_expense(2, 1, 3, 100.0),
            make_expense(3, 2, 3, 250.0),
            make_expense(
                4, 3, 3, 300.0, ExpenseType.DISTRIBUTOR,
                details=DistributorDetails(demand_excess_value=50.0, reactive_value=20.0),
            ),
            make_expense(5, 1, 2, 999.0),
        ]
        estimates = [make_estimate(1, 3, 600.0), make_estimate(3, 3, 800.0)]
        return group_expenses(expenses, competences, estimates)

    def test_totals(self, competences, units, groups):
        report = compose_report(3, competences, units, groups)

        assert report.competence_label == "03/2024"
        assert report.total_expense == pytest.approx(1050.0)
        assert report.total_savings == pytest.approx(100.0)
        assert report.unit_count == 3

    def test_rows_for_free_units_sorted_by_name(self, competences, units, groups):
        report = compose_report(3, competences, units, groups)

        assert [r.unit_name for r in report.rows] == ["Alpha", "Zeta"]
        alpha, zeta = report.rows
        assert alpha.estimated is None
        assert alpha.savings == 0.0
        assert zeta.real == pytest.approx(500.0)
        assert zeta.savings == pytest.approx(100.0)

    def test_penalties(self, competences, units, groups):
        report = compose_report(3, competences, units, groups)

        assert [(p.unit_name, p.kind, p.value) for p in report.penalties] == [
            ("Office", DEMAND_PENALTY_KIND, 50.0),
            ("Office", REACTIVE_PENALTY_KIND, 20.0),
        ]

    def test_agrees_with_dashboard(self, competences, units, groups):
        """Report and dashboard share the savings methodology."""
        period_groups = [g for g in groups if g.competence_id == 3]

        report = compose_report(3, competences, units, groups)
        dashboard = project(period_groups, units, competences, competence_id=3)

        assert report.total_savings == pytest.approx(dashboard.kpis.total_savings)
        assert report.total_expense == pytest.approx(dashboard.kpis.total_expense)

    def test_missing_competence_raises(self, competences, units, groups):
        with pytest.raises(InvalidInputError):
            compose_report(None, competences, units, groups)

    def test_unknown_competence_raises(self, competences, units, groups):
        with pytest.raises(InvalidInputError):
            compose_report(42, competences, units, groups)

    def test_empty_competence(self, competences, units):
        report = compose_report(1, competences, units, [])

        assert report.total_expense == 0.0
        assert report.rows == []
        assert report.penalties == []
