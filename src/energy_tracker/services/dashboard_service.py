"""Dashboard service: scoped data in, projections out."""

from dataclasses import dataclass

from ..db import Database
from ..db.repository import Competence, Expense, MarketType, Unit, User
from ..logging import get_logger
from ..processing.aggregator import (
    ExpenseGroup,
    GroupingStats,
    filter_expenses_for_competence,
    group_expenses,
    sort_groups_newest_first,
)
from ..processing.permissions import scope_expenses, scope_units
from ..processing.projector import Dashboard, UnitBreakdown, project, unit_breakdown

log = get_logger(__name__)


@dataclass
class DashboardFilters:
    """Filters shared by the dashboard, expense list and grouped table."""

    contract_id: int | None = None
    market_type: MarketType | str | None = None
    unit_id: int | None = None
    competence_id: int | None = None


@dataclass
class ScopedData:
    """Everything one request may aggregate over."""

    units: list[Unit]
    expenses: list[Expense]
    competences: list[Competence]


class DashboardService:
    """Service for dashboard and expense table data."""

    def __init__(self, db: Database):
        self.db = db

    def load_scope(self, user: User | None, filters: DashboardFilters | None = None) -> ScopedData:
        """Load the units and expenses the user may see under the filters.

        An unknown competence filter yields no expenses.
        """
        filters = filters or DashboardFilters()
        competences = self.db.list_competences()
        units = scope_units(
            self.db.list_units(),
            user,
            contract_id=filters.contract_id,
            market_type=filters.market_type,
            unit_id=filters.unit_id,
        )
        if not units:
            return ScopedData(units=[], expenses=[], competences=competences)

        expenses = scope_expenses(self.db.list_expenses(), units)
        if filters.competence_id is not None:
            if not any(c.id == filters.competence_id for c in competences):
                expenses = []
            else:
                expenses = filter_expenses_for_competence(
                    expenses, filters.competence_id, competences
                )

        return ScopedData(units=units, expenses=expenses, competences=competences)

    def _group(self, scope: ScopedData, competence_id: int | None) -> list[ExpenseGroup]:
        stats = GroupingStats()
        groups = group_expenses(
            scope.expenses,
            scope.competences,
            self.db.list_estimates(competence_id),
            stats=stats,
        )
        if stats.fallback_count:
            log.warning(
                "grouping.fallbacks",
                fallback_count=stats.fallback_count,
                expense_count=stats.expense_count,
            )
        return groups

    def get_dashboard(self, user: User | None, filters: DashboardFilters | None = None) -> Dashboard:
        """Compute KPIs and charts for the user's scope."""
        filters = filters or DashboardFilters()
        scope = self.load_scope(user, filters)
        if not scope.units:
            return Dashboard()

        groups = self._group(scope, filters.competence_id)
        dashboard = project(groups, scope.units, scope.competences, filters.competence_id)

        log.info(
            "dashboard.computed",
            user_id=user.id if user else None,
            unit_count=len(scope.units),
            expense_count=len(scope.expenses),
            group_count=len(groups),
            total_expense=round(dashboard.kpis.total_expense, 2),
        )
        return dashboard

    def get_expense_groups(
        self, user: User | None, filters: DashboardFilters | None = None
    ) -> list[ExpenseGroup]:
        """Grouped expense table rows, newest competence first."""
        filters = filters or DashboardFilters()
        scope = self.load_scope(user, filters)
        if not scope.expenses:
            return []
        groups = self._group(scope, filters.competence_id)
        return sort_groups_newest_first(groups, scope.competences)

    def list_expenses(self, user: User | None, filters: DashboardFilters | None = None) -> list[Expense]:
        """Flat expense list for the user's scope."""
        return self.load_scope(user, filters).expenses

    def get_unit_details(
        self,
        user: User | None,
        unit_name: str,
        competence_id: int | None = None,
    ) -> UnitBreakdown | None:
        """Cost composition and consumption of one unit.

        Returns None if the unit doesn't exist or is outside the user's scope.
        """
        unit = self.db.get_unit_by_name(unit_name)
        if unit is None:
            return None

        scope = self.load_scope(user, DashboardFilters(unit_id=unit.id, competence_id=competence_id))
        if not scope.units:
            return None
        return unit_breakdown(unit.name, scope.expenses)
