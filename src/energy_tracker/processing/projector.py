"""Dashboard projections computed from expense groups.

All projections of a dashboard are derived from a single list of
ExpenseGroup objects, so a (unit, competence) pair contributes to the
savings KPI exactly once no matter how many expenses it holds.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field

from ..db.repository import Competence, Expense, ExpenseType, Unit
from .aggregator import ExpenseGroup, total_expense
from .competence import competence_sort_key

UNKNOWN_UNIT = "Unknown"
REACTIVE_PENALTY = "Reactive penalty"
DEMAND_PENALTY = "Demand penalty"


@dataclass
class ChartEntry:
    """Single-series chart point."""

    name: str
    value: float


@dataclass
class ComparisonEntry:
    """Real vs. estimated regulated-market cost for one unit."""

    name: str
    real: float
    estimated: float

    @property
    def savings(self) -> float:
        return self.estimated - self.real


@dataclass
class DashboardKPIs:
    """Scalar dashboard indicators."""

    total_expense: float = 0.0
    total_savings: float = 0.0


@dataclass
class DashboardCharts:
    """Chart-ready projections."""

    by_type: list[ChartEntry] = field(default_factory=list)
    by_unit: list[ChartEntry] = field(default_factory=list)
    by_month: list[ChartEntry] = field(default_factory=list)
    market_comparison: list[ComparisonEntry] = field(default_factory=list)
    improvement_opportunities: list[ChartEntry] = field(default_factory=list)


@dataclass
class Dashboard:
    """KPIs and charts for one dashboard request."""

    kpis: DashboardKPIs = field(default_factory=DashboardKPIs)
    charts: DashboardCharts = field(default_factory=DashboardCharts)

    def to_dict(self) -> dict:
        """Presentation shape: {kpis, charts} of plain numbers and lists."""
        return asdict(self)


def lookup_unit_name(units_by_id: dict[int, Unit], unit_id: int) -> str:
    unit = units_by_id.get(unit_id)
    return unit.name if unit else UNKNOWN_UNIT


def savings_contribution(group: ExpenseGroup, unit: Unit | None) -> float | None:
    """Savings of one group, or None when it doesn't take part.

    Only free-market units with a recorded estimate take part. An estimate
    of zero is a recorded estimate.
    """
    if unit is None or not unit.is_free_market:
        return None
    return group.savings


def total_savings(groups: Iterable[ExpenseGroup], units_by_id: dict[int, Unit]) -> float:
    """Sum of savings contributions, one per group."""
    total = 0.0
    for group in groups:
        contribution = savings_contribution(group, units_by_id.get(group.unit_id))
        if contribution is not None:
            total += contribution
    return total


def _sum_by(pairs: Iterable[tuple[str, float]]) -> list[ChartEntry]:
    totals: dict[str, float] = {}
    for name, value in pairs:
        totals[name] = totals.get(name, 0.0) + value
    return [ChartEntry(name=name, value=value) for name, value in totals.items()]


def expenses_by_type(groups: list[ExpenseGroup]) -> list[ChartEntry]:
    return _sum_by(
        (ExpenseType(e.expense_type).value, e.amount)
        for g in groups
        for e in g.expenses
    )


def expenses_by_unit(
    groups: list[ExpenseGroup], units_by_id: dict[int, Unit]
) -> list[ChartEntry]:
    return _sum_by(
        (lookup_unit_name(units_by_id, g.unit_id), e.amount)
        for g in groups
        for e in g.expenses
    )


def expenses_by_month(
    groups: list[ExpenseGroup], competences_by_id: dict[int, Competence]
) -> list[ChartEntry]:
    """Monthly totals labelled MM/YYYY in chronological order.

    Groups whose competence is unknown are left out.
    """
    totals: dict[int, float] = {}
    for group in groups:
        if group.competence_id not in competences_by_id:
            continue
        totals[group.competence_id] = totals.get(group.competence_id, 0.0) + group.total_real

    ordered = sorted(totals, key=lambda cid: competence_sort_key(competences_by_id[cid]))
    return [ChartEntry(name=competences_by_id[cid].label, value=totals[cid]) for cid in ordered]


def market_comparison(
    groups: list[ExpenseGroup],
    units_by_id: dict[int, Unit],
    competence_id: int | None = None,
) -> list[ComparisonEntry]:
    """Real vs. estimated cost per free-market unit, biggest savings first.

    With a competence filter each row is that competence's group; without
    one, real and estimated totals are rolled up per unit across all
    competences. Rows without a positive estimate are dropped.
    """
    free_groups = [
        g for g in groups
        if g.unit_id in units_by_id and units_by_id[g.unit_id].is_free_market
    ]

    if competence_id is not None:
        rows = [
            ComparisonEntry(
                name=lookup_unit_name(units_by_id, g.unit_id),
                real=g.total_real,
                estimated=g.total_estimated,
            )
            for g in free_groups
            if g.competence_id == competence_id
            and g.total_estimated is not None
            and g.total_estimated > 0
        ]
    else:
        by_unit: dict[int, ComparisonEntry] = {}
        for g in free_groups:
            if g.unit_id not in by_unit:
                by_unit[g.unit_id] = ComparisonEntry(
                    name=lookup_unit_name(units_by_id, g.unit_id), real=0.0, estimated=0.0
                )
            by_unit[g.unit_id].real += g.total_real
            by_unit[g.unit_id].estimated += g.total_estimated or 0.0
        rows = [row for row in by_unit.values() if row.estimated > 0]

    return sorted(rows, key=lambda row: row.savings, reverse=True)


def improvement_opportunities(groups: list[ExpenseGroup]) -> list[ChartEntry]:
    """Reactive and demand penalties, omitting a category that sums to zero."""
    reactive = 0.0
    demand = 0.0
    for group in groups:
        for expense in group.expenses:
            details = expense.distributor_details
            if details is None:
                continue
            reactive += details.reactive_value
            demand += details.demand_excess_value

    entries = [
        ChartEntry(name=REACTIVE_PENALTY, value=reactive),
        ChartEntry(name=DEMAND_PENALTY, value=demand),
    ]
    return [entry for entry in entries if entry.value != 0]


def project(
    groups: Iterable[ExpenseGroup],
    units: Iterable[Unit],
    competences: Iterable[Competence],
    competence_id: int | None = None,
) -> Dashboard:
    """Compute KPIs and charts from one grouping pass.

    Args:
        groups: Output of group_expenses over the in-scope expenses.
        units: In-scope units, used for names and market types.
        competences: Known competences, used for month labels.
        competence_id: Active competence filter, if any. Only affects the
            layout of the market comparison chart.

    Returns:
        Dashboard with KPIs and charts.
    """
    groups = list(groups)
    units_by_id = {u.id: u for u in units}
    competences_by_id = {c.id: c for c in competences}

    kpis = DashboardKPIs(
        total_expense=total_expense(groups),
        total_savings=total_savings(groups, units_by_id),
    )
    charts = DashboardCharts(
        by_type=expenses_by_type(groups),
        by_unit=expenses_by_unit(groups, units_by_id),
        by_month=expenses_by_month(groups, competences_by_id),
        market_comparison=market_comparison(groups, units_by_id, competence_id),
        improvement_opportunities=improvement_opportunities(groups),
    )
    return Dashboard(kpis=kpis, charts=charts)


@dataclass
class ConsumptionDetails:
    """Distributor consumption and penalty totals of a unit."""

    consumption_mwh: float = 0.0
    demand_excess_kw: float = 0.0
    demand_excess_value: float = 0.0
    reactive_kwh: float = 0.0
    reactive_value: float = 0.0

    @property
    def total_penalties(self) -> float:
        return self.demand_excess_value + self.reactive_value


@dataclass
class UnitBreakdown:
    """Cost composition and consumption of a single unit."""

    unit_name: str
    cost_composition: dict[str, float]
    consumption: ConsumptionDetails

    def to_dict(self) -> dict:
        data = asdict(self)
        data["consumption"]["total_penalties"] = self.consumption.total_penalties
        return data


def unit_breakdown(unit_name: str, expenses: Iterable[Expense]) -> UnitBreakdown:
    """Break a unit's expenses down by type and distributor detail."""
    composition = {t.value: 0.0 for t in ExpenseType}
    consumption = ConsumptionDetails()

    for expense in expenses:
        composition[ExpenseType(expense.expense_type).value] += expense.amount
        details = expense.distributor_details
        if details is None:
            continue
        consumption.consumption_mwh += details.consumption_mwh
        consumption.demand_excess_kw += details.demand_excess_kw
        consumption.demand_excess_value += details.demand_excess_value
        consumption.reactive_kwh += details.reactive_kwh
        consumption.reactive_value += details.reactive_value

    return UnitBreakdown(
        unit_name=unit_name,
        cost_composition=composition,
        consumption=consumption,
    )
