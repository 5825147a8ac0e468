"""Monthly report model for one competence."""

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field

from ..db.repository import Competence, Unit
from ..exceptions import InvalidInputError
from .aggregator import ExpenseGroup, total_expense
from .projector import lookup_unit_name, savings_contribution

DEMAND_PENALTY_KIND = "demand"
REACTIVE_PENALTY_KIND = "reactive"


@dataclass
class ReportRow:
    """Free-market analysis row for one unit."""

    unit_name: str
    real: float
    estimated: float | None
    savings: float


@dataclass
class PenaltyItem:
    """Penalty charged on a single distributor expense."""

    unit_name: str
    kind: str  # demand, reactive
    value: float


@dataclass
class ReportModel:
    """Structured monthly report, ready to be rendered."""

    competence_id: int
    competence_label: str
    total_expense: float = 0.0
    total_savings: float = 0.0
    unit_count: int = 0
    rows: list[ReportRow] = field(default_factory=list)
    penalties: list[PenaltyItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def compose_report(
    competence_id: int | None,
    competences: Iterable[Competence],
    units: Iterable[Unit],
    groups: Iterable[ExpenseGroup],
) -> ReportModel:
    """Build the report of one competence.

    The savings methodology is the dashboard's: one contribution per
    free-market (unit, competence) group with a recorded estimate. Regulated
    units count towards the expense total only.

    Args:
        competence_id: Competence to report on.
        competences: Known competences.
        units: Units in the caller's scope.
        groups: Output of group_expenses over the in-scope expenses.

    Raises:
        InvalidInputError: If the competence is missing or unknown.
    """
    if competence_id is None:
        raise InvalidInputError("Competence is required for the report")

    competence = next((c for c in competences if c.id == competence_id), None)
    if competence is None:
        raise InvalidInputError(f"Competence {competence_id} not found")

    units = list(units)
    units_by_id = {u.id: u for u in units}
    period_groups = [g for g in groups if g.competence_id == competence_id]

    model = ReportModel(
        competence_id=competence.id,
        competence_label=competence.label,
        total_expense=total_expense(period_groups),
        unit_count=len(units),
    )

    for group in period_groups:
        unit = units_by_id.get(group.unit_id)
        if unit is None or not unit.is_free_market:
            continue
        contribution = savings_contribution(group, unit)
        model.rows.append(
            ReportRow(
                unit_name=unit.name,
                real=group.total_real,
                estimated=group.total_estimated,
                savings=contribution or 0.0,
            )
        )
        if contribution is not None:
            model.total_savings += contribution

    model.rows.sort(key=lambda row: row.unit_name)

    for group in period_groups:
        name = lookup_unit_name(units_by_id, group.unit_id)
        for expense in group.expenses:
            details = expense.distributor_details
            if details is None:
                continue
            if details.demand_excess_value > 0:
                model.penalties.append(
                    PenaltyItem(name, DEMAND_PENALTY_KIND, details.demand_excess_value)
                )
            if details.reactive_value > 0:
                model.penalties.append(
                    PenaltyItem(name, REACTIVE_PENALTY_KIND, details.reactive_value)
                )

    return model
