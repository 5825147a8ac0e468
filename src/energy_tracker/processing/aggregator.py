"""Aggregation logic for grouping expenses by unit and effective competence."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..db.repository import Competence, Estimate, Expense
from ..logging import get_logger
from .competence import competence_sort_key, resolve_attribution

log = get_logger(__name__)

GroupKey = tuple[int, int]


@dataclass
class ExpenseGroup:
    """Expenses of one unit attributed to one competence."""

    unit_id: int
    competence_id: int
    expenses: list[Expense] = field(default_factory=list)
    total_real: float = 0.0
    # None means no estimate was recorded; 0.0 is a valid estimate
    total_estimated: float | None = None

    @property
    def key(self) -> GroupKey:
        return (self.unit_id, self.competence_id)

    @property
    def has_estimate(self) -> bool:
        return self.total_estimated is not None

    @property
    def savings(self) -> float | None:
        """Estimated minus real cost, or None without an estimate."""
        if self.total_estimated is None:
            return None
        return self.total_estimated - self.total_real

    def add_expense(self, expense: Expense) -> None:
        """Add an expense to this group."""
        self.expenses.append(expense)
        self.total_real += expense.amount


@dataclass
class GroupingStats:
    """Data integrity counters collected while grouping."""

    expense_count: int = 0
    fallback_count: int = 0
    fallback_expense_ids: list[int | None] = field(default_factory=list)


def index_estimates(estimates: Iterable[Estimate]) -> dict[GroupKey, float]:
    """Map (unit, competence) to estimate amount.

    If the store ever holds duplicates for a key, the last one wins.
    """
    return {(e.unit_id, e.competence_id): e.amount for e in estimates}


def group_expenses(
    expenses: Iterable[Expense],
    competences: Iterable[Competence],
    estimates: Iterable[Estimate],
    stats: GroupingStats | None = None,
) -> list[ExpenseGroup]:
    """Group expenses by (unit, effective competence).

    Args:
        expenses: Expenses already scoped to the caller's units.
        competences: All known competences.
        estimates: Estimates to attach to the groups.
        stats: Optional counters updated with fallback resolutions.

    Returns:
        Groups in first-seen order, each with its real total and estimate.
    """
    competences = list(competences)
    estimate_by_key = index_estimates(estimates)
    groups: dict[GroupKey, ExpenseGroup] = {}

    for expense in expenses:
        competence_id, fell_back = resolve_attribution(expense, competences)
        if stats is not None:
            stats.expense_count += 1
        if fell_back:
            log.warning(
                "competence.fallback",
                expense_id=expense.id,
                unit_id=expense.unit_id,
                due_date=str(expense.due_date),
                stored_competence_id=expense.competence_id,
            )
            if stats is not None:
                stats.fallback_count += 1
                stats.fallback_expense_ids.append(expense.id)

        key = (expense.unit_id, competence_id)
        if key not in groups:
            groups[key] = ExpenseGroup(
                unit_id=expense.unit_id,
                competence_id=competence_id,
                total_estimated=estimate_by_key.get(key),
            )
        groups[key].add_expense(expense)

    return list(groups.values())


def filter_expenses_for_competence(
    expenses: Iterable[Expense],
    competence_id: int,
    competences: Iterable[Competence],
) -> list[Expense]:
    """Keep the expenses attributed to a competence."""
    competences = list(competences)
    return [
        e for e in expenses
        if resolve_attribution(e, competences)[0] == competence_id
    ]


def sort_groups_newest_first(
    groups: Iterable[ExpenseGroup],
    competences: Iterable[Competence],
) -> list[ExpenseGroup]:
    """Order groups by competence, newest first.

    Groups whose competence is unknown go last.
    """
    by_id = {c.id: c for c in competences}

    def sort_key(group: ExpenseGroup) -> tuple[int, int, int]:
        competence = by_id.get(group.competence_id)
        if competence is None:
            return (1, 0, 0)
        year, month = competence_sort_key(competence)
        return (0, -year, -month)

    return sorted(groups, key=sort_key)


def total_expense(groups: Iterable[ExpenseGroup]) -> float:
    """Flat sum of every expense amount in the groups."""
    return sum(e.amount for g in groups for e in g.expenses)
