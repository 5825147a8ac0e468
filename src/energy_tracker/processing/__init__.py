"""Expense aggregation and reconciliation."""

from .aggregator import (
    ExpenseGroup,
    GroupingStats,
    filter_expenses_for_competence,
    group_expenses,
    sort_groups_newest_first,
)
from .competence import parse_competence_slug, resolve_effective_competence
from .permissions import scope_expenses, scope_units
from .projector import Dashboard, project, unit_breakdown
from .report import ReportModel, compose_report

__all__ = [
    "Dashboard",
    "ExpenseGroup",
    "GroupingStats",
    "ReportModel",
    "compose_report",
    "filter_expenses_for_competence",
    "group_expenses",
    "parse_competence_slug",
    "project",
    "resolve_effective_competence",
    "scope_expenses",
    "scope_units",
    "sort_groups_newest_first",
    "unit_breakdown",
]
