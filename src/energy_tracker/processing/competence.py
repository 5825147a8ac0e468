"""Effective competence resolution.

Every expense is attributed to the competence it was stored with, except
regulatory charges: those belong to the competence of the month they are
due in. Due dates are decomposed in UTC so that a charge due at
``2024-01-31T23:00:00Z`` lands in January 2024 on every machine.
"""

import re
from collections.abc import Iterable
from datetime import date, datetime, timezone

from ..db.repository import Competence, Expense, ExpenseType
from ..exceptions import InvalidInputError

_SLUG_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")


def due_date_year_month(value: date | datetime | str) -> tuple[int, int]:
    """Return the UTC (year, month) of a due date.

    Naive datetimes are taken to already be in UTC; aware datetimes are
    converted. ISO strings may carry a trailing ``Z``.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidInputError(f"Invalid due date: {value!r}") from e

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.year, value.month

    return value.year, value.month


def find_competence(
    competences: Iterable[Competence], year: int, month: int
) -> Competence | None:
    """Find the competence for a calendar month, if registered."""
    for competence in competences:
        if competence.year == year and competence.month == month:
            return competence
    return None


def _due_date_competence(
    expense: Expense, competences: Iterable[Competence]
) -> Competence | None:
    year, month = due_date_year_month(expense.due_date)
    return find_competence(competences, year, month)


def resolve_attribution(
    expense: Expense, competences: Iterable[Competence]
) -> tuple[int, bool]:
    """Resolve the effective competence ID and whether the fallback was used."""
    if expense.expense_type != ExpenseType.REGULATORY_CHARGE:
        return expense.competence_id, False

    competence = _due_date_competence(expense, competences)
    if competence is None:
        return expense.competence_id, True
    return competence.id, False


def is_fallback(expense: Expense, competences: Iterable[Competence]) -> bool:
    """True when a regulatory charge has no competence for its due month."""
    return resolve_attribution(expense, competences)[1]


def resolve_effective_competence(
    expense: Expense, competences: Iterable[Competence]
) -> int:
    """Return the ID of the competence an expense is attributed to.

    Regulatory charges due in a month with no registered competence fall
    back to their stored competence.
    """
    return resolve_attribution(expense, competences)[0]


def parse_competence_slug(slug: str | None) -> tuple[int, int]:
    """Parse a ``YYYY-MM`` competence string.

    Raises:
        InvalidInputError: If the string is missing or malformed.
    """
    if not slug:
        raise InvalidInputError("Competence is required (YYYY-MM)")

    match = _SLUG_PATTERN.match(slug.strip())
    if not match:
        raise InvalidInputError(f"Invalid competence format: {slug!r}. Use YYYY-MM.")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidInputError(f"Invalid competence: {slug!r}")
    return year, month


def competence_sort_key(competence: Competence) -> tuple[int, int]:
    return competence.year, competence.month
