"""Restrict units and expenses to what a user may see."""

from collections.abc import Iterable

from ..db.repository import Expense, MarketType, Unit, User
from ..exceptions import AccessDeniedError


def scope_units(
    units: Iterable[Unit],
    user: User | None,
    contract_id: int | None = None,
    market_type: MarketType | str | None = None,
    unit_id: int | None = None,
) -> list[Unit]:
    """Filter units by the request filters and the user's permissions.

    Admins see every unit, inactive or unknown users see none, everyone
    else sees only their accessible units. Asking for a specific unit
    outside the user's scope yields an empty list.
    """
    if user is None or not user.is_active:
        return []

    scoped = list(units)
    if not user.is_admin:
        allowed = set(user.accessible_unit_ids)
        scoped = [u for u in scoped if u.id in allowed]

    if contract_id is not None:
        scoped = [u for u in scoped if u.contract_id == contract_id]
    if market_type is not None:
        market_type = MarketType(market_type)
        scoped = [u for u in scoped if u.market_type == market_type]
    if unit_id is not None:
        scoped = [u for u in scoped if u.id == unit_id]

    return scoped


def scope_expenses(expenses: Iterable[Expense], units: Iterable[Unit]) -> list[Expense]:
    """Keep only expenses of the given units."""
    unit_ids = {u.id for u in units}
    return [e for e in expenses if e.unit_id in unit_ids]


def require_active_user(user: User | None) -> User:
    """Return the user if it may perform mutations.

    Raises:
        AccessDeniedError: If the user is missing or not active.
    """
    if user is None:
        raise AccessDeniedError("User authentication is required")
    if not user.is_active:
        raise AccessDeniedError("Your account is inactive and cannot perform this action")
    return user


def can_access_unit(user: User, unit_id: int) -> bool:
    return user.is_admin or unit_id in user.accessible_unit_ids
