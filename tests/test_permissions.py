"""Tests for permission scoping."""

import pytest

from energy_tracker.db.repository import MarketType, Unit, User, UserRole, UserStatus
from energy_tracker.exceptions import AccessDeniedError
from energy_tracker.processing.permissions import (
    can_access_unit,
    require_active_user,
    scope_expenses,
    scope_units,
)

from conftest import make_expense


@pytest.fixture
def all_units():
    return [
        Unit(id=1, name="A", market_type=MarketType.FREE, contract_id=100),
        Unit(id=2, name="B", market_type=MarketType.REGULATED, contract_id=100),
        Unit(id=3, name="C", market_type=MarketType.FREE, contract_id=200),
    ]


@pytest.fixture
def manager():
    return User(
        id=2,
        name="Manager",
        email="manager@example.com",
        role=UserRole.MANAGER,
        status=UserStatus.ACTIVE,
        accessible_unit_ids=[1, 2],
    )


class TestScopeUnits:
    """Tests for scope_units."""

    def test_admin_sees_all(self, all_units, admin):
        assert [u.id for u in scope_units(all_units, admin)] == [1, 2, 3]

    def test_user_sees_accessible_units(self, all_units, manager):
        assert [u.id for u in scope_units(all_units, manager)] == [1, 2]

    def test_inactive_user_sees_nothing(self, all_units, manager):
        manager.status = UserStatus.INACTIVE
        assert scope_units(all_units, manager) == []

    def test_missing_user_sees_nothing(self, all_units):
        assert scope_units(all_units, None) == []

    def test_filters(self, all_units, admin):
        assert [u.id for u in scope_units(all_units, admin, contract_id=100)] == [1, 2]
        assert [u.id for u in scope_units(all_units, admin, market_type="free")] == [1, 3]
        assert [u.id for u in scope_units(all_units, admin, unit_id=3)] == [3]

    def test_unit_outside_scope_yields_empty(self, all_units, manager):
        assert scope_units(all_units, manager, unit_id=3) == []


class TestScopeExpenses:
    """Tests for scope_expenses."""

    def test_keeps_scoped_units(self, all_units):
        expenses = [make_expense(1, 1, 1, 10.0), make_expense(2, 3, 1, 10.0)]
        assert [e.id for e in scope_expenses(expenses, all_units[:2])] == [1]


class TestRequireActiveUser:
    """Tests for mutation guards."""

    def test_active_user_passes(self, manager):
        assert require_active_user(manager) is manager

    def test_inactive_user_denied(self, manager):
        manager.status = UserStatus.PENDING
        with pytest.raises(AccessDeniedError):
            require_active_user(manager)

    def test_missing_user_denied(self):
        with pytest.raises(AccessDeniedError):
            require_active_user(None)

    def test_can_access_unit(self, manager, admin):
        assert can_access_unit(manager, 1)
        assert not can_access_unit(manager, 3)
        assert can_access_unit(admin, 3)
