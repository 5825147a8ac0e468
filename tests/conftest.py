"""Pytest configuration and fixtures."""

import os
import tempfile
from datetime import date
from pathlib import Path

import pytest

from energy_tracker.db.repository import (
    Competence,
    Database,
    DistributorDetails,
    Estimate,
    Expense,
    ExpenseType,
    MarketType,
    Unit,
    User,
    UserRole,
    UserStatus,
)


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    os.unlink(f.name)


@pytest.fixture
def db(temp_db):
    """Create initialized database."""
    database = Database(temp_db)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def competences() -> list[Competence]:
    """January through March 2024."""
    return [
        Competence(id=1, year=2024, month=1),
        Competence(id=2, year=2024, month=2),
        Competence(id=3, year=2024, month=3),
    ]


@pytest.fixture
def units() -> list[Unit]:
    """One free-market and one regulated unit."""
    return [
        Unit(id=10, name="Plant A", market_type=MarketType.FREE),
        Unit(id=20, name="Office B", market_type=MarketType.REGULATED),
    ]


@pytest.fixture
def admin() -> User:
    return User(
        id=1,
        name="Admin",
        email="admin@example.com",
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE,
    )


def make_expense(
    id: int,
    unit_id: int,
    competence_id: int,
    amount: float,
    expense_type: ExpenseType = ExpenseType.RETAILER,
    due_date: date = date(2024, 3, 10),
    details: DistributorDetails | None = None,
) -> Expense:
    """Build an in-memory expense."""
    return Expense(
        id=id,
        unit_id=unit_id,
        competence_id=competence_id,
        expense_type=expense_type,
        amount=amount,
        due_date=due_date,
        distributor_details=details,
    )


def make_estimate(unit_id: int, competence_id: int, amount: float) -> Estimate:
    return Estimate(id=None, unit_id=unit_id, competence_id=competence_id, amount=amount)
