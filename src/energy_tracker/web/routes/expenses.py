"""Expense routes."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from energy_tracker.db import Database, Expense, User
from energy_tracker.processing.aggregator import ExpenseGroup
from energy_tracker.processing.projector import UNKNOWN_UNIT
from energy_tracker.services.dashboard_service import DashboardFilters, DashboardService
from energy_tracker.services.expense_service import ExpenseService
from energy_tracker.web.deps import get_current_user, get_db
from energy_tracker.web.routes.dashboard import dashboard_filters
from energy_tracker.web.schemas import ExpenseIn

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


def expense_to_dict(expense: Expense) -> dict:
    return asdict(expense)


def group_to_dict(group: ExpenseGroup, unit_names: dict[int, str], labels: dict[int, str]) -> dict:
    return {
        "unit_id": group.unit_id,
        "unit_name": unit_names.get(group.unit_id, UNKNOWN_UNIT),
        "competence_id": group.competence_id,
        "competence": labels.get(group.competence_id),
        "total_real": group.total_real,
        "total_estimated": group.total_estimated,
        "savings": group.savings,
        "expenses": [expense_to_dict(e) for e in group.expenses],
    }


@router.get("")
async def list_expenses(
    filters: DashboardFilters = Depends(dashboard_filters),
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Expenses of the user's units."""
    service = DashboardService(db)
    return [expense_to_dict(e) for e in service.list_expenses(user, filters)]


@router.get("/groups")
async def list_expense_groups(
    filters: DashboardFilters = Depends(dashboard_filters),
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Expenses grouped by unit and competence, newest competence first."""
    service = DashboardService(db)
    groups = service.get_expense_groups(user, filters)
    unit_names = {u.id: u.name for u in db.list_units()}
    labels = {c.id: c.label for c in db.list_competences()}
    return [group_to_dict(g, unit_names, labels) for g in groups]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_expense(
    body: ExpenseIn,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Create an expense."""
    service = ExpenseService(db)
    return expense_to_dict(service.create_expense(user, body.to_input()))


@router.put("/{expense_id}")
async def update_expense(
    expense_id: int,
    body: ExpenseIn,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Replace an expense."""
    service = ExpenseService(db)
    expense = service.update_expense(user, expense_id, body.to_input())
    if expense is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense_to_dict(expense)


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: int,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Delete an expense."""
    service = ExpenseService(db)
    if not service.delete_expense(user, expense_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return {"message": "Expense deleted"}
