"""Estimate routes."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from energy_tracker.db import Database, User
from energy_tracker.exceptions import InvalidInputError
from energy_tracker.processing.permissions import scope_units
from energy_tracker.services.expense_service import ExpenseService
from energy_tracker.web.deps import get_current_user, get_db
from energy_tracker.web.schemas import EstimatesIn

router = APIRouter(prefix="/api/estimates", tags=["estimates"])


@router.get("")
async def list_estimates(
    competence_id: int | None = Query(None),
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Estimates of one competence for the user's units."""
    if competence_id is None:
        raise InvalidInputError("competence_id is required")
    unit_ids = {u.id for u in scope_units(db.list_units(), user)}
    return [asdict(e) for e in db.list_estimates(competence_id) if e.unit_id in unit_ids]


@router.post("")
async def save_estimates(
    body: EstimatesIn,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Create or replace the estimates of one competence."""
    service = ExpenseService(db)
    count = service.save_estimates(user, body.competence_id, body.estimates)
    return {"message": "Estimates saved", "count": count}
