"""Dashboard routes."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from energy_tracker.db import Database, MarketType, User
from energy_tracker.services.dashboard_service import DashboardFilters, DashboardService
from energy_tracker.web.deps import get_current_user, get_db

router = APIRouter(prefix="/api", tags=["dashboard"])


def dashboard_filters(
    contract_id: int | None = Query(None),
    market_type: MarketType | None = Query(None),
    unit_id: int | None = Query(None),
    competence_id: int | None = Query(None),
) -> DashboardFilters:
    """Collect the shared filter query parameters."""
    return DashboardFilters(
        contract_id=contract_id,
        market_type=market_type,
        unit_id=unit_id,
        competence_id=competence_id,
    )


@router.get("/dashboard")
async def get_dashboard(
    filters: DashboardFilters = Depends(dashboard_filters),
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """KPIs and chart series for the user's units."""
    service = DashboardService(db)
    return service.get_dashboard(user, filters).to_dict()


@router.get("/units/details/{unit_name}")
async def get_unit_details(
    unit_name: str,
    competence_id: int | None = Query(None),
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Cost composition and consumption of one unit."""
    service = DashboardService(db)
    details = service.get_unit_details(user, unit_name, competence_id)
    if details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unit not found")
    return details.to_dict()
