"""Report routes."""

from fastapi import APIRouter, Depends

from energy_tracker.config import Config
from energy_tracker.db import Database, User
from energy_tracker.services.report_service import ReportService
from energy_tracker.web.deps import get_config, get_current_user, get_db
from energy_tracker.web.schemas import ReportRequest

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("/generate")
async def generate_report(
    body: ReportRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    config: Config = Depends(get_config),
):
    """Compose the competence report and email it to the recipients."""
    service = ReportService(db, config)
    result = service.generate_and_send(user, body.competence_id, body.emails, body.contract_id)
    return {
        "message": f"Report sent to {result.sent} of {len(result.recipients)} recipients",
        "sent": result.sent,
        "failed": result.failed,
        "report": result.report.to_dict(),
    }
