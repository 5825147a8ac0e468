"""Audit log routes."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from energy_tracker.db import Database, User
from energy_tracker.web.deps import get_db, require_admin

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(15, ge=1, le=200),
    user: User = Depends(require_admin),
    db: Database = Depends(get_db),
):
    """Paginated audit log, newest first."""
    result = db.get_audit_logs(page=page, limit=limit)
    result["logs"] = [asdict(entry) for entry in result["logs"]]
    return result
