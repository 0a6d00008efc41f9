"""Run trigger drivers on demand (external cron services, manual runs)."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from familynotify.api.deps import require_cron_secret
from familynotify.core.errors import notify_error_to_http
from familynotify.db.session import get_db
from familynotify.services.triggers.registry import list_triggers
from familynotify.services.triggers.runner import run_trigger

router = APIRouter(dependencies=[Depends(require_cron_secret)])
logger = logging.getLogger(__name__)


@router.get("/triggers")
def list_trigger_names() -> dict[str, Any]:
    return {"triggers": list_triggers()}


@router.post("/triggers/{name}")
def run_trigger_now(name: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """
    Run one driver now and return its report. An aborted run (feed down, APNs not configured)
    maps to 502/503 with the report in the error detail.
    """
    if name not in list_triggers():
        raise HTTPException(status_code=404, detail=f"Unknown trigger: {name}")
    report = run_trigger(name, db)
    if report.aborted:
        http_error = notify_error_to_http(report.error)
        raise HTTPException(
            status_code=http_error.status_code,
            detail={"error": report.abort_reason, "report": report.to_dict()},
        )
    return report.to_dict()
