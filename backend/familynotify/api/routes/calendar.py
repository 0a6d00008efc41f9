"""Calendar change hook: the calendar CRUD calls this after an event is created, changed or deleted."""
import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from familynotify.api.deps import require_cron_secret
from familynotify.core.errors import notify_error_to_http
from familynotify.db.session import get_db
from familynotify.services.feeds.types import CalendarEvent
from familynotify.services.triggers.calendar import FieldChange
from familynotify.services.triggers.runner import run_calendar_broadcast

router = APIRouter(dependencies=[Depends(require_cron_secret)])
logger = logging.getLogger(__name__)


class CalendarChangeBody(BaseModel):
    event: CalendarEvent
    actor_id: str = Field(..., min_length=1, description="User who made the change")
    changes: list[FieldChange] = Field(default_factory=list, description="Changed fields (kind=changed)")


@router.post("/calendar/events/{kind}")
def calendar_event_changed(
    kind: Literal["created", "changed", "deleted"],
    body: CalendarChangeBody,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    report = run_calendar_broadcast(db, kind=kind, event=body.event, actor_id=body.actor_id, changes=body.changes)
    if report.aborted:
        http_error = notify_error_to_http(report.error)
        raise HTTPException(
            status_code=http_error.status_code,
            detail={"error": report.abort_reason, "report": report.to_dict()},
        )
    return report.to_dict()
