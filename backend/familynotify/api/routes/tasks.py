"""Task lifecycle hooks: schedule reminders at creation, keep them in step with status changes."""
import logging
from datetime import date, datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from familynotify.api.deps import require_cron_secret
from familynotify.core.clock import ensure_utc
from familynotify.db.session import get_db
from familynotify.services.triggers.tasks import on_task_status_changed, schedule_smart_reminders

router = APIRouter(dependencies=[Depends(require_cron_secret)])
logger = logging.getLogger(__name__)


class ScheduleRemindersBody(BaseModel):
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=512)
    created_at: datetime | None = None
    due_date: date | None = None
    due_context: str | None = Field(None, description="Free text, e.g. 'this weekend'")
    urgency: Literal["low", "normal", "high", "urgent"] | None = None
    assignee_name: str | None = None
    category_emoji: str | None = None


class TaskStatusBody(BaseModel):
    status: Literal["pending", "in_progress", "snoozed", "completed", "archived"]
    snoozed_until: datetime | None = None


@router.post("/tasks/{task_id}/reminders", status_code=201)
def schedule_task_reminders(task_id: str, body: ScheduleRemindersBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    rows = schedule_smart_reminders(db, task_id=task_id, **body.model_dump())
    return {
        "task_id": task_id,
        "reminders": [
            {
                "id": r.id,
                "scheduled_for": ensure_utc(r.scheduled_for).isoformat(),
                "context_reason": r.context_reason,
                "attempt_number": r.attempt_number,
            }
            for r in rows
        ],
    }


@router.post("/tasks/{task_id}/status")
def task_status_changed(task_id: str, body: TaskStatusBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    return on_task_status_changed(db, task_id=task_id, status=body.status, snoozed_until=body.snoozed_until)
