"""Shopping list hook: record one item change; the shopping driver batches and sends later."""
import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from familynotify.api.deps import require_cron_secret
from familynotify.core.clock import ensure_utc
from familynotify.core.errors import MalformedCandidate, notify_error_to_http
from familynotify.db.session import get_db
from familynotify.services.debounce import ChangeEventLog

router = APIRouter(dependencies=[Depends(require_cron_secret)])
logger = logging.getLogger(__name__)


class ShoppingChangeBody(BaseModel):
    user_id: str = Field(..., min_length=1)
    entity_name: str = Field(..., min_length=1, max_length=256, description="Item name as shown in the list")
    action: Literal["added", "removed", "completed"]
    occurred_at: datetime | None = None


@router.post("/shopping/changes", status_code=201)
def record_shopping_change(body: ShoppingChangeBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    try:
        event = ChangeEventLog(db).record(body.user_id, body.entity_name, body.action, body.occurred_at)
    except MalformedCandidate as e:
        logger.warning("Rejected shopping change from %s: %s", body.user_id, e)
        raise notify_error_to_http(e) from e
    return {
        "ok": True,
        "id": event.id,
        "user_id": event.user_id,
        "action": event.action,
        "occurred_at": ensure_utc(event.occurred_at).isoformat(),
    }
