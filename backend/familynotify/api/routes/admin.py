"""Admin: cursor inspection and reset, delivery log, retention, full state reset."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from familynotify.api.deps import require_cron_secret
from familynotify.db.session import get_db
from familynotify.services.admin_service import prune_retention, reset_cursor, reset_engine_state
from familynotify.services.cursor_store import CursorStore
from familynotify.services.delivery_log import DeliveryLog

router = APIRouter(dependencies=[Depends(require_cron_secret)])
logger = logging.getLogger(__name__)


class ResetCursorBody(BaseModel):
    user_id: str = Field(..., min_length=1)
    feed_key: str | None = Field(None, description="Omit to reset every feed and reminder mark of the user")


@router.post("/admin/cursors/reset")
def reset_user_cursor(body: ResetCursorBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    return reset_cursor(db, body.user_id, body.feed_key)


@router.get("/admin/cursors/{user_id}")
def list_user_cursors(user_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"user_id": user_id, "cursors": CursorStore(db).list_for_user(user_id)}


@router.get("/admin/delivery-log")
def list_delivery_log(
    db: Session = Depends(get_db),
    limit: int = Query(50, ge=1, le=500),
    category: str | None = Query(None, description="e.g. cron_execution, news, tasks"),
    user_id: str | None = Query(None),
) -> dict[str, Any]:
    return {"entries": DeliveryLog(db).recent(limit=limit, category=category, user_id=user_id)}


@router.post("/admin/prune")
def prune(db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"ok": True, "pruned": prune_retention(db)}


@router.post("/admin/reset-state")
def reset_state(db: Session = Depends(get_db)) -> dict[str, Any]:
    """
    Full reset: every cursor, reminder mark, pending change event and delivery log row.
    Each driver's next run starts over from its first-run policy. Preferences and tokens stay.
    """
    return reset_engine_state(db)
