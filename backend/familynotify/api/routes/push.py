"""Push notification registration: device tokens per household member."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from familynotify.db.session import get_db
from familynotify.services.push_tokens import PushTokenRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    device_token: str = Field(..., min_length=1, max_length=256, description="APNs device token (hex string)")
    platform: str = Field(default="ios", pattern="^(ios|android)$")


class UnregisterPushBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=256)


@router.post("/push/register")
def register_push_token(body: RegisterPushBody, db: Session = Depends(get_db)):
    """
    Register a device for push notifications.
    Call this from the iOS app after receiving the device token from APNs.
    Idempotent: the same token is upserted (owner and updated_at refreshed).
    """
    created = PushTokenRepository(db).register(body.user_id, body.device_token.strip(), body.platform)
    return {"ok": True, "message": "Token registered" if created else "Token already registered"}


@router.post("/push/unregister")
def unregister_push_token(body: UnregisterPushBody, db: Session = Depends(get_db)):
    removed = PushTokenRepository(db).unregister(body.device_token.strip())
    return {"ok": True, "removed": removed}
