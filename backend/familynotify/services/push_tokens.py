"""Push token directory: who holds a delivery channel, and where to send."""
import logging

from sqlalchemy.orm import Session

from familynotify.core.clock import utcnow
from familynotify.models.push_token import PushToken

logger = logging.getLogger(__name__)


class PushTokenRepository:
    def __init__(self, db: Session):
        self.db = db

    def register(self, user_id: str, device_token: str, platform: str = "ios") -> bool:
        """
        Idempotent: the same token is updated in place (owner and updated_at refreshed).
        Returns True when the token was new.
        """
        token_str = device_token.strip()
        existing = self.db.query(PushToken).filter(PushToken.device_token == token_str).first()
        if existing:
            existing.user_id = user_id
            existing.platform = platform
            existing.updated_at = utcnow()
            self.db.commit()
            return False
        self.db.add(PushToken(user_id=user_id, device_token=token_str, platform=platform))
        self.db.commit()
        logger.info("Registered push token for user=%s platform=%s", user_id, platform)
        return True

    def unregister(self, device_token: str) -> bool:
        deleted = (
            self.db.query(PushToken)
            .filter(PushToken.device_token == device_token.strip())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0

    def recipient_ids(self) -> list[str]:
        """Distinct users holding at least one delivery channel, in stable order."""
        rows = (
            self.db.query(PushToken.user_id)
            .filter(PushToken.user_id.isnot(None))
            .distinct()
            .order_by(PushToken.user_id.asc())
            .all()
        )
        return [r[0] for r in rows]

    def tokens_for(self, user_id: str) -> list[str]:
        rows = (
            self.db.query(PushToken.device_token)
            .filter(PushToken.user_id == user_id)
            .order_by(PushToken.id.asc())
            .all()
        )
        return [r[0] for r in rows]
