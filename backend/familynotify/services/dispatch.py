"""
Dispatch client: Send(user_id, title, body, data) -> DispatchResult(sent, error).

Dispatch is not idempotent by itself; drivers guarantee no duplicates through cursors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from sqlalchemy.orm import Session

from familynotify.config import settings
from familynotify.services.push import ApnsSender
from familynotify.services.push_tokens import PushTokenRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    sent: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.sent > 0


class DispatchClient(Protocol):
    def send(self, user_id: str, title: str, body: str, data: dict[str, Any] | None = None) -> DispatchResult:
        ...


class ApnsDispatchClient:
    """Sends to every device token the user holds; success = at least one device accepted."""

    def __init__(self, tokens: PushTokenRepository, sender: ApnsSender):
        self.tokens = tokens
        self.sender = sender

    def send(self, user_id: str, title: str, body: str, data: dict[str, Any] | None = None) -> DispatchResult:
        device_tokens = self.tokens.tokens_for(user_id)
        if not device_tokens:
            return DispatchResult(sent=0, error="no push tokens")
        sent = sum(1 for token in device_tokens if self.sender.send(token, title, body, data))
        if sent == 0:
            return DispatchResult(sent=0, error=f"APNs rejected all {len(device_tokens)} token(s)")
        return DispatchResult(sent=sent)


class LoggingDispatchClient:
    """Dry-run client: logs the notification and reports every token as delivered."""

    def __init__(self, tokens: PushTokenRepository):
        self.tokens = tokens

    def send(self, user_id: str, title: str, body: str, data: dict[str, Any] | None = None) -> DispatchResult:
        device_tokens = self.tokens.tokens_for(user_id)
        if not device_tokens:
            return DispatchResult(sent=0, error="no push tokens")
        logger.info("[dry-run] push to %s (%s device(s)): %s | %s", user_id, len(device_tokens), title, body)
        return DispatchResult(sent=len(device_tokens))


def build_dispatch_client(db: Session) -> DispatchClient:
    """Pick the client for DISPATCH_MODE. Raises ConfigurationError when APNs is selected but not configured."""
    tokens = PushTokenRepository(db)
    if settings.dispatch_mode == "log":
        return LoggingDispatchClient(tokens)
    return ApnsDispatchClient(tokens, ApnsSender.from_settings(settings))
