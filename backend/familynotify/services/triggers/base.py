"""
Shared plumbing for trigger drivers.

A driver is a plain function run(ctx, report). Everything it needs (db session, cursor store,
preferences, dispatcher, delivery log, recipients, feeds, now) arrives on the TriggerContext;
there is no module-level state. Per-candidate work runs inside report.attempt(...), which turns
candidate-level errors into recorded outcomes so one failure never stops the rest of the run.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, Protocol

from sqlalchemy.orm import Session

from familynotify.core.clock import ensure_utc, utcnow
from familynotify.core.errors import RUN_ABORTING_ERRORS, MalformedCandidate, TransientDispatchError
from familynotify.services.cursor_store import CursorStore
from familynotify.services.delivery_log import OUTCOME_FAILED, OUTCOME_SENT, DeliveryLog
from familynotify.services.dispatch import DispatchClient, DispatchResult
from familynotify.services.preferences import PreferenceSource

logger = logging.getLogger(__name__)

# Candidate outcomes
SENT = "sent"
FAILED = "failed"
SKIPPED = "skipped"  # already handled (reminded, no channel, still editing)
FILTERED = "filtered"  # vetoed by preferences
INITIALIZED = "initialized"  # first observation, cursor set without sending
MALFORMED = "malformed"
ERROR = "error"
OUTCOMES = (SENT, FAILED, SKIPPED, FILTERED, INITIALIZED, MALFORMED, ERROR)


class RecipientDirectory(Protocol):
    def recipient_ids(self) -> list[str]:
        ...


class Feeds(Protocol):
    def news(self): ...
    def standings(self): ...
    def sessions(self): ...
    def calendar_events(self): ...
    def routines(self): ...
    def bin_collections(self): ...
    def chores(self): ...


@dataclass
class CandidateOutcome:
    key: str
    outcome: str
    user_id: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "outcome": self.outcome, "user_id": self.user_id, "detail": self.detail}


@dataclass
class RunReport:
    trigger: str
    started_at: datetime = field(default_factory=utcnow)
    outcomes: list[CandidateOutcome] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    aborted: bool = False
    abort_reason: Optional[str] = None
    error: Optional[Exception] = None
    timed_out: bool = False
    finished_at: Optional[datetime] = None

    def add(self, outcome: str, key: str, *, user_id: str | None = None, detail: str | None = None) -> None:
        self.outcomes.append(CandidateOutcome(key=key, outcome=outcome, user_id=user_id, detail=detail))

    def add_malformed(self, errors: list[MalformedCandidate]) -> None:
        for e in errors:
            self.add(MALFORMED, e.item_id or "?", detail=str(e))

    def count(self, outcome: str) -> int:
        return sum(1 for o in self.outcomes if o.outcome == outcome)

    @property
    def sent(self) -> int:
        return self.count(SENT)

    @contextmanager
    def attempt(self, key: str, user_id: str | None = None) -> Iterator[None]:
        """Isolate one candidate: dispatch and data problems are recorded, the run continues."""
        try:
            yield
        except RUN_ABORTING_ERRORS:
            raise
        except TransientDispatchError as e:
            logger.warning("[%s] send failed for %s (%s): %s", self.trigger, user_id or "-", key, e)
            self.add(FAILED, key, user_id=user_id, detail=str(e))
        except MalformedCandidate as e:
            logger.warning("[%s] malformed candidate %s: %s", self.trigger, key, e)
            self.add(MALFORMED, key, user_id=user_id, detail=str(e))
        except Exception as e:
            logger.exception("[%s] unexpected error on %s", self.trigger, key)
            self.add(ERROR, key, user_id=user_id, detail=f"{type(e).__name__}: {e}")

    def abort(self, exc: Exception) -> None:
        self.aborted = True
        self.error = exc
        self.abort_reason = f"{type(exc).__name__}: {exc}"

    def finish(self) -> None:
        self.finished_at = utcnow()

    def counts(self) -> dict[str, int]:
        return {o: self.count(o) for o in OUTCOMES if self.count(o)}

    def summary_line(self) -> str:
        parts = [f"{k}={v}" for k, v in self.counts().items()]
        parts.extend(f"{k}={v}" for k, v in self.stats.items())
        if self.aborted:
            parts.append(f"aborted ({self.abort_reason})")
        if self.timed_out:
            parts.append("timed out")
        return ", ".join(parts) or "no-op"

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "timed_out": self.timed_out,
            "counts": self.counts(),
            "stats": dict(self.stats),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class TriggerContext:
    """Everything one driver run may touch. Built per run; nothing survives between runs."""

    def __init__(
        self,
        db: Session,
        *,
        now: datetime | None = None,
        cursors: CursorStore | None = None,
        preferences: PreferenceSource,
        recipients: RecipientDirectory,
        delivery_log: DeliveryLog | None = None,
        feeds: Feeds | None = None,
        dispatcher: DispatchClient | None = None,
        dispatcher_factory: Callable[[], DispatchClient] | None = None,
        deadline: float | None = None,
    ):
        self.db = db
        self.now = ensure_utc(now) or utcnow()
        self.cursors = cursors or CursorStore(db)
        self.preferences = preferences
        self.recipients = recipients
        self.delivery_log = delivery_log or DeliveryLog(db)
        self.feeds = feeds
        self._dispatcher = dispatcher
        self._dispatcher_factory = dispatcher_factory
        self.deadline = deadline  # time.monotonic() value

    @property
    def dispatcher(self) -> DispatchClient:
        return self.ensure_dispatcher()

    def ensure_dispatcher(self) -> DispatchClient:
        """Build the dispatcher on first use; raises ConfigurationError when this run cannot send."""
        # Lazy so drivers that never send don't need APNs configured
        if self._dispatcher is None:
            if self._dispatcher_factory is None:
                raise RuntimeError("no dispatcher configured for this run")
            self._dispatcher = self._dispatcher_factory()
        return self._dispatcher

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline


def stop_if_expired(ctx: TriggerContext, report: RunReport) -> bool:
    """Run-level timeout: stop scanning; everything already committed stays committed."""
    if ctx.expired():
        if not report.timed_out:
            logger.warning("[%s] run deadline reached; stopping scan", report.trigger)
        report.timed_out = True
        return True
    return False


def deliver(
    ctx: TriggerContext,
    *,
    user_id: str,
    category: str,
    type: str,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
) -> DispatchResult:
    """
    Send one notification and log the attempt. Raises TransientDispatchError when nothing was
    delivered, so the caller leaves its cursor or reminder status untouched.
    """
    payload = {"type": type, **(data or {})}
    result = ctx.dispatcher.send(user_id, title, body, payload)
    if not result.ok:
        ctx.delivery_log.record(
            user_id=user_id,
            category=category,
            type=type,
            title=title,
            body=body,
            payload={**payload, "error": result.error},
            outcome=OUTCOME_FAILED,
        )
        raise TransientDispatchError(result.error or "send failed", user_id=user_id, sent=result.sent)
    ctx.delivery_log.record(
        user_id=user_id,
        category=category,
        type=type,
        title=title,
        body=body,
        payload=payload,
        outcome=OUTCOME_SENT,
    )
    return result


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
