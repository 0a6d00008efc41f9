"""
Centralized error taxonomy for trigger runs, plus the HTTP mapping used by routes.

Run-level errors (ConfigurationError, DataFetchError) abort a whole driver run with every cursor
untouched. Candidate-level errors (TransientDispatchError, MalformedCandidate) are recorded in the
run report and the run moves on to the next candidate.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException


class NotifyError(Exception):
    """Base class for engine errors."""


class ConfigurationError(NotifyError):
    """A required external dependency (feed URL, APNs credentials, ...) is unavailable."""


class DataFetchError(NotifyError):
    """A source feed could not be read. Safe to retry on the next cadence."""


class TransientDispatchError(NotifyError):
    """Send failed for one user/item. Cursor stays put so the next run retries naturally."""

    def __init__(self, message: str, *, user_id: str | None = None, sent: int = 0):
        super().__init__(message)
        self.user_id = user_id
        self.sent = sent


class MalformedCandidate(NotifyError):
    """A candidate is missing a required field. Skipped and logged, never fatal."""

    def __init__(self, message: str, *, item_id: str | None = None):
        super().__init__(message)
        self.item_id = item_id


# Errors that abort a run instead of a single candidate
RUN_ABORTING_ERRORS: tuple[type[NotifyError], ...] = (ConfigurationError, DataFetchError)

# ---------------------------------------------------------------------------
# HTTP mapping: (exception type, status_code). First match wins.
# ---------------------------------------------------------------------------

STATUS_BAD_GATEWAY = 502  # source feed unreachable
STATUS_SERVICE_UNAVAILABLE = 503  # dependency not configured
STATUS_UNPROCESSABLE = 422
STATUS_INTERNAL_ERROR = 500

NOTIFY_ERROR_RULES: list[tuple[Callable[[Exception], bool], int]] = [
    (lambda e: isinstance(e, ConfigurationError), STATUS_SERVICE_UNAVAILABLE),
    (lambda e: isinstance(e, DataFetchError), STATUS_BAD_GATEWAY),
    (lambda e: isinstance(e, MalformedCandidate), STATUS_UNPROCESSABLE),
]


def notify_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception raised while running a trigger into an HTTPException.
    Uses NOTIFY_ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for predicate, status_code in NOTIFY_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
