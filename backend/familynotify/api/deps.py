"""Shared route dependencies."""
import hmac

from fastapi import Header, HTTPException

from familynotify.config import settings


def require_cron_secret(authorization: str | None = Header(None)) -> None:
    """
    Bearer CRON_SECRET check for trigger and admin routes (what external cron services send).
    An empty CRON_SECRET disables the check for local development.
    """
    secret = settings.cron_secret
    if not secret:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
