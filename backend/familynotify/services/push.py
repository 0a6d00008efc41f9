"""
Send push notifications via Apple Push Notification service (APNs).
Requires APNS_KEY_ID, APNS_TEAM_ID, APNS_BUNDLE_ID, and APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64.
ApnsSender.from_settings raises ConfigurationError when any of them is missing.
"""
import base64
import binascii
import logging
import time
from pathlib import Path
from typing import Any

import httpx
import jwt

from familynotify.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# APNs host: sandbox for dev builds, production for release
APNS_SANDBOX = "https://api.sandbox.push.apple.com"
APNS_PRODUCTION = "https://api.push.apple.com"

# APNs accepts provider tokens with iat within the last hour
_JWT_EXPIRY_SECONDS = 55 * 60  # refresh a bit before 1 hour


def load_p8_key(path: str = "", base64_content: str = "") -> str | None:
    """Load the .p8 key from base64 content or a file path. Return None if neither is usable."""
    if base64_content:
        try:
            return base64.b64decode(base64_content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            logger.warning("APNS_KEY_P8_BASE64 decode failed: %s", e)
            return None
    if path and Path(path).exists():
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("APNS_KEY_P8_PATH read failed: %s", e)
            return None
    return None


class ApnsSender:
    """One APNs provider identity. The signed provider token is cached per instance."""

    def __init__(
        self,
        *,
        key_id: str,
        team_id: str,
        bundle_id: str,
        p8_key: str,
        use_sandbox: bool = True,
        timeout: float = 10.0,
    ):
        self.key_id = key_id
        self.team_id = team_id
        self.bundle_id = bundle_id
        self.p8_key = p8_key
        self.base_url = APNS_SANDBOX if use_sandbox else APNS_PRODUCTION
        self.timeout = timeout
        self._jwt_cache: tuple[str, float] | None = None

    @classmethod
    def from_settings(cls, settings) -> "ApnsSender":
        missing = [
            name
            for name, value in (
                ("APNS_KEY_ID", settings.apns_key_id),
                ("APNS_TEAM_ID", settings.apns_team_id),
                ("APNS_BUNDLE_ID", settings.apns_bundle_id),
            )
            if not value
        ]
        p8 = load_p8_key(settings.apns_key_p8_path, settings.apns_key_p8_base64)
        if not p8:
            missing.append("APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64")
        if missing:
            raise ConfigurationError(f"APNs not configured: missing {', '.join(missing)}")
        return cls(
            key_id=settings.apns_key_id,
            team_id=settings.apns_team_id,
            bundle_id=settings.apns_bundle_id,
            p8_key=p8,
            use_sandbox=settings.apns_use_sandbox,
        )

    def provider_token(self) -> str:
        now = time.time()
        if self._jwt_cache and self._jwt_cache[1] > now:
            return self._jwt_cache[0]
        try:
            token = jwt.encode(
                {"iss": self.team_id, "iat": int(now)},
                self.p8_key,
                algorithm="ES256",
                headers={"alg": "ES256", "kid": self.key_id},
            )
        except (ValueError, jwt.PyJWTError) as e:
            raise ConfigurationError(f"APNs JWT build failed: {e}") from e
        self._jwt_cache = (token, now + _JWT_EXPIRY_SECONDS)
        return token

    @staticmethod
    def build_payload(title: str, body: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "aps": {
                "alert": {"title": title, "body": body},
                "sound": "default",
            }
        }
        # Custom keys ride next to "aps" so the app can deep-link
        for key, value in (data or {}).items():
            if key != "aps":
                payload[key] = value
        return payload

    def send(self, device_token: str, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        """
        Send one push notification to an iOS device.
        Returns True if APNs accepted it, False on an APNs or network error.
        """
        url = f"{self.base_url}/3/device/{device_token}"
        headers = {
            "authorization": f"bearer {self.provider_token()}",
            "apns-topic": self.bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
        }
        try:
            with httpx.Client(http2=True, timeout=self.timeout) as client:
                resp = client.post(url, json=self.build_payload(title, body, data), headers=headers)
        except httpx.HTTPError as e:
            logger.warning("APNs request failed for token %s...: %s", device_token[:20], e)
            return False
        if resp.status_code == 200:
            return True
        logger.warning("APNs returned %s for token %s...: %s", resp.status_code, device_token[:20], resp.text)
        return False
