"""
Signed, expiring links.

A link is three path segments: a base64url JSON payload, the expiry in epoch
milliseconds, and an HMAC-SHA256 signature over ``<payload>.<expires>``.
Nothing is stored server side; a link is valid while the signature matches
and the expiry has not passed.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

ACTION_VIEW = "view"
ACTION_DOWNLOAD = "download"
ACTION_RESET_PASSWORD = "reset-password"
ACTIONS = (ACTION_VIEW, ACTION_DOWNLOAD, ACTION_RESET_PASSWORD)

DEFAULT_LINK_HOURS = 24
RESET_LINK_HOURS = 1
OAUTH_STATE_MINUTES = 15


@dataclass(frozen=True)
class SecureLinkData:
    document_id: Optional[int]
    user_id: int
    action: str
    expires: int


def _now_ms() -> int:
    return int(time.time() * 1000)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


class SecureLinkSigner:
    def __init__(self, secret: Optional[str] = None):
        if not secret:
            logger.warning("LINK_SECRET_KEY not set, secure links will not survive a restart")
            secret = secrets.token_hex(32)
        self._secret = secret.encode("utf-8")

    def _sign(self, encoded: str, expires: int) -> str:
        digest = hmac.new(self._secret, f"{encoded}.{expires}".encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(digest)

    def generate(
        self,
        document_id: Optional[int],
        user_id: int,
        action: str,
        expiry_hours: float = DEFAULT_LINK_HOURS,
        now_ms: Optional[int] = None,
    ) -> str:
        """Path of a new link, relative to the API prefix: /secure/<payload>/<expires>/<signature>."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown link action: {action}")
        expires = (now_ms if now_ms is not None else _now_ms()) + int(expiry_hours * 3600 * 1000)
        payload = {"documentId": document_id, "userId": user_id, "action": action, "expires": expires}
        encoded = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"/secure/{encoded}/{expires}/{self._sign(encoded, expires)}"

    def verify(self, encoded: str, expires: str, signature: str, now_ms: Optional[int] = None) -> Optional[SecureLinkData]:
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            return None
        if (now_ms if now_ms is not None else _now_ms()) > expires_at:
            return None
        if not hmac.compare_digest(self._sign(encoded, expires_at), signature):
            return None
        try:
            payload = json.loads(_b64decode(encoded))
        except (binascii.Error, ValueError):
            return None
        if payload.get("expires") != expires_at or payload.get("action") not in ACTIONS:
            return None
        return SecureLinkData(
            document_id=payload.get("documentId"),
            user_id=payload.get("userId"),
            action=payload["action"],
            expires=expires_at,
        )

    def sign_state(self, tenant_id: int, user_id: int, now_ms: Optional[int] = None) -> str:
        """OAuth state binding a consent round trip to one tenant: <payload>.<expires>.<signature>."""
        expires = (now_ms if now_ms is not None else _now_ms()) + OAUTH_STATE_MINUTES * 60 * 1000
        payload = {"tenantId": tenant_id, "userId": user_id, "expires": expires}
        encoded = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{encoded}.{expires}.{self._sign(encoded, expires)}"

    def verify_state(self, state: str, now_ms: Optional[int] = None) -> Optional[Tuple[int, int]]:
        """(tenant id, user id) from a state made by sign_state, or None."""
        parts = state.split(".") if state else []
        if len(parts) != 3:
            return None
        encoded, expires, signature = parts
        try:
            expires_at = int(expires)
        except ValueError:
            return None
        if (now_ms if now_ms is not None else _now_ms()) > expires_at:
            return None
        if not hmac.compare_digest(self._sign(encoded, expires_at), signature):
            return None
        try:
            payload = json.loads(_b64decode(encoded))
        except (binascii.Error, ValueError):
            return None
        tenant_id, user_id = payload.get("tenantId"), payload.get("userId")
        if payload.get("expires") != expires_at or not isinstance(tenant_id, int) or not isinstance(user_id, int):
            return None
        return tenant_id, user_id
