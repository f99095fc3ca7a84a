from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

import bcrypt
from jose import JWTError, jwt

from isodoc.core.config import get_settings
from isodoc.core.exceptions import AuthenticationError
from isodoc.models.base import utcnow

logger = logging.getLogger(__name__)

def hash_password(password: str) -> str:
    rounds = get_settings().BCRYPT_ROUNDS
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a bcrypt hash")
        return False

def session_expiry(remember: bool = False, now: Optional[datetime] = None) -> datetime:
    """One hour by default, seven days with remember-me."""
    settings = get_settings()
    now = now or utcnow()
    if remember:
        return now + timedelta(days=settings.REMEMBER_ME_TTL_DAYS)
    return now + timedelta(minutes=settings.SESSION_TTL_MINUTES)

def create_access_token(user_id: int, expires_at: datetime, remember: bool = False) -> str:
    settings = get_settings()
    to_encode = {
        "sub": str(user_id),
        "remember": remember,
        "exp": expires_at.replace(tzinfo=timezone.utc),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def decode_access_token(token: str) -> Dict[str, Any]:
    """Validate the signature only; the stored session expiry decides whether the session is alive."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        raise AuthenticationError("Invalid authentication token")
    if not payload.get("sub", "").isdigit():
        raise AuthenticationError("Invalid authentication token")
    return payload
