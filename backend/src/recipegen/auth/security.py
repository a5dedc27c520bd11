from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError
from werkzeug.security import check_password_hash, generate_password_hash

from recipegen.core.config import get_settings
from recipegen.core.errors import AuthenticationFailed, PermissionDenied


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_access_token(
    user_id: int,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Return a signed bearer token for the given user."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expires_minutes)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise AuthenticationFailed("Token has expired", code="TOKEN_EXPIRED") from exc
    except InvalidTokenError as exc:
        raise PermissionDenied("Invalid token", code="INVALID_TOKEN") from exc
    if not str(payload.get("sub", "")).isdigit():
        raise PermissionDenied("Invalid token", code="INVALID_TOKEN")
    return payload


def user_id_from_payload(payload: Dict[str, Any]) -> int:
    return int(payload["sub"])


def create_state_token(provider: str, minutes: int = 10) -> str:
    """Short-lived signed value for the OAuth ``state`` round trip."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {"provider": provider, "purpose": "oauth_state", "iat": now, "exp": now + timedelta(minutes=minutes)}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_state_token(state: Optional[str], provider: str) -> bool:
    if not state:
        return False
    settings = get_settings()
    try:
        payload = jwt.decode(state, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except InvalidTokenError:
        return False
    return payload.get("purpose") == "oauth_state" and payload.get("provider") == provider
