from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from recipegen.core.database import get_session
from recipegen.core.errors import AuthenticationFailed
from recipegen.models.users import User

from .security import decode_access_token, user_id_from_payload

bearer_scheme = HTTPBearer(auto_error=False)


def _user_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    session: Session,
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed("Access token required", code="TOKEN_MISSING")
    payload = decode_access_token(credentials.credentials)
    # The token may outlive the account.
    user = session.get(User, user_id_from_payload(payload))
    if user is None:
        raise AuthenticationFailed("User not found", code="USER_NOT_FOUND")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    return _user_from_credentials(credentials, session)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get ``None``. A bad token still fails."""
    if credentials is None:
        return None
    return _user_from_credentials(credentials, session)
