from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from recipegen.auth.dependencies import get_current_user
from recipegen.auth.oauth import find_or_create_user, get_provider
from recipegen.auth.security import (
    create_access_token,
    create_state_token,
    hash_password,
    verify_password,
    verify_state_token,
)
from recipegen.core.config import get_settings
from recipegen.core.database import get_session
from recipegen.core.errors import ApiError, AuthenticationFailed, ValidationFailed
from recipegen.models.users import User, UserPreferences
from recipegen.schemas import (
    AuthResponse,
    LoginRequest,
    MeOut,
    PreferencesIn,
    RegisterRequest,
    UserOut,
)
from recipegen.utils.dates import utc_now
from recipegen.utils.validators import MIN_PASSWORD_LENGTH, is_valid_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user.id, user.email),
        user=UserOut.model_validate(user),
    )


def _preferences_for(session: Session, user_id: int) -> Optional[UserPreferences]:
    return session.exec(select(UserPreferences).where(UserPreferences.user_id == user_id)).first()


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, session: Session = Depends(get_session)):
    email = (payload.email or "").strip().lower()
    name = (payload.name or "").strip()
    password = payload.password or ""

    if not email or not password or not name:
        raise ValidationFailed("Email, password, and name are required")
    if not is_valid_email(email):
        raise ValidationFailed("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if session.exec(select(User.id).where(User.email == email)).first() is not None:
        raise ValidationFailed("User already exists with this email", code="USER_EXISTS")

    user = User(email=email, name=name, password_hash=hash_password(password))
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # lost a race against a concurrent registration
        session.rollback()
        raise ValidationFailed("User already exists with this email", code="USER_EXISTS")
    session.refresh(user)
    logger.info("Registered user %s", user.id)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, session: Session = Depends(get_session)):
    email = (payload.email or "").strip().lower()
    if not email or not payload.password:
        raise ValidationFailed("Email and password are required")

    user = session.exec(select(User).where(User.email == email)).first()
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthenticationFailed("Invalid credentials", code="INVALID_CREDENTIALS")
    return _auth_response(user)


@router.get("/me")
def me(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    prefs = _preferences_for(session, user.id)
    out = MeOut(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at,
        oauth_provider=user.oauth_provider,
    )
    if prefs:
        out.dietary_preferences = list(prefs.dietary_preferences or [])
        out.allergies = list(prefs.allergies or [])
        out.dietary_restrictions = list(prefs.dietary_restrictions or [])
        out.nutritional_goals = dict(prefs.nutritional_goals or {})
    return {"user": out}


@router.put("/preferences")
def update_preferences(
    payload: PreferencesIn,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    prefs = _preferences_for(session, user.id)
    if prefs is None:
        prefs = UserPreferences(user_id=user.id)
    prefs.dietary_preferences = payload.dietary_preferences
    prefs.allergies = payload.allergies
    prefs.dietary_restrictions = payload.dietary_restrictions
    prefs.nutritional_goals = payload.nutritional_goals
    prefs.updated_at = utc_now()
    session.add(prefs)
    session.commit()
    return {"message": "Preferences updated successfully", "preferences": payload}


# ----------------------------
# Federated login
# ----------------------------

@router.get("/{provider}", include_in_schema=True)
def oauth_start(provider: str):
    oauth = get_provider(provider)
    return RedirectResponse(oauth.authorize_url(create_state_token(provider)))


@router.get("/{provider}/callback")
def oauth_callback(
    provider: str,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    settings = get_settings()
    client = settings.client_url.rstrip("/")
    oauth = get_provider(provider)
    if not code or not verify_state_token(state, provider):
        logger.warning("Rejected %s callback: missing code or bad state", provider)
        return RedirectResponse(f"{client}/auth/error")
    try:
        identity = oauth.fetch_identity(code)
        user = find_or_create_user(session, identity)
    except ApiError as exc:
        logger.warning("%s login failed: %s", provider, exc.message)
        return RedirectResponse(f"{client}/auth/error")
    token = create_access_token(user.id, user.email)
    return RedirectResponse(f"{client}/auth/callback?{urlencode({'token': token})}")
