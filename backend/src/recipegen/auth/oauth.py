"""
Third-party identity federation (Google, GitHub).

Every provider reduces to the same two steps: send the browser to a consent
page, then trade the returned ``code`` for an :class:`ExternalIdentity`.
:func:`find_or_create_user` turns that identity into a local account, after
which the caller issues the usual bearer token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlencode

import requests
from sqlmodel import Session, select

from recipegen.core.config import Settings, get_settings
from recipegen.core.errors import NotFound, UpstreamError
from recipegen.models.users import User

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10


@dataclass(frozen=True)
class ExternalIdentity:
    provider: str
    email: str
    name: str


def _http_session() -> requests.Session:
    s = requests.Session()
    s.headers.update({"Accept": "application/json", "User-Agent": "RecipeGenerator/0.1"})
    return s


class OAuthProvider:
    name: str = ""
    authorize_endpoint: str = ""
    token_endpoint: str = ""
    scope: str = ""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
            "response_type": "code",
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    def _exchange_code(self, http: requests.Session, code: str) -> str:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            r = http.post(self.token_endpoint, data=data, timeout=HTTP_TIMEOUT)
        except requests.RequestException as e:
            raise UpstreamError(f"{self.name} token request failed", code="OAUTH_ERROR", details=str(e), status_code=502)
        if r.status_code != 200:
            raise UpstreamError(f"{self.name} token exchange failed: HTTP {r.status_code}", code="OAUTH_ERROR", status_code=502)
        token = (r.json() or {}).get("access_token")
        if not token:
            raise UpstreamError(f"{self.name} returned no access token", code="OAUTH_ERROR", status_code=502)
        return token

    def _get_json(self, http: requests.Session, url: str, access_token: str):
        try:
            r = http.get(url, headers={"Authorization": f"Bearer {access_token}"}, timeout=HTTP_TIMEOUT)
        except requests.RequestException as e:
            raise UpstreamError(f"{self.name} profile request failed", code="OAUTH_ERROR", details=str(e), status_code=502)
        if r.status_code != 200:
            raise UpstreamError(f"{self.name} profile request failed: HTTP {r.status_code}", code="OAUTH_ERROR", status_code=502)
        return r.json()

    def fetch_identity(self, code: str) -> ExternalIdentity:
        raise NotImplementedError


class GoogleOAuthProvider(OAuthProvider):
    name = "google"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    userinfo_endpoint = "https://openidconnect.googleapis.com/v1/userinfo"
    scope = "openid profile email"

    def fetch_identity(self, code: str) -> ExternalIdentity:
        http = _http_session()
        access_token = self._exchange_code(http, code)
        profile = self._get_json(http, self.userinfo_endpoint, access_token)
        email = (profile.get("email") or "").strip().lower()
        if not email:
            raise UpstreamError("Google account has no email address", code="OAUTH_ERROR", status_code=502)
        return ExternalIdentity(provider=self.name, email=email, name=profile.get("name") or email)


class GitHubOAuthProvider(OAuthProvider):
    name = "github"
    authorize_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    user_endpoint = "https://api.github.com/user"
    emails_endpoint = "https://api.github.com/user/emails"
    scope = "user:email"

    def fetch_identity(self, code: str) -> ExternalIdentity:
        http = _http_session()
        access_token = self._exchange_code(http, code)
        profile = self._get_json(http, self.user_endpoint, access_token)
        email = (profile.get("email") or "").strip().lower()
        if not email:
            # private address: ask the emails endpoint for the primary one
            emails = self._get_json(http, self.emails_endpoint, access_token) or []
            primary = next((e for e in emails if e.get("primary") and e.get("verified")), None)
            email = ((primary or {}).get("email") or "").strip().lower()
        if not email:
            raise UpstreamError("GitHub account has no email address", code="OAUTH_ERROR", status_code=502)
        name = profile.get("name") or profile.get("login") or email
        return ExternalIdentity(provider=self.name, email=email, name=name)


PROVIDERS = {
    "google": (GoogleOAuthProvider, "google_client_id", "google_client_secret"),
    "github": (GitHubOAuthProvider, "github_client_id", "github_client_secret"),
}


def enabled_providers(settings: Optional[Settings] = None) -> Dict[str, OAuthProvider]:
    settings = settings or get_settings()
    out: Dict[str, OAuthProvider] = {}
    for name, (cls, id_attr, secret_attr) in PROVIDERS.items():
        client_id = getattr(settings, id_attr)
        client_secret = getattr(settings, secret_attr)
        if client_id and client_secret:
            redirect_uri = f"{settings.oauth_redirect_base.rstrip('/')}/api/auth/{name}/callback"
            out[name] = cls(client_id, client_secret, redirect_uri)
    return out


def get_provider(name: str, settings: Optional[Settings] = None) -> OAuthProvider:
    provider = enabled_providers(settings).get(name)
    if provider is None:
        raise NotFound(f"OAuth provider '{name}' is not configured", code="PROVIDER_NOT_CONFIGURED")
    return provider


def find_or_create_user(session: Session, identity: ExternalIdentity) -> User:
    """Map an external identity onto a local user; password checks never apply here."""
    email = identity.email.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        return user
    user = User(email=email, name=identity.name or email, oauth_provider=identity.provider)
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Created user %s via %s login", user.id, identity.provider)
    return user
