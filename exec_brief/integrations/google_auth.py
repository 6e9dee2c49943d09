"""
Executive Brief: Google OAuth.

Gmail and Calendar share one Google authorization. The web consent flow
(authorize → callback) produces an access/refresh token pair that is stored
in the oauth_tokens table; the token store refreshes it when it expires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.labels",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
_TOKEN_URI = "https://oauth2.googleapis.com/token"
_DEFAULT_LIFETIME = timedelta(hours=1)


class OAuthConfigError(Exception):
    """Raised when the Google OAuth client id/secret are not configured."""


@dataclass
class OAuthTokenResult:
    """Normalized token response from a code exchange or refresh."""

    access_token: str
    refresh_token: str | None
    expires_at: datetime
    scopes: str = ""


def _client_credentials() -> tuple[str, str]:
    from exec_brief.config import settings

    client_id = settings.GOOGLE_OAUTH_CLIENT_ID
    client_secret = settings.GOOGLE_OAUTH_CLIENT_SECRET
    if not client_id or not client_secret:
        raise OAuthConfigError("Google OAuth credentials not configured")
    return client_id, client_secret


def _build_flow(redirect_uri: str) -> Flow:
    client_id, client_secret = _client_credentials()
    client_config = {
        "web": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": _AUTH_URI,
            "token_uri": _TOKEN_URI,
        }
    }
    # authorize and callback run on separate Flow objects, so no PKCE verifier
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=redirect_uri,
        autogenerate_code_verifier=False,
    )


def _expiry_to_aware(expiry: datetime | None) -> datetime:
    # google-auth reports expiry as naive UTC
    if expiry is None:
        return datetime.now(timezone.utc) + _DEFAULT_LIFETIME
    if expiry.tzinfo is None:
        return expiry.replace(tzinfo=timezone.utc)
    return expiry


def build_auth_url(redirect_uri: str) -> str:
    """Return the Google consent URL (offline access, forced consent)."""
    flow = _build_flow(redirect_uri)
    auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")
    return auth_url


def exchange_code(code: str, redirect_uri: str) -> OAuthTokenResult:
    """Exchange an authorization code for tokens."""
    flow = _build_flow(redirect_uri)
    flow.fetch_token(code=code)
    creds = flow.credentials
    logger.info("Google authorization code exchanged")
    return OAuthTokenResult(
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expires_at=_expiry_to_aware(creds.expiry),
        scopes=" ".join(creds.scopes or SCOPES),
    )


def refresh_access_token(refresh_token: str) -> OAuthTokenResult:
    """Trade a refresh token for a new access token.

    Raises google.auth.exceptions.RefreshError on rejection; the token
    store turns that into TokenRefreshError.
    """
    client_id, client_secret = _client_credentials()
    creds = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=_TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=SCOPES,
    )
    creds.refresh(Request())
    logger.info("Google access token refreshed")
    return OAuthTokenResult(
        access_token=creds.token,
        refresh_token=creds.refresh_token or refresh_token,
        expires_at=_expiry_to_aware(creds.expiry),
    )


def build_service(api: str, version: str, access_token: str):
    """Build a Google API client bound to a bearer access token."""
    creds = Credentials(token=access_token)
    return build(api, version, credentials=creds, cache_discovery=False)
