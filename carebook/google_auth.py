"""
google_auth.py
==============
Google sign-in through the OAuth 2.0 authorization code flow:
 - authorization_url(): where /api/auth/google sends the browser
 - fetch_profile(code): exchanges the callback code and verifies the ID token

Errors carry a short code that the frontend login page understands
(google_auth_failed, no_email).
"""

import logging

import google.auth.exceptions
import requests
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from . import config

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleAuthError(Exception):
    """Sign-in failed; ``code`` is passed to the frontend as ?error=<code>."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


def is_configured() -> bool:
    return bool(config.GOOGLE_CLIENT_ID and config.GOOGLE_CLIENT_SECRET)


def _flow() -> Flow:
    if not is_configured():
        raise GoogleAuthError(
            "google_auth_failed",
            "Google OAuth credentials are not configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.",
        )
    client_config = {
        "web": {
            "client_id": config.GOOGLE_CLIENT_ID,
            "client_secret": config.GOOGLE_CLIENT_SECRET,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [config.GOOGLE_REDIRECT_URI],
        }
    }
    # the callback builds a fresh flow, so no PKCE verifier survives between the two requests
    return Flow.from_client_config(
        client_config,
        scopes=GOOGLE_SCOPES,
        redirect_uri=config.GOOGLE_REDIRECT_URI,
        autogenerate_code_verifier=False,
    )


def authorization_url() -> str:
    url, _state = _flow().authorization_url(access_type="offline", prompt="consent")
    return url


def fetch_profile(code: str) -> dict:
    """
    Exchange an authorization code and return the verified ID token claims
    (sub, email, name, picture, ...).
    """
    flow = _flow()
    try:
        flow.fetch_token(code=code)
        raw_token = flow.credentials.id_token
        if not raw_token:
            raise GoogleAuthError("no_email", "Google returned no ID token")
        return id_token.verify_oauth2_token(raw_token, google_requests.Request(), config.GOOGLE_CLIENT_ID)
    except (OAuth2Error, ValueError, google.auth.exceptions.GoogleAuthError, requests.RequestException) as e:
        logger.error("❌ Google callback failed: %s", e)
        raise GoogleAuthError("google_auth_failed", str(e)) from e
