"""
test_google_auth.py
===================
Test cases for Google sign-in. Google itself is never contacted: the token
exchange and ID token check are mocked.
Tests cover:
 - Consent redirect (configured / not configured)
 - Callback error redirects (no code, failed exchange, no email)
 - New account, linking an existing account, returning Google user
"""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from carebook import config, google_auth
from carebook.models import User
from carebook.security import decode_access_token

from conftest import unique_email

FRONTEND = "https://app.carebook.example"


@pytest.fixture
def google_configured(monkeypatch):
    monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "client-123.apps.googleusercontent.com")
    monkeypatch.setattr(config, "GOOGLE_CLIENT_SECRET", "shh")
    monkeypatch.setattr(config, "GOOGLE_REDIRECT_URI", "http://localhost:3000/api/auth/google/callback")
    monkeypatch.setattr(config, "FRONTEND_REDIRECT_URL", FRONTEND)


def _callback(client, code="auth-code"):
    params = {"code": code} if code else {}
    return client.get("/api/auth/google/callback", params=params, follow_redirects=False)


def _signed_in_user(res):
    """User id from the token cookie set on a successful callback."""
    assert res.headers["location"] == f"{FRONTEND}/doctors?google_auth=success"
    token = res.cookies.get(config.TOKEN_COOKIE_NAME)
    assert token
    return int(decode_access_token(token)["sub"])


# --------------------------------------------------------------------------
# CONSENT REDIRECT
# --------------------------------------------------------------------------

def test_google_redirects_to_consent_screen(client, google_configured):
    res = client.get("/api/auth/google", follow_redirects=False)
    assert res.status_code == 307

    location = urlparse(res.headers["location"])
    assert location.netloc == "accounts.google.com"
    query = parse_qs(location.query)
    assert query["client_id"] == ["client-123.apps.googleusercontent.com"]
    assert query["redirect_uri"] == ["http://localhost:3000/api/auth/google/callback"]
    assert query["access_type"] == ["offline"]
    assert "openid" in query["scope"][0]


def test_google_not_configured(client, monkeypatch):
    monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "")
    monkeypatch.setattr(config, "FRONTEND_REDIRECT_URL", FRONTEND)
    res = client.get("/api/auth/google", follow_redirects=False)
    assert res.headers["location"] == f"{FRONTEND}/login?error=google_auth_failed"


# --------------------------------------------------------------------------
# CALLBACK ERRORS
# --------------------------------------------------------------------------

def test_callback_without_code(client, google_configured):
    res = _callback(client, code=None)
    assert res.headers["location"] == f"{FRONTEND}/login?error=no_code"


def test_callback_failed_exchange(client, google_configured):
    with patch("carebook.google_auth.Flow") as flow_cls:
        flow_cls.from_client_config.return_value.fetch_token.side_effect = requests.ConnectionError("down")
        res = _callback(client)
    assert res.headers["location"] == f"{FRONTEND}/login?error=google_auth_failed"
    assert config.TOKEN_COOKIE_NAME not in res.cookies


def test_callback_profile_without_email(client, google_configured, monkeypatch):
    monkeypatch.setattr(google_auth, "fetch_profile", lambda code: {"sub": "g-1", "email": ""})
    res = _callback(client)
    assert res.headers["location"] == f"{FRONTEND}/login?error=no_email"


# --------------------------------------------------------------------------
# ACCOUNTS
# --------------------------------------------------------------------------

def test_callback_creates_account(client, db, google_configured, monkeypatch):
    """
    ✅ Test first Google sign-in.
    Expected: a patient account with the Google id, no usable password, token cookie set.
    """
    email = unique_email("google")
    monkeypatch.setattr(
        google_auth, "fetch_profile",
        lambda code: {"sub": f"g-{email}", "email": email.upper(), "name": "Asha Rao"},
    )

    user_id = _signed_in_user(_callback(client))
    user = db.get(User, user_id)
    assert user.email == email
    assert user.google_id == f"g-{email}"
    assert user.name == "Asha Rao"
    assert user.role.value == "user"

    res = client.post("/api/auth/login", json={"email": email, "password": ""})
    assert res.status_code in (401, 422)


def test_callback_links_existing_account(client, db, make_user, google_configured, monkeypatch):
    """
    ✅ Test Google sign-in for an email that already has a password account.
    Expected: same account, Google id linked, later sign-ins match on the Google id.
    """
    user = make_user(name="")
    monkeypatch.setattr(
        google_auth, "fetch_profile",
        lambda code: {"sub": f"g-{user.id}", "email": user.email, "name": "Linked Name"},
    )
    assert _signed_in_user(_callback(client)) == user.id

    db.expire_all()
    linked = db.get(User, user.id)
    assert linked.google_id == f"g-{user.id}"
    assert linked.name == "Linked Name"

    # Google account email changed since: the Google id still finds the user
    monkeypatch.setattr(
        google_auth, "fetch_profile",
        lambda code: {"sub": f"g-{user.id}", "email": unique_email("changed")},
    )
    assert _signed_in_user(_callback(client)) == user.id
    assert db.query(User).filter(User.google_id == f"g-{user.id}").count() == 1


# --------------------------------------------------------------------------
# TOKEN EXCHANGE
# --------------------------------------------------------------------------

def test_fetch_profile_verifies_id_token(google_configured):
    flow = MagicMock()
    flow.credentials.id_token = "raw.id.token"
    claims = {"sub": "g-9", "email": "a@example.com"}

    with patch("carebook.google_auth.Flow") as flow_cls, \
            patch("carebook.google_auth.id_token.verify_oauth2_token", return_value=claims) as verify:
        flow_cls.from_client_config.return_value = flow
        assert google_auth.fetch_profile("auth-code") == claims

    flow.fetch_token.assert_called_once_with(code="auth-code")
    assert verify.call_args.args[0] == "raw.id.token"
    assert verify.call_args.args[2] == "client-123.apps.googleusercontent.com"


def test_fetch_profile_rejects_bad_id_token(google_configured):
    flow = MagicMock()
    flow.credentials.id_token = "forged"
    with patch("carebook.google_auth.Flow") as flow_cls, \
            patch("carebook.google_auth.id_token.verify_oauth2_token", side_effect=ValueError("Wrong audience")):
        flow_cls.from_client_config.return_value = flow
        with pytest.raises(google_auth.GoogleAuthError) as exc:
            google_auth.fetch_profile("auth-code")
    assert exc.value.code == "google_auth_failed"
