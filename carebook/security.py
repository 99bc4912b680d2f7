"""
security.py
===========
Password hashing (bcrypt), JWT issuing / decoding (PyJWT) and OTP generation.
"""

import datetime
import secrets

import bcrypt
import jwt

from . import config


class InvalidTokenError(Exception):
    """Raised when a JWT is malformed, tampered with or expired."""


def hash_password(password: str) -> str:
    """Hash a plain-text password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_access_token(user_id: int, email: str, role: str, expires_delta: datetime.timedelta = None) -> str:
    """
    Issue a signed token identifying the user.
    Default lifetime is JWT_EXPIRE_DAYS days, the same as the auth cookie.
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    expire = now + (expires_delta or datetime.timedelta(days=config.JWT_EXPIRE_DAYS))
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token") from e
    if "sub" not in payload:
        raise InvalidTokenError("Token has no subject")
    return payload


def generate_otp() -> str:
    """Six digit numeric one-time password."""
    return str(100000 + secrets.randbelow(900000))


def normalize_email(email: str) -> str:
    return email.strip().lower()
