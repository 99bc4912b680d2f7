"""
config.py
=========
Runtime settings for the CareBook backend, read from environment variables.
Every value has a development default so the service starts with no .env file.
"""

import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list:
    raw = os.getenv(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


# ---------------------------------------------------------------------------
# SERVER
# ---------------------------------------------------------------------------

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# ---------------------------------------------------------------------------
# DATABASE
# ---------------------------------------------------------------------------

DB_PATH = os.getenv("CAREBOOK_DB", "data/carebook.db")
SEED_DEMO_DATA = _env_bool("SEED_DEMO_DATA", "true")

# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))
TOKEN_COOKIE_NAME = "token"

OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
SIGNUP_EMAIL_ATTEMPTS = int(os.getenv("SIGNUP_EMAIL_ATTEMPTS", "5"))
MIN_PASSWORD_LENGTH = 6

# Comma separated list of accounts allowed to onboard and edit doctors
ALLOWED_DOCTOR_ONBOARDING_EMAILS = _env_list("ALLOWED_DOCTOR_ONBOARDING_EMAILS")

# Google sign-in (both id and secret must be set)
BACKEND_URL = os.getenv("BACKEND_URL", f"http://localhost:{PORT}").rstrip("/")
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{BACKEND_URL}/api/auth/google/callback")

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

FRONTEND_URL = os.getenv("FRONTEND_URL", "").rstrip("/")
# where browser redirects (Google sign-in) land
FRONTEND_REDIRECT_URL = FRONTEND_URL or "http://localhost:5173"


def allowed_origins() -> list:
    """
    Origins allowed by CORS.
    Production only accepts the HTTPS frontend URL (and its www / non-www twin),
    development accepts the local dev servers.
    """
    origins = []
    if IS_PRODUCTION:
        if FRONTEND_URL.startswith("https://"):
            origins.append(FRONTEND_URL)
            scheme, _, host = FRONTEND_URL.partition("://")
            if host.startswith("www."):
                origins.append(f"{scheme}://{host[4:]}")
            else:
                origins.append(f"{scheme}://www.{host}")
    else:
        origins.extend(["http://localhost:5173", "http://localhost:3000"])
    # dedupe, keep order
    return list(dict.fromkeys(origins))


# ---------------------------------------------------------------------------
# EMAIL (Brevo transactional API)
# ---------------------------------------------------------------------------

ENABLE_EMAIL_SERVICE = _env_bool("ENABLE_EMAIL_SERVICE")
BREVO_API_URL = os.getenv("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email")
BREVO_API_KEY = os.getenv("BREVO_API_KEY", "")
BREVO_FROM_EMAIL = os.getenv("BREVO_FROM_EMAIL", "")
BREVO_FROM_NAME = os.getenv("BREVO_FROM_NAME", "CareBook Healthcare")

# ---------------------------------------------------------------------------
# SPEECH TO TEXT
# ---------------------------------------------------------------------------

STT_API_URL = os.getenv("STT_API_URL", "")
STT_API_KEY = os.getenv("STT_API_KEY", "")
STT_MODEL = os.getenv("STT_MODEL", "whisper-1")

# ---------------------------------------------------------------------------
# SCHEDULING / CLIENT
# ---------------------------------------------------------------------------

SLOT_MINUTES = 30
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))
OUTBOUND_TIMEOUT = 5

# ---------------------------------------------------------------------------
# LOGGING
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")
