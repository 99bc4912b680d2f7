"""
dependencies.py
===============
FastAPI dependencies shared by the routers: the authenticated user,
admin-only access, and the doctor-onboarding email allow list.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from . import config
from .db import get_db
from .models import User, Role
from .security import decode_access_token, InvalidTokenError

logger = logging.getLogger(__name__)


def _extract_token(request: Request) -> Optional[str]:
    # Bearer header for API clients, httpOnly cookie for the browser
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip() or None
    return request.cookies.get(config.TOKEN_COOKIE_NAME)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolve the user behind the request.
    Raises 401 when the token is missing, invalid, or points at a deleted user.
    """
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    try:
        payload = decode_access_token(token)
        user_id = int(payload["sub"])
    except (InvalidTokenError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def require_onboarding_access(user: User = Depends(get_current_user)) -> User:
    """Only accounts listed in ALLOWED_DOCTOR_ONBOARDING_EMAILS may manage doctors."""
    allowed = config.ALLOWED_DOCTOR_ONBOARDING_EMAILS
    if not allowed:
        logger.error("ALLOWED_DOCTOR_ONBOARDING_EMAILS is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Allowed emails not configured. Please contact administrator.",
        )
    if (user.email or "").strip().lower() not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You do not have permission to access this resource.",
        )
    return user


def is_doctor_account(user: User, doctor) -> bool:
    """A doctor account is linked to its profile by email."""
    return (
        doctor is not None
        and user.role == Role.doctor
        and bool(doctor.email)
        and user.email == doctor.email.strip().lower()
    )


def ensure_doctor_or_admin(user: User, doctor, detail: str):
    """Doctor-dashboard rule: the caller is the doctor's own account or an admin."""
    if user.role != Role.admin and not is_doctor_account(user, doctor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def pagination_params(page: Optional[int], limit: Optional[int], default_limit: int, max_limit: int = 50):
    """Return (page, limit, offset) clamped the way the listing endpoints expect."""
    page = page if page and page > 0 else 1
    limit = min(limit if limit and limit > 0 else default_limit, max_limit)
    return page, limit, (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": -(-total // limit) if limit else 0,
    }
