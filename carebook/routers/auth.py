"""
Auth routes: OTP-verified signup, login / logout, token check, Google
sign-in and the forgot-password flow (request OTP -> verify OTP -> set new
password).
"""

import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import RedirectResponse
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import config, google_auth
from ..db import get_db
from ..dependencies import get_current_user
from ..models import User, ProspectiveUser, OTP, OTPType, Role, utcnow
from ..notifications import send_otp_email, EmailDeliveryError
from ..schemas import (
    SignupRequest, LoginRequest, EmailRequest, OTPVerifyRequest, ResetPasswordRequest,
)
from ..security import (
    hash_password, verify_password, create_access_token, generate_otp, normalize_email,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "role": user.role.value,
    }


def _set_token_cookie(response: Response, token: str):
    response.set_cookie(
        config.TOKEN_COOKIE_NAME,
        token,
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="strict",
        max_age=config.JWT_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _check_password_length(password: str):
    if len(password) < config.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters",
        )


def _otp_expiry() -> datetime.datetime:
    return utcnow() + datetime.timedelta(minutes=config.OTP_TTL_MINUTES)


def _deliver_otp(email: str, otp: str, purpose: str) -> bool:
    """Send the OTP; returns whether an email actually went out."""
    try:
        result = send_otp_email(email, otp, purpose)
    except EmailDeliveryError as e:
        logger.error("❌ Sending OTP email to %s failed: %s", email, e)
        return False
    return not result.get("disabled")


# ---------------------------------------------------------------------------
# SIGNUP
# ---------------------------------------------------------------------------

@router.post("/signup")
def signup(req: SignupRequest, db: Session = Depends(get_db)):
    """
    Start a signup: park the account as a prospective user and email an OTP.
    Repeated signups for the same email reuse the pending record, up to
    SIGNUP_EMAIL_ATTEMPTS emails.
    """
    _check_password_length(req.password)
    email = normalize_email(req.email)

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="User with this email already exists")

    prospective = db.query(ProspectiveUser).filter(ProspectiveUser.email == email).first()
    if prospective:
        if prospective.email_attempts >= config.SIGNUP_EMAIL_ATTEMPTS:
            raise HTTPException(
                status_code=429,
                detail="Email verification attempt limit reached. Please contact support.",
            )
        prospective.email_attempts += 1
    else:
        prospective = ProspectiveUser(
            email=email,
            password_hash=hash_password(req.password),
            name=req.name,
            phone=req.phone,
            role=Role(req.role),
            email_attempts=1,
            otp="",
            otp_expires_at=_otp_expiry(),
        )
        db.add(prospective)

    otp = generate_otp()
    prospective.otp = otp
    prospective.otp_expires_at = _otp_expiry()
    db.commit()

    email_sent = _deliver_otp(email, otp, "verification")
    return {
        "success": True,
        "message": (
            "OTP sent to your email. Please verify to complete signup."
            if email_sent
            else "OTP generated. Please check your email or contact support if you don't receive it."
        ),
        "email": email,
        "emailSent": email_sent,
    }


@router.post("/verify-otp", status_code=201)
def verify_otp(req: OTPVerifyRequest, response: Response, db: Session = Depends(get_db)):
    """Turn a prospective user into a real account once the OTP matches."""
    email = normalize_email(req.email)
    prospective = db.query(ProspectiveUser).filter(ProspectiveUser.email == email).first()
    if not prospective:
        raise HTTPException(
            status_code=404,
            detail="No signup request found for this email. Please sign up again.",
        )
    if utcnow() > prospective.otp_expires_at:
        raise HTTPException(status_code=400, detail="OTP has expired. Please request a new one.")
    if prospective.otp != req.otp.strip():
        raise HTTPException(status_code=400, detail="Invalid OTP. Please try again.")

    if db.query(User).filter(User.email == email).first():
        db.delete(prospective)
        db.commit()
        raise HTTPException(status_code=400, detail="User with this email already exists")

    user = User(
        email=prospective.email,
        password_hash=prospective.password_hash,
        name=prospective.name,
        phone=prospective.phone,
        role=prospective.role,
    )
    db.add(user)
    db.delete(prospective)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User with this email already exists")
    db.refresh(user)

    token = create_access_token(user.id, user.email, user.role.value)
    _set_token_cookie(response, token)
    logger.info("🆕 Account created for %s", user.email)
    return {
        "success": True,
        "message": "Email verified successfully. Account created!",
        "user": _user_payload(user),
        "token": token,
    }


@router.post("/resend-otp")
def resend_otp(req: EmailRequest, db: Session = Depends(get_db)):
    email = normalize_email(req.email)
    prospective = db.query(ProspectiveUser).filter(ProspectiveUser.email == email).first()
    if not prospective:
        raise HTTPException(
            status_code=404,
            detail="No signup request found for this email. Please sign up again.",
        )
    if prospective.email_attempts >= config.SIGNUP_EMAIL_ATTEMPTS:
        raise HTTPException(
            status_code=429,
            detail="Email verification attempt limit reached. Please contact support.",
        )

    otp = generate_otp()
    prospective.otp = otp
    prospective.otp_expires_at = _otp_expiry()
    prospective.email_attempts += 1
    db.commit()

    try:
        send_otp_email(email, otp, "verification")
    except EmailDeliveryError as e:
        logger.error("❌ Resending OTP to %s failed: %s", email, e)
        raise HTTPException(status_code=500, detail="Failed to send OTP email. Please try again.")

    return {"success": True, "message": "OTP resent to your email."}


# ---------------------------------------------------------------------------
# SESSION
# ---------------------------------------------------------------------------

@router.post("/login")
def login(req: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == normalize_email(req.email)).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token(user.id, user.email, user.role.value)
    _set_token_cookie(response, token)
    return {"message": "Login successful", "user": _user_payload(user), "token": token}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(
        config.TOKEN_COOKIE_NAME, httponly=True, secure=config.IS_PRODUCTION, samesite="strict",
    )
    return {"message": "Logout successful"}


@router.get("/verify")
def verify_token(user: User = Depends(get_current_user)):
    """Cheap "am I logged in" check for the frontend."""
    return {"success": True, "user": _user_payload(user)}


# ---------------------------------------------------------------------------
# GOOGLE SIGN-IN
# ---------------------------------------------------------------------------

def _login_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(f"{config.FRONTEND_REDIRECT_URL}/login?error={error}")


@router.get("/google")
def google_login():
    """Send the browser to Google's consent screen."""
    try:
        return RedirectResponse(google_auth.authorization_url())
    except google_auth.GoogleAuthError as e:
        logger.error("❌ Google auth error: %s", e)
        return _login_redirect(e.code)


@router.get("/google/callback")
def google_callback(code: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Finish Google sign-in: link or create the account, set the token cookie
    and send the browser back to the doctors page.
    """
    if not code:
        return _login_redirect("no_code")
    try:
        profile = google_auth.fetch_profile(code)
    except google_auth.GoogleAuthError as e:
        return _login_redirect(e.code)

    google_id = profile.get("sub")
    email = normalize_email(profile.get("email") or "")
    if not email:
        return _login_redirect("no_email")

    match = User.email == email
    if google_id:
        match = or_(match, User.google_id == google_id)
    user = db.query(User).filter(match).first()
    if user is None:
        user = User(email=email, google_id=google_id, name=profile.get("name") or "",
                    password_hash="", role=Role.user)
        db.add(user)
        logger.info("🆕 Account created through Google for %s", email)
    elif not user.google_id:
        user.google_id = google_id
        if not user.name and profile.get("name"):
            user.name = profile["name"]
    db.commit()
    db.refresh(user)

    response = RedirectResponse(f"{config.FRONTEND_REDIRECT_URL}/doctors?google_auth=success")
    _set_token_cookie(response, create_access_token(user.id, user.email, user.role.value))
    return response


# ---------------------------------------------------------------------------
# FORGOT PASSWORD
# ---------------------------------------------------------------------------

def _pending_reset(db: Session, email: str, verified: bool):
    return (
        db.query(OTP)
        .filter(OTP.email == email, OTP.type == OTPType.forgot_password, OTP.verified.is_(verified))
        .first()
    )


@router.post("/forgot-password")
def forgot_password(req: EmailRequest, db: Session = Depends(get_db)):
    """Issue a reset OTP. Unknown emails get the same generic answer."""
    email = normalize_email(req.email)
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return {"message": "If an account with that email exists, an OTP has been sent to your email."}

    record = _pending_reset(db, email, verified=False)
    if record and record.attempts >= record.max_attempts:
        raise HTTPException(
            status_code=429,
            detail="Maximum OTP verification attempts reached. Please request a new OTP.",
        )

    otp = generate_otp()
    if record:
        record.otp = otp
        record.expires_at = _otp_expiry()
        record.attempts = 0
    else:
        record = OTP(
            email=email,
            otp=otp,
            type=OTPType.forgot_password,
            expires_at=_otp_expiry(),
            attempts=0,
            max_attempts=config.OTP_MAX_ATTEMPTS,
            verified=False,
        )
        db.add(record)
    db.commit()

    email_sent = _deliver_otp(email, otp, "password_reset")
    return {
        "success": True,
        "message": (
            "OTP sent to your email. Please verify to reset your password."
            if email_sent
            else "OTP generated. Please check your email or contact support if you don't receive it."
        ),
        "email": email,
        "emailSent": email_sent,
    }


@router.post("/verify-reset-otp")
def verify_reset_otp(req: OTPVerifyRequest, db: Session = Depends(get_db)):
    email = normalize_email(req.email)
    record = _pending_reset(db, email, verified=False)
    if not record:
        raise HTTPException(status_code=400, detail="No password reset request found for this email.")

    if utcnow() > record.expires_at:
        db.delete(record)
        db.commit()
        raise HTTPException(status_code=400, detail="OTP has expired. Please request a new one.")

    if record.attempts >= record.max_attempts:
        raise HTTPException(
            status_code=429,
            detail="Maximum OTP verification attempts reached. Please request a new OTP.",
        )

    if record.otp != req.otp.strip():
        record.attempts += 1
        db.commit()
        raise HTTPException(status_code=400, detail="Invalid OTP. Please try again.")

    record.verified = True
    db.commit()
    return {"success": True, "message": "OTP verified successfully. Please set your new password."}


@router.post("/reset-password")
def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
    _check_password_length(req.password)
    email = normalize_email(req.email)

    record = _pending_reset(db, email, verified=True)
    if not record:
        raise HTTPException(status_code=400, detail="Please verify your OTP first before resetting password.")
    if utcnow() > record.expires_at:
        db.delete(record)
        db.commit()
        raise HTTPException(status_code=400, detail="OTP has expired. Please request a new one.")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")

    user.password_hash = hash_password(req.password)
    db.delete(record)
    db.commit()
    logger.info("🔑 Password reset for %s", email)
    return {"success": True, "message": "Password reset successful. Please login with your new password."}
