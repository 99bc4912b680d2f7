"""
notifications.py
=================
Transactional email through the Brevo HTTP API:
 - OTP emails for signup verification and password reset
 - Booking confirmation for the patient and booking notice for the doctor

When ENABLE_EMAIL_SERVICE is off the message is only logged, so local
development works without credentials.
"""

import datetime
import logging

import requests

from . import config

logger = logging.getLogger(__name__)

APPOINTMENT_TYPE_LABELS = {
    "video_call": "Video Call",
    "voice_call": "Voice Call",
    "clinic_visit": "Clinic Visit",
}


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or cannot receive a message."""


# ---------------------------------------------------------------------------
# Brevo transport
# ---------------------------------------------------------------------------

def send_email(to: str, subject: str, html: str) -> dict:
    """
    Send one HTML email.
    Returns {"disabled": True} when the service is switched off,
    otherwise {"disabled": False, "messageId": ...}.
    """
    if not config.ENABLE_EMAIL_SERVICE:
        logger.info("📭 Email service disabled, would send '%s' to %s", subject, to)
        return {"disabled": True}

    if not config.BREVO_API_KEY:
        raise EmailDeliveryError("Brevo API not initialized. Set BREVO_API_KEY in the environment.")

    try:
        resp = requests.post(
            config.BREVO_API_URL,
            headers={"api-key": config.BREVO_API_KEY, "accept": "application/json"},
            json={
                "sender": {"name": config.BREVO_FROM_NAME, "email": config.BREVO_FROM_EMAIL},
                "to": [{"email": to}],
                "subject": subject,
                "htmlContent": html,
            },
            timeout=config.OUTBOUND_TIMEOUT,
        )
    except requests.RequestException as e:
        raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

    if resp.status_code >= 300:
        logger.error("❌ Brevo error %s: %s", resp.status_code, resp.text)
        raise EmailDeliveryError(f"Email provider returned {resp.status_code}")

    message_id = resp.json().get("messageId")
    logger.info("✅ Email sent to %s (message id %s)", to, message_id)
    return {"disabled": False, "messageId": message_id}


# ---------------------------------------------------------------------------
# OTP emails
# ---------------------------------------------------------------------------

def send_otp_email(email: str, otp: str, purpose: str = "verification") -> dict:
    """Email a one-time password. ``purpose`` is "verification" or "password_reset"."""
    if not config.ENABLE_EMAIL_SERVICE or not config.BREVO_API_KEY:
        logger.warning("⚠️  Email service unavailable. OTP for %s: %s", email, otp)
        return {"disabled": True}

    if purpose == "password_reset":
        subject = "Reset Your Password - CareBook Healthcare"
        title = "Password Reset Request"
        description = "Please use the following OTP to verify your password reset request:"
        action = "password reset"
    else:
        subject = "Verify Your Email - CareBook Healthcare"
        title = "Email Verification"
        description = "Thank you for signing up! Please use the following OTP to verify your email address:"
        action = "verification"

    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #2563eb;">{title}</h2>
      <p>{description}</p>
      <div style="background-color: #f5f5f5; padding: 20px; border-radius: 8px; text-align: center;">
        <h1 style="color: #2563eb; font-size: 32px; letter-spacing: 8px; margin: 0;">{otp}</h1>
      </div>
      <p>This OTP will expire in {config.OTP_TTL_MINUTES} minutes.</p>
      <p>If you didn't request this {action}, please ignore this email.</p>
    </div>
    """
    return send_email(email, subject, html)


# ---------------------------------------------------------------------------
# Booking emails
# ---------------------------------------------------------------------------

def _long_date(day: datetime.date) -> str:
    # e.g. "Wednesday, March 12, 2025"
    return f"{day.strftime('%A')}, {day.strftime('%B')} {day.day}, {day.year}"


def send_booking_emails(user, doctor, appointment, slot):
    """
    Confirmation to the patient and a notice to the doctor.
    Failures are logged and never propagate: the booking already succeeded.
    """
    date_str = _long_date(slot.date)
    type_label = APPOINTMENT_TYPE_LABELS.get(appointment.appointment_type.value, appointment.appointment_type.value)
    patient_name = user.name or "Patient"
    notes_html = f"<p><strong>Notes:</strong> {appointment.notes}</p>" if appointment.notes else ""

    patient_html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>Appointment Confirmed!</h2>
      <p>Dear {user.name or 'User'},</p>
      <p>Your appointment has been successfully booked.</p>
      <p><strong>Doctor:</strong> {doctor.name}</p>
      <p><strong>Specialty:</strong> {doctor.specialty}</p>
      <p><strong>Date:</strong> {date_str}</p>
      <p><strong>Time:</strong> {slot.start_time} - {slot.end_time}</p>
      <p><strong>Type:</strong> {type_label}</p>
      <p><strong>Fee:</strong> ₹{appointment.consultation_fee:g}</p>
      {notes_html}
    </div>
    """
    try:
        send_email(user.email, f"Appointment Confirmed with {doctor.name}", patient_html)
    except EmailDeliveryError as e:
        logger.error("❌ Patient confirmation email failed: %s", e)

    if not doctor.email:
        logger.info("Doctor %s has no email, skipping booking notice", doctor.id)
        return

    doctor_html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>New Appointment Booking</h2>
      <p>Dear {doctor.name},</p>
      <p><strong>Patient:</strong> {patient_name} ({user.email})</p>
      <p><strong>Date:</strong> {date_str}</p>
      <p><strong>Time:</strong> {slot.start_time} - {slot.end_time}</p>
      <p><strong>Type:</strong> {type_label}</p>
      {notes_html}
    </div>
    """
    try:
        send_email(doctor.email, f"New Appointment Booking - {patient_name}", doctor_html)
    except EmailDeliveryError as e:
        logger.error("❌ Doctor booking notice failed: %s", e)
