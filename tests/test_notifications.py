"""
test_notifications.py
=====================
Unit tests for transactional email through the Brevo API (requests mocked).
"""

import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from carebook import config
from carebook.models import AppointmentType
from carebook.notifications import (
    EmailDeliveryError, send_booking_emails, send_email, send_otp_email,
)


@pytest.fixture
def email_enabled(monkeypatch):
    monkeypatch.setattr(config, "ENABLE_EMAIL_SERVICE", True)
    monkeypatch.setattr(config, "BREVO_API_KEY", "brevo-key")
    monkeypatch.setattr(config, "BREVO_FROM_EMAIL", "noreply@carebook.example")


def _brevo_ok(message_id="msg-1"):
    resp = MagicMock(status_code=201)
    resp.json.return_value = {"messageId": message_id}
    return resp


def test_disabled_service_only_logs():
    with patch("carebook.notifications.requests.post") as post:
        assert send_email("a@example.com", "Hi", "<p>Hi</p>") == {"disabled": True}
        assert send_otp_email("a@example.com", "123456") == {"disabled": True}
    post.assert_not_called()


def test_send_email_posts_to_brevo(email_enabled):
    with patch("carebook.notifications.requests.post", return_value=_brevo_ok()) as post:
        result = send_email("a@example.com", "Subject", "<p>Body</p>")

    assert result == {"disabled": False, "messageId": "msg-1"}
    kwargs = post.call_args.kwargs
    assert kwargs["headers"]["api-key"] == "brevo-key"
    assert kwargs["json"]["to"] == [{"email": "a@example.com"}]
    assert kwargs["timeout"] == config.OUTBOUND_TIMEOUT


def test_send_email_provider_errors(email_enabled):
    with patch("carebook.notifications.requests.post", return_value=MagicMock(status_code=401, text="bad key")):
        with pytest.raises(EmailDeliveryError):
            send_email("a@example.com", "Subject", "<p>Body</p>")

    with patch("carebook.notifications.requests.post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(EmailDeliveryError):
            send_email("a@example.com", "Subject", "<p>Body</p>")


def test_otp_email_subject_by_purpose(email_enabled):
    with patch("carebook.notifications.requests.post", return_value=_brevo_ok()) as post:
        send_otp_email("a@example.com", "654321", purpose="password_reset")
    body = post.call_args.kwargs["json"]
    assert body["subject"].startswith("Reset Your Password")
    assert "654321" in body["htmlContent"]


def test_booking_emails_go_to_patient_and_doctor(email_enabled):
    """
    ✅ Test booking notifications.
    Expected: patient confirmation and doctor notice; a failure is swallowed.
    """
    user = SimpleNamespace(name="Asha Rao", email="asha@example.com")
    doctor = SimpleNamespace(id=1, name="Dr. Meera Nair", specialty="Gynecologist", email="meera@carebook.example")
    appointment = SimpleNamespace(appointment_type=AppointmentType.video_call, notes="", consultation_fee=1400.0)
    slot = SimpleNamespace(date=datetime.date(2025, 3, 12), start_time="10:00", end_time="10:30")

    with patch("carebook.notifications.requests.post", return_value=_brevo_ok()) as post:
        send_booking_emails(user, doctor, appointment, slot)

    recipients = [c.kwargs["json"]["to"][0]["email"] for c in post.call_args_list]
    assert recipients == ["asha@example.com", "meera@carebook.example"]
    patient_html = post.call_args_list[0].kwargs["json"]["htmlContent"]
    assert "Wednesday, March 12, 2025" in patient_html
    assert "Video Call" in patient_html

    with patch("carebook.notifications.requests.post", side_effect=requests.ConnectionError("down")):
        send_booking_emails(user, doctor, appointment, slot)
