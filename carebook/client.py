"""
client.py
=========
Small synchronous client for the CareBook REST API.

One requests.Session per client (plus short-lived ones for the parallel
slot-count lookups), 15 second timeout on every call, no retries. Failures surface as ApiError with a message that can be shown
to the user as is.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterator, List, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

SLOT_COUNT_BATCH_SIZE = 5


class ApiError(Exception):
    """Failed API call: user-facing message, HTTP status (if any) and whether it timed out."""

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.timed_out = timed_out

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


def _error_message(resp: requests.Response, fallback: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("message")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail:
            # FastAPI validation errors
            return detail[0].get("msg", fallback)
    return fallback


class CareApiClient:
    def __init__(self, base_url: str, token: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None,
                 session_factory=requests.Session):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.session_factory = session_factory
        self.session = session or session_factory()
        if token:
            self.set_token(token)

    def set_token(self, token: str):
        self.session.headers["Authorization"] = f"Bearer {token}"

    # -----------------------------------------------------------------------
    # transport
    # -----------------------------------------------------------------------

    def _request(self, method: str, path: str, fallback: str = "Request failed",
                 session: Optional[requests.Session] = None, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        url = f"{self.base_url}{path}"
        try:
            resp = (session or self.session).request(method, url, **kwargs)
        except requests.Timeout as e:
            logger.warning("⏱️  %s %s timed out", method, path)
            raise ApiError("Request timed out. Please try again.", timed_out=True) from e
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(f"{fallback}. Please check your connection.") from e

        if not resp.ok:
            raise ApiError(_error_message(resp, fallback), status_code=resp.status_code)
        return resp

    def _json(self, method: str, path: str, fallback: str = "Request failed", **kwargs) -> dict:
        resp = self._request(method, path, fallback, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(fallback, status_code=resp.status_code) from e

    # -----------------------------------------------------------------------
    # auth
    # -----------------------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        """Log in and keep the returned token for later calls."""
        data = self._json("POST", "/api/auth/login", "Login failed",
                          json={"email": email, "password": password})
        if data.get("token"):
            self.set_token(data["token"])
        return data.get("user", {})

    # -----------------------------------------------------------------------
    # doctors & slots
    # -----------------------------------------------------------------------

    def nearby_doctors(self, latitude: Optional[float] = None, longitude: Optional[float] = None,
                       max_distance: float = 25, page: int = 1, limit: int = 8) -> dict:
        params = {"maxDistance": max_distance, "page": page, "limit": limit}
        if latitude is not None and longitude is not None:
            params.update(latitude=latitude, longitude=longitude)
        return self._json("GET", "/api/doctors/nearby", "Failed to fetch doctors", params=params)

    def affordable_doctors(self, max_fee: float = 1000, page: int = 1, limit: int = 8) -> dict:
        return self._json("GET", "/api/doctors/affordable", "Failed to fetch doctors",
                          params={"maxFee": max_fee, "page": page, "limit": limit})

    def all_doctors(self, page: int = 1, limit: int = 8, **filters) -> dict:
        """``filters``: specialist, location, experience, gender (dropdown labels)."""
        params = {"page": page, "limit": limit}
        params.update({k: v for k, v in filters.items() if v})
        return self._json("GET", "/api/doctors/all", "Failed to fetch doctors", params=params)

    def get_doctor(self, doctor_id: int) -> dict:
        return self._json("GET", f"/api/doctors/{doctor_id}", "Failed to fetch doctor")["data"]

    def get_slots(self, doctor_id: int, date: str, period: Optional[str] = None,
                  session: Optional[requests.Session] = None) -> dict:
        params = {"date": date}
        if period:
            params["period"] = period
        return self._json("GET", f"/api/slots/{doctor_id}", "Failed to fetch slots",
                          params=params, session=session)

    def _slot_count(self, doctor_id: int, date: str) -> int:
        # runs on a pool thread: requests.Session is not shared across threads
        session = self.session_factory()
        session.headers.update(self.session.headers)
        try:
            data = self.get_slots(doctor_id, date, session=session)
        except ApiError:
            return 0
        finally:
            session.close()
        if data.get("success") and data.get("data"):
            return len(data["data"].get("availableSlots") or [])
        return 0

    def slot_counts(self, doctor_id: int, dates: List[str],
                    batch_size: int = SLOT_COUNT_BATCH_SIZE) -> Dict[str, int]:
        """
        Free slot count per date, fetched ``batch_size`` dates at a time.
        A date whose request fails counts as 0.
        """
        counts = {}
        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for i in range(0, len(dates), batch_size):
                batch = dates[i:i + batch_size]
                for date, count in zip(batch, pool.map(lambda d: self._slot_count(doctor_id, d), batch)):
                    counts[date] = count
        return counts

    # -----------------------------------------------------------------------
    # appointments
    # -----------------------------------------------------------------------

    def book_appointment(self, doctor_id: int, time_slot_id: int,
                         appointment_type: str = "clinic_visit", notes: str = "") -> dict:
        return self._json(
            "POST", "/api/appointments", "Failed to book appointment",
            json={
                "doctorId": doctor_id,
                "timeSlotId": time_slot_id,
                "appointmentType": appointment_type,
                "notes": notes,
            },
        )

    def my_appointments(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> dict:
        params = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        return self._json("GET", "/api/appointments", "Failed to fetch appointments", params=params)

    def cancel_appointment(self, appointment_id: int, reason: str = "") -> dict:
        return self._json("PATCH", f"/api/appointments/{appointment_id}/cancel",
                          "Failed to cancel appointment", json={"reason": reason})

    # -----------------------------------------------------------------------
    # chat assistant
    # -----------------------------------------------------------------------

    def create_thread(self, language: str = "en", mode: str = "normal") -> str:
        data = self._json("POST", "/chat/api/threads", "Failed to start chat",
                          json={"language": language, "mode": mode})
        return data["thread_id"]

    def stream_chat(self, thread_id: str, message: str, mode: str = "normal",
                    language: str = "en", files=None) -> Iterator[str]:
        """Yield the assistant reply as it streams in."""
        payload = {"message": message, "thread_id": thread_id, "mode": mode, "language": language}
        resp = self._request(
            "POST", "/chat/api/chat", "Failed to send message",
            data={"data": json.dumps(payload)},
            files=files,
            stream=True,
        )
        try:
            for chunk in resp.iter_content(chunk_size=None, decode_unicode=True):
                if chunk:
                    yield chunk
        finally:
            resp.close()

    def transcribe(self, audio: bytes, filename: str = "recording.webm",
                   content_type: str = "audio/webm") -> str:
        data = self._json("POST", "/chat/api/stt", "Failed to transcribe audio",
                          files={"recording": (filename, audio, content_type)})
        return data.get("user_query", "")
