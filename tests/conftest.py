"""
conftest.py
===========
Shared fixtures for the CareBook test suite.

Settings are read from the environment when ``carebook.config`` is first
imported, so the temporary database and test settings are put in place
before any application module is loaded.
"""

import sys, os
# Ensure the carebook package is discoverable by Python when running from /tests
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import datetime
import tempfile
import uuid

_TMP_DIR = tempfile.mkdtemp(prefix="carebook-tests-")
os.environ["CAREBOOK_DB"] = os.path.join(_TMP_DIR, "test.db")
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["ENABLE_EMAIL_SERVICE"] = "false"
os.environ["ALLOWED_DOCTOR_ONBOARDING_EMAILS"] = "admin@carebook.example"
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from carebook.main import app
from carebook.db import init_db, SessionLocal
from carebook.models import Base, User, Role, Doctor, Gender, TimeSlot, SlotStatus
from carebook.scheduling import period_for_hour, parse_hhmm, format_hhmm
from carebook.security import hash_password, create_access_token

ONBOARDING_EMAIL = "admin@carebook.example"
PASSWORD = "secret123"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


# --------------------------------------------------------------------------
# FIXTURES: test client + database session
# --------------------------------------------------------------------------

@pytest.fixture
def client():
    """
    FastAPI test client running the app lifespan against the temporary DB.
    A fresh client per test keeps auth cookies from leaking between tests.
    """
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    init_db(Base)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# --------------------------------------------------------------------------
# FACTORIES
# --------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    def _make(email=None, role=Role.user, name="Test Patient", password=PASSWORD):
        user = User(
            email=(email or unique_email()).lower(),
            password_hash=hash_password(password),
            name=name,
            phone="9999999999",
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(user.id, user.email, user.role.value)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def onboarding_admin(make_user, db):
    """The allow-listed account that may manage doctors and filters."""
    user = db.query(User).filter(User.email == ONBOARDING_EMAIL).first()
    return user or make_user(email=ONBOARDING_EMAIL, role=Role.admin, name="Onboarding Admin")


@pytest.fixture
def make_doctor(db):
    def _make(**overrides):
        fields = {
            "name": "Dr. Test Doctor",
            "email": unique_email("doctor"),
            "specialty": "General Physician",
            "gender": Gender.female,
            "experience": 10,
            "rating": 4.5,
            "location": "Delhi, NCR",
            "latitude": 28.6139,
            "longitude": 77.2090,
            "image": "/doctors-listing/doctor.png",
            "fee": 900,
            "specialization": ["Fever", "Diabetes"],
        }
        fields.update(overrides)
        doctor = Doctor(**fields)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor
    return _make


@pytest.fixture
def make_slot(db):
    def _make(doctor, date=None, start_time="10:00", status=SlotStatus.available):
        date = date or datetime.date.today() + datetime.timedelta(days=2)
        start = parse_hhmm(start_time)
        slot = TimeSlot(
            doctor_id=doctor.id,
            date=date,
            start_time=start_time,
            end_time=format_hhmm(start + 30),
            period=period_for_hour(start // 60),
            status=status,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot
    return _make
