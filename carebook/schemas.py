"""
schemas.py
==========
Pydantic models used for validating incoming requests and
structuring outgoing API responses.

JSON uses camelCase keys (``timeSlotId``); request bodies also accept
snake_case field names.
"""

import datetime
from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import (
    Role, Gender, Period, AppointmentType, SlotStatus, AppointmentStatus,
    PaymentStatus, CancelledBy, UnavailabilityType,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(schema, obj) -> dict:
    """Serialize an ORM object through a response schema into camelCase JSON."""
    return schema.model_validate(obj).model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# AUTH / USERS
# ---------------------------------------------------------------------------

class SignupRequest(CamelModel):
    """Request body for starting a signup."""
    email: str
    password: str
    name: str = ""
    phone: str = ""
    role: Literal["user", "doctor"] = "user"


class LoginRequest(CamelModel):
    email: str
    password: str


class EmailRequest(CamelModel):
    email: str


class OTPVerifyRequest(CamelModel):
    email: str
    otp: str


class ResetPasswordRequest(CamelModel):
    email: str
    password: str


class UserUpdateRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserOut(CamelModel):
    id: int
    email: str
    name: Optional[str] = ""
    phone: Optional[str] = ""
    role: Role
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None


class UserSummary(CamelModel):
    id: int
    name: Optional[str] = ""
    email: str
    phone: Optional[str] = ""


# ---------------------------------------------------------------------------
# DOCTORS
# ---------------------------------------------------------------------------

BADGES = ("Recommended", "Top Rated")


class DoctorCreate(CamelModel):
    """Request body for onboarding a doctor."""
    name: str = Field(min_length=1)
    email: Optional[str] = None
    specialty: str = Field(min_length=1)
    gender: Gender
    experience: int = Field(ge=0)
    patient_stories: int = Field(default=0, ge=0)
    rating: float = Field(ge=0, le=5)
    location: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    image: str = Field(min_length=1)
    badge: Optional[str] = None
    fee: float = Field(ge=0)
    biography: str = ""
    specialization: List[str] = []
    qualifications: str = ""
    total_consultations: int = Field(default=0, ge=0)
    office_address: str = ""
    phone_number: str = ""
    office_phone_number: str = ""


class DoctorUpdate(CamelModel):
    """Partial update; only fields present in the body are applied."""
    name: Optional[str] = None
    email: Optional[str] = None
    specialty: Optional[str] = None
    gender: Optional[Gender] = None
    experience: Optional[int] = Field(default=None, ge=0)
    patient_stories: Optional[int] = Field(default=None, ge=0)
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    location: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    image: Optional[str] = None
    badge: Optional[str] = None
    fee: Optional[float] = Field(default=None, ge=0)
    biography: Optional[str] = None
    specialization: Optional[List[str]] = None
    qualifications: Optional[str] = None
    total_consultations: Optional[int] = Field(default=None, ge=0)
    office_address: Optional[str] = None
    phone_number: Optional[str] = None
    office_phone_number: Optional[str] = None


class DoctorOut(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    specialty: str
    gender: Gender
    experience: int
    patient_stories: int = 0
    rating: float
    location: str
    latitude: float
    longitude: float
    image: str
    badge: Optional[str] = None
    fee: float
    biography: Optional[str] = ""
    specialization: List[str] = []
    qualifications: Optional[str] = ""
    total_consultations: int = 0
    office_address: Optional[str] = ""
    phone_number: Optional[str] = ""
    office_phone_number: Optional[str] = ""
    created_at: Optional[datetime.datetime] = None


class DoctorSummary(CamelModel):
    id: int
    name: str
    specialty: str
    image: str


# ---------------------------------------------------------------------------
# SLOTS
# ---------------------------------------------------------------------------

class TimeSlotOut(CamelModel):
    id: int
    doctor_id: int
    date: datetime.date
    start_time: str
    end_time: str
    period: Period
    booking_type: Optional[AppointmentType] = None
    status: SlotStatus


class SlotSummary(CamelModel):
    id: int
    date: datetime.date
    start_time: str
    end_time: str
    period: Period
    booking_type: Optional[AppointmentType] = None


class GenerateSlotsRequest(CamelModel):
    start_date: datetime.date
    end_date: datetime.date


class UnavailabilityRequest(CamelModel):
    start_date: datetime.date
    end_date: datetime.date
    reason: str = ""
    type: UnavailabilityType = UnavailabilityType.other
    is_recurring: bool = False


class UnavailabilityOut(CamelModel):
    id: int
    doctor_id: int
    start_date: datetime.date
    end_date: datetime.date
    reason: Optional[str] = ""
    type: UnavailabilityType
    is_recurring: bool


class BulkSlotUpdateRequest(CamelModel):
    slot_ids: List[int] = Field(min_length=1)
    status: Literal["available", "cancelled"]


# ---------------------------------------------------------------------------
# APPOINTMENTS
# ---------------------------------------------------------------------------

class BookAppointmentRequest(CamelModel):
    """Request body sent by the booking wizard's confirm step."""
    doctor_id: int
    time_slot_id: int
    appointment_type: AppointmentType
    notes: str = ""


class CancelAppointmentRequest(CamelModel):
    reason: str = ""
    cancelled_by: Optional[CancelledBy] = None


class AppointmentStatusRequest(CamelModel):
    status: Literal["confirmed", "completed", "no-show"]


class DoctorNotesRequest(CamelModel):
    doctor_notes: str = Field(min_length=1)


class AppointmentOut(CamelModel):
    id: int
    user_id: int
    doctor_id: int
    time_slot_id: int
    appointment_type: AppointmentType
    status: AppointmentStatus
    notes: Optional[str] = ""
    doctor_notes: Optional[str] = ""
    consultation_fee: float
    payment_status: PaymentStatus
    cancelled_at: Optional[datetime.datetime] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = ""
    completed_at: Optional[datetime.datetime] = None
    notes_updated_at: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    user: Optional[UserSummary] = None
    doctor: Optional[DoctorSummary] = None
    time_slot: Optional[SlotSummary] = None


# ---------------------------------------------------------------------------
# FILTERS
# ---------------------------------------------------------------------------

class FiltersUpdateRequest(CamelModel):
    filters: Dict[str, List[str]]


# ---------------------------------------------------------------------------
# CHAT
# ---------------------------------------------------------------------------

class ThreadCreateRequest(BaseModel):
    language: Literal["en", "hnd"] = "en"
    mode: Literal["normal", "private"] = "normal"


class ChatPayload(BaseModel):
    """JSON carried in the ``data`` form field of POST /chat. Unset mode / language fall back to the thread's."""
    message: str = Field(min_length=1)
    thread_id: str
    mode: Optional[Literal["normal", "private"]] = None
    language: Optional[Literal["en", "hnd"]] = None
