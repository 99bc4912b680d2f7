"""
models.py
=========
SQLAlchemy ORM models for the CareBook booking service.
Contains tables for:
 - User / ProspectiveUser / OTP (accounts and email verification)
 - Doctor / DoctorSchedule / DoctorUnavailability
 - TimeSlot / Appointment
 - Filter (listing filter values)
 - ChatThread / ChatMessage (assistant conversations)
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Text, Float, Boolean,
    ForeignKey, Enum, JSON, UniqueConstraint, Index, text,
)
from sqlalchemy.orm import declarative_base, relationship
import datetime
import enum

# SQLAlchemy Base class
Base = declarative_base()


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# ENUM DEFINITIONS
# ---------------------------------------------------------------------------

class Role(str, enum.Enum):
    user = "user"
    doctor = "doctor"
    admin = "admin"


class Gender(str, enum.Enum):
    male = "male"
    female = "female"
    others = "others"


class Period(str, enum.Enum):
    """Part of the day a slot falls in."""
    Morning = "Morning"
    Afternoon = "Afternoon"
    Evening = "Evening"
    Night = "Night"


class AppointmentType(str, enum.Enum):
    video_call = "video_call"
    voice_call = "voice_call"
    clinic_visit = "clinic_visit"


class SlotStatus(str, enum.Enum):
    available = "available"
    booked = "booked"
    cancelled = "cancelled"


class AppointmentStatus(str, enum.Enum):
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no-show"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    refunded = "refunded"


class CancelledBy(str, enum.Enum):
    user = "user"
    doctor = "doctor"
    system = "system"


class UnavailabilityType(str, enum.Enum):
    holiday = "holiday"
    sick_leave = "sick_leave"
    personal_leave = "personal_leave"
    emergency = "emergency"
    other = "other"


class OTPType(str, enum.Enum):
    forgot_password = "forgot_password"
    email_verification = "email_verification"
    other = "other"


class FilterType(str, enum.Enum):
    specialist = "specialist"
    location = "location"
    experience = "experience"
    gender = "gender"


def _enum(enum_cls):
    # store the value ("no-show"), not the member name ("no_show")
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False)


# ---------------------------------------------------------------------------
# ACCOUNTS
# ---------------------------------------------------------------------------

class User(Base):
    """Registered patient, doctor or admin account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    google_id = Column(String, unique=True, nullable=True, index=True)
    name = Column(String, default="")
    phone = Column(String, default="")
    role = Column(_enum(Role), default=Role.user, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ProspectiveUser(Base):
    """Signup waiting for email OTP verification."""
    __tablename__ = "prospective_users"

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, default="")
    phone = Column(String, default="")
    role = Column(_enum(Role), default=Role.user, nullable=False)
    otp = Column(String, nullable=False)
    email_attempts = Column(Integer, default=0)
    otp_expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class OTP(Base):
    """One-time password issued for password resets."""
    __tablename__ = "otps"
    __table_args__ = (Index("ix_otps_email_type_verified", "email", "type", "verified"),)

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False)
    otp = Column(String, nullable=False)
    type = Column(_enum(OTPType), default=OTPType.forgot_password, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0)
    max_attempts = Column(Integer, default=5)
    verified = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


# ---------------------------------------------------------------------------
# DOCTORS
# ---------------------------------------------------------------------------

class Doctor(Base):
    """Doctor profile shown in listings and on the profile page."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    specialty = Column(String, nullable=False, index=True)
    gender = Column(_enum(Gender), nullable=False)
    experience = Column(Integer, nullable=False, default=0)
    patient_stories = Column(Integer, default=0)
    rating = Column(Float, nullable=False, default=0)
    location = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    image = Column(String, nullable=False)
    badge = Column(String, nullable=True)
    fee = Column(Float, nullable=False, default=0)
    biography = Column(Text, default="")
    specialization = Column(JSON, default=list)
    qualifications = Column(Text, default="")
    total_consultations = Column(Integer, default=0)
    office_address = Column(String, default="")
    phone_number = Column(String, default="")
    office_phone_number = Column(String, default="")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    schedules = relationship("DoctorSchedule", back_populates="doctor", cascade="all, delete-orphan")
    unavailability = relationship("DoctorUnavailability", back_populates="doctor", cascade="all, delete-orphan")


class DoctorSchedule(Base):
    """Weekly working hours for one day of the week (0 = Sunday)."""
    __tablename__ = "doctor_schedules"
    __table_args__ = (UniqueConstraint("doctor_id", "day_of_week"),)

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    is_available = Column(Boolean, default=True)
    periods = Column(JSON, default=list)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    break_start_time = Column(String(5), nullable=True)
    break_end_time = Column(String(5), nullable=True)

    doctor = relationship("Doctor", back_populates="schedules")


class DoctorUnavailability(Base):
    """Leave / holiday range. Recurring entries repeat every year on the start date."""
    __tablename__ = "doctor_unavailability"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String, default="")
    type = Column(_enum(UnavailabilityType), default=UnavailabilityType.other)
    is_recurring = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    doctor = relationship("Doctor", back_populates="unavailability")


# ---------------------------------------------------------------------------
# SLOTS & APPOINTMENTS
# ---------------------------------------------------------------------------

class TimeSlot(Base):
    """Bookable 30 minute interval for a doctor on a given day."""
    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", "start_time", name="uq_slot_doctor_date_start"),
        Index("ix_slots_doctor_date_status", "doctor_id", "date", "status"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    period = Column(_enum(Period), nullable=False)
    booking_type = Column(_enum(AppointmentType), nullable=True)
    status = Column(_enum(SlotStatus), default=SlotStatus.available, nullable=False)
    appointment_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    doctor = relationship("Doctor")


class Appointment(Base):
    """A booked consultation. A slot has at most one appointment that is not cancelled."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("uq_appointments_active_slot", "time_slot_id", unique=True,
              sqlite_where=text("status != 'cancelled'")),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False, index=True)
    appointment_type = Column(_enum(AppointmentType), nullable=False)
    status = Column(_enum(AppointmentStatus), default=AppointmentStatus.confirmed, nullable=False, index=True)
    notes = Column(Text, default="")
    doctor_notes = Column(Text, default="")
    consultation_fee = Column(Float, nullable=False)
    payment_status = Column(_enum(PaymentStatus), default=PaymentStatus.pending)
    payment_id = Column(String, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(_enum(CancelledBy), nullable=True)
    cancellation_reason = Column(String, default="")
    completed_at = Column(DateTime, nullable=True)
    notes_updated_at = Column(DateTime, nullable=True)
    reminder_sent = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User")
    doctor = relationship("Doctor")
    time_slot = relationship("TimeSlot")


class Filter(Base):
    """Values offered by one listing filter dropdown."""
    __tablename__ = "filters"

    id = Column(Integer, primary_key=True)
    filter_type = Column(_enum(FilterType), nullable=False, unique=True)
    values = Column(JSON, default=list)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# CHAT
# ---------------------------------------------------------------------------

class ChatThread(Base):
    """Conversation with the assistant."""
    __tablename__ = "chat_threads"

    id = Column(String(32), primary_key=True)
    language = Column(String, default="en")
    mode = Column(String, default="normal")
    doctor_suggestions = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    messages = relationship(
        "ChatMessage", back_populates="thread",
        cascade="all, delete-orphan", order_by="ChatMessage.id",
    )


class ChatMessage(Base):
    """One user or assistant turn."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True)
    thread_id = Column(String(32), ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow)

    thread = relationship("ChatThread", back_populates="messages")
