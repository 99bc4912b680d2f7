"""
Appointment routes: booking, the patient's own list, the doctor dashboard
(list / statistics / search) and per-appointment actions.

Booking claims the slot with a single conditional UPDATE
(status available -> booked), so two patients racing for the same slot
cannot both win: the loser gets 409 "Time slot is no longer available".
"""

import datetime
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import (
    get_current_user, ensure_doctor_or_admin, is_doctor_account, pagination_params, pagination_meta,
)
from ..models import (
    Appointment, AppointmentStatus, CancelledBy, Doctor, PaymentStatus, Role, SlotStatus,
    TimeSlot, User, utcnow,
)
from ..notifications import send_booking_emails
from ..schemas import (
    BookAppointmentRequest, CancelAppointmentRequest, AppointmentStatusRequest,
    DoctorNotesRequest, AppointmentOut, dump,
)
from ..scheduling import parse_hhmm

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])

DEFAULT_PAGE_SIZE = 10
SLOT_TAKEN = "Time slot is no longer available"


def _get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


def _get_doctor_or_404(db: Session, doctor_id: int) -> Doctor:
    doctor = db.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor


def _can_access(user: User, appointment: Appointment) -> bool:
    return (
        user.role == Role.admin
        or appointment.user_id == user.id
        or is_doctor_account(user, appointment.doctor)
    )


def _slot_start(slot: TimeSlot) -> datetime.datetime:
    minutes = parse_hhmm(slot.start_time)
    return datetime.datetime.combine(slot.date, datetime.time(minutes // 60, minutes % 60))


def _paged(query, page, limit, offset):
    total = query.count()
    items = query.order_by(Appointment.created_at.desc(), Appointment.id.desc()).offset(offset).limit(limit).all()
    return {
        "success": True,
        "data": [dump(AppointmentOut, a) for a in items],
        "pagination": pagination_meta(page, limit, total),
    }


# ---------------------------------------------------------------------------
# BOOKING
# ---------------------------------------------------------------------------

@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def book_appointment(
    req: BookAppointmentRequest,
    background: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Book ``timeSlotId`` with ``doctorId`` for the current user.
    The fee is copied from the doctor's profile at booking time.
    """
    doctor = _get_doctor_or_404(db, req.doctor_id)

    slot = db.get(TimeSlot, req.time_slot_id)
    if not slot:
        raise HTTPException(status_code=404, detail="Time slot not found")
    if slot.doctor_id != doctor.id:
        raise HTTPException(status_code=400, detail="Time slot does not belong to this doctor")
    if _slot_start(slot) < datetime.datetime.now():
        raise HTTPException(status_code=400, detail="Cannot book a time slot in the past")
    if slot.status != SlotStatus.available:
        raise HTTPException(status_code=409, detail=SLOT_TAKEN)

    # Conditional claim: only one concurrent request can flip the slot
    claimed = (
        db.query(TimeSlot)
        .filter(TimeSlot.id == slot.id, TimeSlot.status == SlotStatus.available)
        .update(
            {TimeSlot.status: SlotStatus.booked, TimeSlot.booking_type: req.appointment_type},
            synchronize_session=False,
        )
    )
    if not claimed:
        db.rollback()
        raise HTTPException(status_code=409, detail=SLOT_TAKEN)

    appointment = Appointment(
        user_id=user.id,
        doctor_id=doctor.id,
        time_slot_id=slot.id,
        appointment_type=req.appointment_type,
        status=AppointmentStatus.confirmed,
        notes=req.notes or "",
        consultation_fee=doctor.fee,
        payment_status=PaymentStatus.pending,
    )
    db.add(appointment)
    try:
        db.flush()
        db.query(TimeSlot).filter(TimeSlot.id == slot.id).update(
            {TimeSlot.appointment_id: appointment.id}, synchronize_session=False,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=SLOT_TAKEN)

    # emails run after the session is closed, so load everything they read now
    for obj in (appointment, user, doctor):
        db.refresh(obj)
    booked_slot = appointment.time_slot
    logger.info("📅 Appointment %s booked: user %s, doctor %s, slot %s",
                appointment.id, user.id, doctor.id, booked_slot.id)

    background.add_task(send_booking_emails, user, doctor, appointment, booked_slot)
    return {
        "success": True,
        "message": "Appointment booked successfully",
        "data": dump(AppointmentOut, appointment),
    }


# ---------------------------------------------------------------------------
# PATIENT
# ---------------------------------------------------------------------------

@router.get("")
@router.get("/", include_in_schema=False)
def my_appointments(
    status: Optional[AppointmentStatus] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    page, limit, offset = pagination_params(page, limit, DEFAULT_PAGE_SIZE)
    query = db.query(Appointment).filter(Appointment.user_id == user.id)
    if status:
        query = query.filter(Appointment.status == status)
    return _paged(query, page, limit, offset)


# ---------------------------------------------------------------------------
# DOCTOR DASHBOARD
# ---------------------------------------------------------------------------

@router.get("/doctor/{doctor_id}")
def doctor_appointments(
    doctor_id: int,
    status: Optional[AppointmentStatus] = None,
    date: Optional[datetime.date] = None,
    start_date: Optional[datetime.date] = Query(None, alias="startDate"),
    end_date: Optional[datetime.date] = Query(None, alias="endDate"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """A doctor's appointments, optionally for one day or a date range of their slots."""
    doctor = _get_doctor_or_404(db, doctor_id)
    ensure_doctor_or_admin(user, doctor, "Unauthorized to view these appointments")
    page, limit, offset = pagination_params(page, limit, DEFAULT_PAGE_SIZE)

    query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
    if status:
        query = query.filter(Appointment.status == status)
    if date or (start_date and end_date):
        query = query.join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
        if date:
            query = query.filter(TimeSlot.date == date)
        if start_date and end_date:
            query = query.filter(TimeSlot.date >= start_date, TimeSlot.date <= end_date)
    return _paged(query, page, limit, offset)


def _period_start(period: str, now: datetime.datetime) -> Optional[datetime.datetime]:
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - datetime.timedelta(days=7)
    if period == "month":
        return midnight - datetime.timedelta(days=30)
    if period == "all":
        return None
    return midnight


@router.get("/doctor/{doctor_id}/statistics")
def doctor_statistics(
    doctor_id: int,
    period: str = "today",
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Dashboard numbers for appointments created in ``period``
    (today / week / month / all; anything else counts as today).
    Revenue only includes paid appointments.
    """
    doctor = _get_doctor_or_404(db, doctor_id)
    ensure_doctor_or_admin(user, doctor, "Unauthorized to view these statistics")

    query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
    since = _period_start(period, utcnow())
    if since is not None:
        query = query.filter(Appointment.created_at >= since)
    appointments = query.all()

    today = datetime.date.today()
    by_status = {s: 0 for s in AppointmentStatus}
    by_type = {"videoCall": 0, "voiceCall": 0, "clinicVisit": 0}
    type_keys = {"video_call": "videoCall", "voice_call": "voiceCall", "clinic_visit": "clinicVisit"}
    today_count = upcoming_count = 0
    paid_fees = []

    for a in appointments:
        by_status[a.status] += 1
        by_type[type_keys[a.appointment_type.value]] += 1
        slot_date = a.time_slot.date if a.time_slot else None
        if slot_date == today:
            today_count += 1
        if slot_date and slot_date > today and a.status == AppointmentStatus.confirmed:
            upcoming_count += 1
        if a.payment_status == PaymentStatus.paid:
            paid_fees.append(a.consultation_fee)

    revenue = sum(paid_fees)
    counts = {
        "confirmed": by_status[AppointmentStatus.confirmed],
        "completed": by_status[AppointmentStatus.completed],
        "cancelled": by_status[AppointmentStatus.cancelled],
        "noShow": by_status[AppointmentStatus.no_show],
    }
    return {
        "success": True,
        "data": {
            "period": period,
            "totalAppointments": len(appointments),
            "todayCount": today_count,
            "upcomingCount": upcoming_count,
            "counts": counts,
            "revenue": revenue,
            "paidAppointments": len(paid_fees),
            "avgConsultationFee": revenue / len(paid_fees) if paid_fees else 0,
            "appointmentTypes": by_type,
        },
    }


@router.get("/doctor/{doctor_id}/search")
def search_doctor_appointments(
    doctor_id: int,
    query: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Find a doctor's appointments by patient name or email."""
    doctor = _get_doctor_or_404(db, doctor_id)
    ensure_doctor_or_admin(user, doctor, "Unauthorized to search these appointments")
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required")
    page, limit, offset = pagination_params(page, limit, DEFAULT_PAGE_SIZE)

    pattern = f"%{query.strip().lower()}%"
    matches = (
        db.query(Appointment)
        .join(User, Appointment.user_id == User.id)
        .filter(
            Appointment.doctor_id == doctor_id,
            or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)),
        )
    )
    return _paged(matches, page, limit, offset)


# ---------------------------------------------------------------------------
# SINGLE APPOINTMENT
# ---------------------------------------------------------------------------

@router.get("/{appointment_id}")
def get_appointment(appointment_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    appointment = _get_appointment_or_404(db, appointment_id)
    if not _can_access(user, appointment):
        raise HTTPException(status_code=403, detail="Unauthorized to view this appointment")
    return {"success": True, "data": dump(AppointmentOut, appointment)}


@router.patch("/{appointment_id}/cancel")
def cancel_appointment(
    appointment_id: int,
    req: Optional[CancelAppointmentRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Cancel and hand the slot back to the pool of free slots."""
    req = req or CancelAppointmentRequest()
    appointment = _get_appointment_or_404(db, appointment_id)
    if not _can_access(user, appointment):
        raise HTTPException(status_code=403, detail="Unauthorized to cancel this appointment")
    if appointment.status == AppointmentStatus.cancelled:
        raise HTTPException(status_code=400, detail="Appointment is already cancelled")

    appointment.status = AppointmentStatus.cancelled
    appointment.cancelled_at = utcnow()
    appointment.cancelled_by = req.cancelled_by or (
        CancelledBy.user if appointment.user_id == user.id else CancelledBy.doctor
    )
    appointment.cancellation_reason = req.reason or ""

    slot = appointment.time_slot
    if slot:
        slot.status = SlotStatus.available
        slot.appointment_id = None
        slot.booking_type = None

    db.commit()
    db.refresh(appointment)
    logger.info("❎ Appointment %s cancelled by %s", appointment.id, appointment.cancelled_by.value)
    return {
        "success": True,
        "message": "Appointment cancelled successfully",
        "data": dump(AppointmentOut, appointment),
    }


@router.patch("/{appointment_id}/status")
def update_status(appointment_id: int, req: AppointmentStatusRequest,
                  user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    appointment = _get_appointment_or_404(db, appointment_id)
    ensure_doctor_or_admin(user, appointment.doctor, "Only the doctor can update appointment status")
    if appointment.status == AppointmentStatus.cancelled:
        raise HTTPException(status_code=400, detail="Cannot update status of cancelled appointment")

    appointment.status = AppointmentStatus(req.status)
    if appointment.status == AppointmentStatus.completed:
        appointment.completed_at = utcnow()
    db.commit()
    db.refresh(appointment)
    return {
        "success": True,
        "message": "Appointment status updated successfully",
        "data": dump(AppointmentOut, appointment),
    }


@router.patch("/{appointment_id}/notes")
def update_notes(appointment_id: int, req: DoctorNotesRequest,
                 user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    appointment = _get_appointment_or_404(db, appointment_id)
    ensure_doctor_or_admin(user, appointment.doctor, "Only the doctor can add notes to this appointment")

    appointment.doctor_notes = req.doctor_notes
    appointment.notes_updated_at = utcnow()
    db.commit()
    db.refresh(appointment)
    return {
        "success": True,
        "message": "Doctor notes updated successfully",
        "data": dump(AppointmentOut, appointment),
    }
