"""
Doctor discovery and management routes.

Listings (nearby / affordable / all) and profile reads are public.
Creating, editing and deleting doctors is limited to the accounts in
ALLOWED_DOCTOR_ONBOARDING_EMAILS.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import require_onboarding_access, pagination_params, pagination_meta
from ..models import Doctor, TimeSlot, User
from ..schemas import DoctorCreate, DoctorUpdate, DoctorOut, BADGES, dump
from ..search import parse_experience_filter, map_gender_filter, haversine_km, bounding_box
from ..security import normalize_email
from ..seed import weekly_schedule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["doctors"])

DEFAULT_PAGE_SIZE = 8


def _page(items, page, limit, total, **extra):
    body = {
        "success": True,
        "data": items,
        "pagination": pagination_meta(page, limit, total),
    }
    body.update(extra)
    return body


def _check_badge(badge: Optional[str]):
    if badge is not None and badge not in BADGES:
        raise HTTPException(status_code=400, detail=f"Badge must be one of: {', '.join(BADGES)}")


def _get_doctor_or_404(db: Session, doctor_id: int) -> Doctor:
    doctor = db.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor


# ---------------------------------------------------------------------------
# LISTINGS
# ---------------------------------------------------------------------------

@router.get("/nearby")
def nearby_doctors(
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    max_distance: float = Query(25, alias="maxDistance", gt=0),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    Doctors within ``maxDistance`` km, best rated first and nearest among equals.
    Without coordinates every doctor is returned, best rated first.
    """
    page, limit, offset = pagination_params(page, limit, DEFAULT_PAGE_SIZE)

    if latitude is None or longitude is None:
        query = db.query(Doctor)
        total = query.count()
        doctors = (
            query.order_by(Doctor.rating.desc(), Doctor.created_at.desc(), Doctor.id.desc())
            .offset(offset).limit(limit).all()
        )
        return _page(
            [dump(DoctorOut, d) for d in doctors], page, limit, total,
            message="Location not provided. Showing all doctors.",
        )

    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, max_distance)
    query = db.query(Doctor).filter(Doctor.latitude >= min_lat, Doctor.latitude <= max_lat)
    # the longitude window wraps around the antimeridian near +/-180
    if min_lon >= -180 and max_lon <= 180:
        query = query.filter(Doctor.longitude >= min_lon, Doctor.longitude <= max_lon)

    in_range = []
    for doctor in query.all():
        distance = haversine_km(latitude, longitude, doctor.latitude, doctor.longitude)
        if distance <= max_distance:
            in_range.append((doctor, distance))
    in_range.sort(key=lambda pair: (-pair[0].rating, pair[1]))

    items = []
    for doctor, distance in in_range[offset:offset + limit]:
        item = dump(DoctorOut, doctor)
        item["distance"] = round(distance, 2)
        items.append(item)
    return _page(items, page, limit, len(in_range))


@router.get("/affordable")
def affordable_doctors(
    max_fee: Optional[float] = Query(None, alias="maxFee"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Doctors charging at most ``maxFee`` (default 1000), cheapest first."""
    page, limit, offset = pagination_params(page, limit, DEFAULT_PAGE_SIZE)
    max_fee = max_fee if max_fee and max_fee > 0 else 1000

    query = db.query(Doctor).filter(Doctor.fee <= max_fee)
    total = query.count()
    doctors = query.order_by(Doctor.fee.asc(), Doctor.rating.desc(), Doctor.id).offset(offset).limit(limit).all()
    return _page([dump(DoctorOut, d) for d in doctors], page, limit, total)


@router.get("/all")
def all_doctors(
    specialist: Optional[str] = None,
    location: Optional[str] = None,
    experience: Optional[str] = None,
    gender: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Full listing with the filter bar's dropdown values applied."""
    page, limit, offset = pagination_params(page, limit, DEFAULT_PAGE_SIZE)

    query = db.query(Doctor)
    if specialist:
        query = query.filter(Doctor.specialty == specialist)
    if location:
        query = query.filter(Doctor.location.ilike(f"%{location}%"))

    exp_range = parse_experience_filter(experience)
    if exp_range:
        low, high = exp_range
        query = query.filter(Doctor.experience >= low)
        if high is not None:
            query = query.filter(Doctor.experience <= high)

    mapped_gender = map_gender_filter(gender)
    if mapped_gender:
        query = query.filter(Doctor.gender == mapped_gender)

    total = query.count()
    doctors = (
        query.order_by(Doctor.rating.desc(), Doctor.created_at.desc(), Doctor.id.desc())
        .offset(offset).limit(limit).all()
    )
    return _page(
        [dump(DoctorOut, d) for d in doctors], page, limit, total,
        filters={
            "specialist": specialist or None,
            "location": location or None,
            "experience": experience or None,
            "gender": gender or None,
        },
    )


# ---------------------------------------------------------------------------
# SINGLE DOCTOR
# ---------------------------------------------------------------------------

@router.get("/by-email")
def doctor_by_email(
    email: Optional[str] = None,
    user: User = Depends(require_onboarding_access),
    db: Session = Depends(get_db),
):
    """Doctor profile for an email (the caller's own email when omitted)."""
    target = normalize_email(email or user.email)
    doctor = db.query(Doctor).filter(Doctor.email == target).first()
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found with this email")
    return {"success": True, "data": dump(DoctorOut, doctor)}


@router.get("/{doctor_id}")
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": dump(DoctorOut, _get_doctor_or_404(db, doctor_id))}


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def create_doctor(req: DoctorCreate, user: User = Depends(require_onboarding_access), db: Session = Depends(get_db)):
    _check_badge(req.badge)
    fields = req.model_dump()
    if fields.get("email"):
        fields["email"] = normalize_email(fields["email"])
        if db.query(Doctor).filter(Doctor.email == fields["email"]).first():
            raise HTTPException(status_code=400, detail="Doctor with this email already exists")

    doctor = Doctor(**fields)
    db.add(doctor)
    db.flush()
    # default week, so slot generation has working hours to expand
    db.add_all(weekly_schedule(doctor.id))
    db.commit()
    db.refresh(doctor)
    logger.info("🩺 Doctor %s onboarded by %s", doctor.id, user.email)
    return {"success": True, "message": "Doctor created successfully", "data": dump(DoctorOut, doctor)}


@router.put("/{doctor_id}")
def update_doctor(doctor_id: int, req: DoctorUpdate,
                  user: User = Depends(require_onboarding_access), db: Session = Depends(get_db)):
    doctor = _get_doctor_or_404(db, doctor_id)
    changes = req.model_dump(exclude_unset=True)

    if "badge" in changes:
        _check_badge(changes["badge"])
    if changes.get("email"):
        changes["email"] = normalize_email(changes["email"])
        clash = db.query(Doctor).filter(Doctor.email == changes["email"], Doctor.id != doctor_id).first()
        if clash:
            raise HTTPException(status_code=400, detail="Doctor with this email already exists")

    for field, value in changes.items():
        setattr(doctor, field, value)
    db.commit()
    db.refresh(doctor)
    return {"success": True, "message": "Doctor updated successfully", "data": dump(DoctorOut, doctor)}


@router.delete("/{doctor_id}")
def delete_doctor(doctor_id: int, user: User = Depends(require_onboarding_access), db: Session = Depends(get_db)):
    """Delete a doctor together with all of their time slots."""
    doctor = _get_doctor_or_404(db, doctor_id)
    name = doctor.name

    deleted_slots = (
        db.query(TimeSlot)
        .filter(TimeSlot.doctor_id == doctor_id)
        .delete(synchronize_session=False)
    )
    db.delete(doctor)
    db.commit()
    logger.info("🗑️  Deleted doctor %s and %d time slots", doctor_id, deleted_slots)

    return {
        "success": True,
        "message": "Doctor and time slots deleted successfully",
        "data": {"id": doctor_id, "name": name, "deletedTimeSlots": deleted_slots},
    }
