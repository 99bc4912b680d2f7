"""
Time slot routes: free slots per day (public), slot generation,
doctor leave, and bulk status changes from the doctor dashboard.
"""

import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_current_user, ensure_doctor_or_admin
from ..models import Doctor, DoctorUnavailability, TimeSlot, SlotStatus, Period, User
from ..schemas import (
    GenerateSlotsRequest, UnavailabilityRequest, UnavailabilityOut, BulkSlotUpdateRequest,
    TimeSlotOut, dump,
)
from ..scheduling import (
    generate_slots, get_available_slots, cancel_available_slots, overlapping_unavailability,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/slots", tags=["slots"])


def _check_range(start_date: datetime.date, end_date: datetime.date):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="End date must not be before start date")


def _get_doctor_or_404(db: Session, doctor_id: int) -> Doctor:
    doctor = db.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor


@router.get("/{doctor_id}/unavailable")
def get_unavailability(
    doctor_id: int,
    start_date: Optional[datetime.date] = Query(None, alias="startDate"),
    end_date: Optional[datetime.date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entries = overlapping_unavailability(db, doctor_id, start_date, end_date)
    return {"success": True, "data": [dump(UnavailabilityOut, e) for e in entries]}


@router.get("/{doctor_id}")
def get_doctor_slots(
    doctor_id: int,
    date: Optional[datetime.date] = None,
    period: Optional[Period] = None,
    db: Session = Depends(get_db),
):
    """Free slots of one day (today when no date is given)."""
    day = date or datetime.date.today()
    result = get_available_slots(db, doctor_id, day, period.value if period else None)
    result["availableSlots"] = [dump(TimeSlotOut, s) for s in result["availableSlots"]]
    return {"success": True, "data": result}


@router.post("/{doctor_id}/generate", status_code=201)
def generate_doctor_slots(doctor_id: int, req: GenerateSlotsRequest,
                          user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _check_range(req.start_date, req.end_date)
    return generate_slots(db, doctor_id, req.start_date, req.end_date)


@router.post("/{doctor_id}/unavailable")
def mark_unavailable(doctor_id: int, req: UnavailabilityRequest,
                     user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Record leave and cancel the still-free slots it covers."""
    doctor = _get_doctor_or_404(db, doctor_id)
    ensure_doctor_or_admin(user, doctor, "Unauthorized to update availability")
    _check_range(req.start_date, req.end_date)

    entry = DoctorUnavailability(
        doctor_id=doctor_id,
        start_date=req.start_date,
        end_date=req.end_date,
        reason=req.reason,
        type=req.type,
        is_recurring=req.is_recurring,
    )
    db.add(entry)
    cancelled = cancel_available_slots(db, doctor_id, req.start_date, req.end_date)
    db.commit()
    db.refresh(entry)
    logger.info("🏖️  Doctor %s unavailable %s..%s, %d slots cancelled",
                doctor_id, req.start_date, req.end_date, cancelled)

    return {
        "success": True,
        "message": "Doctor marked as unavailable",
        "data": dump(UnavailabilityOut, entry),
        "cancelledSlots": cancelled,
    }


@router.patch("/{doctor_id}/bulk")
def bulk_update_slots(doctor_id: int, req: BulkSlotUpdateRequest,
                      user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Open or close several slots at once. Booked slots are never touched."""
    doctor = _get_doctor_or_404(db, doctor_id)
    ensure_doctor_or_admin(user, doctor, "Unauthorized to update slots")

    if req.status == SlotStatus.available.value:
        booked = (
            db.query(TimeSlot)
            .filter(TimeSlot.id.in_(req.slot_ids), TimeSlot.status == SlotStatus.booked)
            .count()
        )
        if booked:
            raise HTTPException(
                status_code=400,
                detail="Cannot change booked slots to available. Cancel appointments first.",
            )

    updated = (
        db.query(TimeSlot)
        .filter(
            TimeSlot.id.in_(req.slot_ids),
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.status != SlotStatus.booked,
            TimeSlot.status != SlotStatus(req.status),
        )
        .update({TimeSlot.status: SlotStatus(req.status)}, synchronize_session=False)
    )
    db.commit()

    return {
        "success": True,
        "message": f"{updated} slots updated successfully",
        "data": {"updatedCount": updated, "totalRequested": len(req.slot_ids)},
    }
