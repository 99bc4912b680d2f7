"""
scheduling.py
=============
Turns weekly doctor schedules into bookable 30 minute time slots and
answers "which slots are free on this day" queries.

 - period_for_hour / is_in_break / build_day_slots are pure helpers
 - generate_slots persists slots for a date range, skipping leave days
 - get_available_slots returns the free slots of one day
"""

import datetime
import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import extract, and_
from sqlalchemy.orm import Session

from . import config
from .models import (
    Doctor, DoctorSchedule, DoctorUnavailability, TimeSlot,
    Period, SlotStatus,
)

logger = logging.getLogger(__name__)

PERIOD_ORDER = [Period.Morning, Period.Afternoon, Period.Evening, Period.Night]


# ---------------------------------------------------------------------------
# PURE HELPERS
# ---------------------------------------------------------------------------

def parse_hhmm(value: str) -> int:
    """'14:30' -> minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_hhmm(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def period_for_hour(hour: int) -> Period:
    """Morning 6-12, Afternoon 12-17, Evening 17-21, Night otherwise."""
    if 6 <= hour < 12:
        return Period.Morning
    if 12 <= hour < 17:
        return Period.Afternoon
    if 17 <= hour < 21:
        return Period.Evening
    return Period.Night


def is_in_break(time_str: str, break_start: Optional[str], break_end: Optional[str]) -> bool:
    if not break_start or not break_end:
        return False
    minute = parse_hhmm(time_str)
    return parse_hhmm(break_start) <= minute < parse_hhmm(break_end)


def js_weekday(day: datetime.date) -> int:
    """Day of week with Sunday = 0, as stored in DoctorSchedule."""
    return (day.weekday() + 1) % 7


def build_day_slots(schedule: Optional[DoctorSchedule], day: datetime.date) -> List[dict]:
    """
    Build the slot rows for one day from a weekly schedule.

    Slots start every SLOT_MINUTES from start_time while the start is before
    end_time; a slot is kept only if its period is one of the schedule's
    periods and its start is not inside the break.
    """
    if not schedule or not schedule.is_available or not schedule.start_time or not schedule.end_time:
        return []

    periods = {Period(p) for p in (schedule.periods or [])}
    start = parse_hhmm(schedule.start_time)
    end = parse_hhmm(schedule.end_time)
    slots = []

    current = start
    while current < end:
        time_str = format_hhmm(current)
        period = period_for_hour(current // 60)
        if period in periods and not is_in_break(time_str, schedule.break_start_time, schedule.break_end_time):
            slots.append({
                "doctor_id": schedule.doctor_id,
                "date": day,
                "start_time": time_str,
                "end_time": format_hhmm((current + config.SLOT_MINUTES) % (24 * 60)),
                "period": period,
                "booking_type": None,
                "status": SlotStatus.available,
            })
        current += config.SLOT_MINUTES

    return slots


def _date_range(start: datetime.date, end: datetime.date):
    day = start
    while day <= end:
        yield day
        day += datetime.timedelta(days=1)


# ---------------------------------------------------------------------------
# UNAVAILABILITY
# ---------------------------------------------------------------------------

def find_unavailability(db: Session, doctor_id: int, day: datetime.date) -> Optional[DoctorUnavailability]:
    """Leave entry covering ``day``: a direct date range hit, or a recurring one on the same month/day."""
    direct = (
        db.query(DoctorUnavailability)
        .filter(
            DoctorUnavailability.doctor_id == doctor_id,
            DoctorUnavailability.start_date <= day,
            DoctorUnavailability.end_date >= day,
        )
        .first()
    )
    if direct:
        return direct

    return (
        db.query(DoctorUnavailability)
        .filter(
            DoctorUnavailability.doctor_id == doctor_id,
            DoctorUnavailability.is_recurring.is_(True),
            extract("month", DoctorUnavailability.start_date) == day.month,
            extract("day", DoctorUnavailability.start_date) == day.day,
        )
        .first()
    )


# ---------------------------------------------------------------------------
# PERSISTENCE
# ---------------------------------------------------------------------------

def generate_slots(db: Session, doctor_id: int, start_date: datetime.date, end_date: datetime.date) -> dict:
    """
    Create available slots for every scheduled day in [start_date, end_date].
    Slots that already exist (same doctor, date, start time) are left untouched.
    """
    doctor = db.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")

    schedule_by_day = {
        s.day_of_week: s
        for s in db.query(DoctorSchedule).filter(DoctorSchedule.doctor_id == doctor_id).all()
    }

    candidates = []
    for day in _date_range(start_date, end_date):
        schedule = schedule_by_day.get(js_weekday(day))
        if not schedule or not schedule.is_available:
            continue
        if find_unavailability(db, doctor_id, day):
            continue
        candidates.extend(build_day_slots(schedule, day))

    existing = set(
        db.query(TimeSlot.date, TimeSlot.start_time)
        .filter(
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date >= start_date,
            TimeSlot.date <= end_date,
        )
        .all()
    )
    new_slots = [TimeSlot(**row) for row in candidates if (row["date"], row["start_time"]) not in existing]
    skipped = len(candidates) - len(new_slots)

    if new_slots:
        db.add_all(new_slots)
    db.commit()

    if skipped:
        logger.info("⚠️  Skipped %d duplicate slots for doctor %s", skipped, doctor_id)
    logger.info("✅ Inserted %d slots for doctor %s", len(new_slots), doctor_id)

    return {
        "success": True,
        "slotsGenerated": len(new_slots),
        "message": f"Generated {len(new_slots)} slots for doctor {doctor_id}",
    }


def get_available_slots(db: Session, doctor_id: int, day: datetime.date, period: Optional[str] = None) -> dict:
    """Free slots of one day ordered by start time, with the doctor's leave status for that day."""
    query = db.query(TimeSlot).filter(
        TimeSlot.doctor_id == doctor_id,
        TimeSlot.date == day,
        TimeSlot.status == SlotStatus.available,
    )
    if period:
        query = query.filter(TimeSlot.period == Period(period))

    slots = query.order_by(TimeSlot.start_time).all()
    unavailability = find_unavailability(db, doctor_id, day)

    return {
        "availableSlots": slots,
        "isDoctorAvailable": unavailability is None,
        "unavailabilityReason": unavailability.reason if unavailability else None,
        "unavailabilityType": unavailability.type.value if unavailability else None,
        "message": "Doctor is unavailable on this date" if unavailability else None,
    }


def cancel_available_slots(db: Session, doctor_id: int, start_date: datetime.date, end_date: datetime.date) -> int:
    """Mark still-free slots in a leave range as cancelled. Booked slots are kept."""
    count = (
        db.query(TimeSlot)
        .filter(
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date >= start_date,
            TimeSlot.date <= end_date,
            TimeSlot.status == SlotStatus.available,
        )
        .update({TimeSlot.status: SlotStatus.cancelled}, synchronize_session=False)
    )
    return count


def overlapping_unavailability(db: Session, doctor_id: int,
                               start_date: Optional[datetime.date] = None,
                               end_date: Optional[datetime.date] = None) -> List[DoctorUnavailability]:
    query = db.query(DoctorUnavailability).filter(DoctorUnavailability.doctor_id == doctor_id)
    if start_date and end_date:
        query = query.filter(
            and_(DoctorUnavailability.start_date <= end_date, DoctorUnavailability.end_date >= start_date)
        )
    return query.order_by(DoctorUnavailability.start_date).all()
