"""
test_commands.py
================
Tests for the maintenance commands of ``python -m carebook``.
Tests cover:
 - seed-schedules gives every doctor the default week and resets edited days
 - generate-slots for one doctor, and the exit code for an unknown doctor
 - duplicate slots refused by the database
"""

import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from carebook.__main__ import build_parser, main
from carebook.models import DoctorSchedule, TimeSlot


def _schedule(db, doctor_id):
    return {s.day_of_week: s for s in db.query(DoctorSchedule).filter(DoctorSchedule.doctor_id == doctor_id)}


def test_parser_defaults():
    args = build_parser().parse_args(["generate-slots"])
    assert args.doctor_id is None
    assert args.days == 30
    assert build_parser().parse_args([]).command is None

    with pytest.raises(SystemExit):
        build_parser().parse_args(["generate-slots", "not-a-number"])


def test_seed_schedules_command(db, make_doctor):
    """
    ✅ Test seeding weekly schedules.
    Expected: seven days for a doctor without hours; a rerun overwrites edits
    instead of adding rows.
    """
    doctor = make_doctor()
    assert _schedule(db, doctor.id) == {}

    assert main(["seed-schedules"]) == 0
    db.expire_all()
    week = _schedule(db, doctor.id)
    assert sorted(week) == list(range(7))
    assert week[6].start_time == "10:00" and week[6].break_start_time is None

    week[6].start_time = "11:30"
    week[6].break_start_time = "12:00"
    db.commit()

    assert main(["seed-schedules"]) == 0
    db.expire_all()
    week = _schedule(db, doctor.id)
    assert len(week) == 7
    assert week[6].start_time == "10:00"
    assert week[6].break_start_time is None


def test_generate_slots_command(db, make_doctor):
    """
    ✅ Test generating slots for one doctor a week ahead.
    Expected: today through six days ahead holds every weekday once.
    """
    doctor = make_doctor()
    assert main(["seed-schedules"]) == 0

    assert main(["generate-slots", str(doctor.id), "6"]) == 0
    slots = db.query(TimeSlot).filter(TimeSlot.doctor_id == doctor.id).all()
    assert len(slots) == 5 * 14 + 8

    today = datetime.date.today()
    assert min(s.date for s in slots) >= today
    assert max(s.date for s in slots) <= today + datetime.timedelta(days=6)
    assert all(s.date.weekday() != 6 for s in slots)  # Sunday off

    # idempotent
    assert main(["generate-slots", str(doctor.id), "6"]) == 0
    assert db.query(TimeSlot).filter(TimeSlot.doctor_id == doctor.id).count() == len(slots)


def test_generate_slots_unknown_doctor():
    assert main(["generate-slots", "999999", "3"]) == 1


def test_duplicate_slots_are_rejected(db, make_doctor, make_slot):
    """The unique doctor/date/start time constraint keeps slot tables free of duplicates."""
    doctor = make_doctor()
    make_slot(doctor, start_time="10:00")
    with pytest.raises(IntegrityError):
        make_slot(doctor, start_time="10:00")
    db.rollback()
    assert db.query(TimeSlot).filter(TimeSlot.doctor_id == doctor.id).count() == 1
