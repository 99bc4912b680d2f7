"""
test_booking.py
===============
Unit tests for the booking workflow helpers: display formatting, the
month calendar, slot grouping and the three step booking wizard.
"""

import datetime
from unittest.mock import MagicMock

import pytest

from carebook.booking import (
    PERIODS, BookingWizard, CalendarMonth, build_calendar, default_selected_date,
    fetchable_dates, format_date_for_display, format_time, group_slots_by_period,
    period_counts, total_rows, visible_cells,
)
from carebook.client import ApiError

TODAY = datetime.date(2025, 3, 12)  # a Wednesday


@pytest.mark.parametrize("value, expected", [
    ("00:00", "12:00 AM"),
    ("00:15", "12:15 AM"),
    ("09:05", "9:05 AM"),
    ("12:00", "12:00 PM"),
    ("14:30", "2:30 PM"),
    ("23:59", "11:59 PM"),
])
def test_format_time(value, expected):
    assert format_time(value) == expected


def test_format_date_for_display():
    assert format_date_for_display("2025-03-12", TODAY) == "Today"
    assert format_date_for_display("2025-03-13", TODAY) == "Tomorrow"
    assert format_date_for_display("2025-03-17", TODAY) == "Mon 17 Mar"
    assert format_date_for_display("", TODAY) == ""
    assert format_date_for_display(None, TODAY) == ""


# --------------------------------------------------------------------------
# CALENDAR
# --------------------------------------------------------------------------

def test_build_calendar_march_2025():
    """
    ✅ Test the Sunday-first grid for March 2025 (1st is a Saturday).
    Expected: 6 leading blanks, 31 days, 6 rows, collapsed view shows 3 rows.
    """
    cells = build_calendar(2025, 3, TODAY)
    assert [c.empty for c in cells[:7]] == [True] * 6 + [False]
    assert len(cells) == 37
    assert total_rows(cells) == 6
    assert len(visible_cells(cells)) == 21
    assert len(visible_cells(cells, show_full=True)) == 37

    by_day = {c.day: c for c in cells if not c.empty}
    assert by_day[12].is_today and not by_day[12].is_past
    assert by_day[11].is_past
    assert by_day[31].iso == "2025-03-31"


def test_build_calendar_february_fits_four_rows():
    # February 2026 starts on a Sunday and has 28 days
    cells = build_calendar(2026, 2, TODAY)
    assert len(cells) == 28
    assert total_rows(cells) == 4


def test_calendar_month_navigation():
    march = CalendarMonth.current(TODAY)
    assert march.title == "March 2025"
    assert march.is_prev_disabled(TODAY)
    assert march.prev(TODAY) == march

    december = CalendarMonth(2025, 12)
    assert december.next() == CalendarMonth(2026, 1)
    assert CalendarMonth(2026, 1).prev(TODAY) == december


def test_fetchable_dates_and_default_selection():
    dates = fetchable_dates(2025, 3, TODAY)
    assert dates[0] == "2025-03-12"
    assert dates[-1] == "2025-03-31"
    assert len(dates) == 20
    assert fetchable_dates(2025, 2, TODAY) == []

    assert default_selected_date(dates, "2025-03-20", TODAY) == "2025-03-20"
    assert default_selected_date(dates, "2025-03-01", TODAY) == "2025-03-12"
    assert default_selected_date(fetchable_dates(2025, 4, TODAY), None, TODAY) == "2025-04-01"
    assert default_selected_date([], None, TODAY) is None


# --------------------------------------------------------------------------
# SLOT GROUPING
# --------------------------------------------------------------------------

def test_group_slots_by_period_partitions_and_sorts():
    slots = [
        {"id": 3, "startTime": "10:30", "endTime": "11:00", "period": "Morning"},
        {"id": 1, "startTime": "09:00", "endTime": "09:30", "period": "Morning"},
        {"id": 2, "start_time": "14:00", "end_time": "14:30", "period": "Afternoon"},
        {"id": 4, "startTime": "22:00", "endTime": "22:30", "period": "Late"},
        {"id": 5, "startTime": "18:00", "endTime": "18:30"},
    ]
    grouped = group_slots_by_period(slots)

    assert list(grouped) == PERIODS
    assert [s["id"] for s in grouped["Morning"]] == [1, 3]
    assert grouped["Afternoon"][0]["startTime"] == "14:00"
    assert [s["id"] for s in grouped["Evening"]] == [5]
    assert [s["id"] for s in grouped["Night"]] == [4]
    assert sum(period_counts(grouped).values()) == len(slots)


# --------------------------------------------------------------------------
# BOOKING WIZARD
# --------------------------------------------------------------------------

SLOT = {"id": 42, "startTime": "10:00", "endTime": "10:30", "period": "Morning"}


def test_wizard_steps_are_clamped():
    wizard = BookingWizard(doctor_id=7)
    assert not wizard.open(None)
    assert wizard.open(SLOT)
    assert wizard.back() == 1
    assert wizard.next_step() == 2
    assert wizard.next_step() == 3
    assert wizard.next_step() == 3

    wizard.close()
    assert not wizard.is_open and wizard.step == 1


def test_wizard_rejects_unknown_type():
    wizard = BookingWizard(doctor_id=7)
    with pytest.raises(ValueError):
        wizard.select_type("house_call")


def test_wizard_confirm_success():
    client = MagicMock()
    client.book_appointment.return_value = {"success": True, "data": {"id": 99}}

    wizard = BookingWizard(doctor_id=7)
    wizard.open(SLOT)
    wizard.select_type("video_call")
    wizard.notes = "Follow-up"

    assert wizard.confirm(client)
    client.book_appointment.assert_called_once_with(
        doctor_id=7, time_slot_id=42, appointment_type="video_call", notes="Follow-up",
    )
    assert wizard.success and wizard.appointment == {"id": 99}
    assert not wizard.in_progress

    wizard.finish()
    assert wizard.slot is None and not wizard.is_open


def test_wizard_confirm_conflict():
    """
    ✅ Test someone else taking the slot first.
    Expected: the server message is kept for display and nothing is marked booked.
    """
    client = MagicMock()
    client.book_appointment.side_effect = ApiError("Time slot is no longer available", status_code=409)

    wizard = BookingWizard(doctor_id=7)
    wizard.open(SLOT)
    assert not wizard.confirm(client)
    assert wizard.error == "Time slot is no longer available"
    assert not wizard.success
    assert not wizard.in_progress


def test_wizard_reopen_resets_state():
    wizard = BookingWizard(doctor_id=7)
    wizard.open(SLOT)
    wizard.select_type("voice_call")
    wizard.next_step()
    wizard.error = "old error"

    wizard.open(SLOT)
    assert wizard.step == 1
    assert wizard.appointment_type == "clinic_visit"
    assert wizard.error is None
