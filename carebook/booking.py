"""
booking.py
==========
Booking workflow logic used by clients of the CareBook API:
 - time / date display helpers
 - month calendar grid (Sunday first) and month navigation
 - grouping of free slots by period of the day
 - the three step booking wizard (type -> notes -> confirm)
"""

import calendar
import datetime
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .client import ApiError
from .scheduling import parse_hhmm, period_for_hour

logger = logging.getLogger(__name__)

PERIODS = ["Morning", "Afternoon", "Evening", "Night"]

PERIOD_CONFIG = {
    "Morning": {"icon": "☀️", "time_range": "6AM - 12PM"},
    "Afternoon": {"icon": "🌤️", "time_range": "12PM - 5PM"},
    "Evening": {"icon": "🌙", "time_range": "5PM - 9PM"},
    "Night": {"icon": "🌃", "time_range": "9PM - 6AM"},
}

APPOINTMENT_TYPES = [
    {"value": "video_call", "label": "Video Call", "icon": "📹",
     "description": "Face-to-face consultation via video"},
    {"value": "voice_call", "label": "Voice Call", "icon": "📞",
     "description": "Audio consultation over phone"},
    {"value": "clinic_visit", "label": "Clinic Visit", "icon": "🏥",
     "description": "In-person visit at the clinic"},
]

MONTH_NAMES = list(calendar.month_name)[1:]
DAY_HEADERS = ["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"]

_SHORT_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_SHORT_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

COLLAPSED_ROWS = 3


# ---------------------------------------------------------------------------
# DISPLAY HELPERS
# ---------------------------------------------------------------------------

def format_time(time_24: str) -> str:
    """'14:30' -> '2:30 PM', '00:15' -> '12:15 AM'."""
    hours, minutes = (int(part) for part in time_24.split(":"))
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"


def format_date_for_display(date_str: Optional[str], today: Optional[datetime.date] = None) -> str:
    """'YYYY-MM-DD' -> 'Today', 'Tomorrow' or 'Wed 12 Mar'. Empty input gives ''."""
    if not date_str:
        return ""
    day = datetime.date.fromisoformat(date_str)
    today = today or datetime.date.today()
    if day == today:
        return "Today"
    if day == today + datetime.timedelta(days=1):
        return "Tomorrow"
    return f"{_SHORT_DAYS[day.weekday()]} {day.day} {_SHORT_MONTHS[day.month - 1]}"


# ---------------------------------------------------------------------------
# CALENDAR
# ---------------------------------------------------------------------------

@dataclass
class CalendarCell:
    """One square of the month grid. Leading blanks have ``empty=True`` and no date."""
    empty: bool
    date: Optional[datetime.date] = None
    day: Optional[int] = None
    is_today: bool = False
    is_past: bool = False

    @property
    def iso(self) -> Optional[str]:
        return self.date.isoformat() if self.date else None


def leading_blanks(year: int, month: int) -> int:
    # Sunday first grid: Sunday -> 0 ... Saturday -> 6
    return (datetime.date(year, month, 1).weekday() + 1) % 7


def build_calendar(year: int, month: int, today: Optional[datetime.date] = None) -> List[CalendarCell]:
    """Month grid: ``leading_blanks`` empty cells followed by one cell per day."""
    today = today or datetime.date.today()
    cells = [CalendarCell(empty=True) for _ in range(leading_blanks(year, month))]
    for day_number in range(1, calendar.monthrange(year, month)[1] + 1):
        day = datetime.date(year, month, day_number)
        cells.append(CalendarCell(
            empty=False,
            date=day,
            day=day_number,
            is_today=day == today,
            is_past=day < today,
        ))
    return cells


def total_rows(cells: List[CalendarCell]) -> int:
    return -(-len(cells) // 7)


def visible_cells(cells: List[CalendarCell], show_full: bool = False) -> List[CalendarCell]:
    """The collapsed calendar only shows the first three weeks."""
    rows = total_rows(cells) if show_full else min(COLLAPSED_ROWS, total_rows(cells))
    return cells[:rows * 7]


class CalendarMonth:
    """Month being displayed, with prev / next navigation."""

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month

    @classmethod
    def current(cls, today: Optional[datetime.date] = None) -> "CalendarMonth":
        today = today or datetime.date.today()
        return cls(today.year, today.month)

    @property
    def title(self) -> str:
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    def is_prev_disabled(self, today: Optional[datetime.date] = None) -> bool:
        """No navigating to months before the current one."""
        today = today or datetime.date.today()
        return (self.year, self.month) <= (today.year, today.month)

    def prev(self, today: Optional[datetime.date] = None) -> "CalendarMonth":
        if self.is_prev_disabled(today):
            return self
        if self.month == 1:
            return CalendarMonth(self.year - 1, 12)
        return CalendarMonth(self.year, self.month - 1)

    def next(self) -> "CalendarMonth":
        if self.month == 12:
            return CalendarMonth(self.year + 1, 1)
        return CalendarMonth(self.year, self.month + 1)

    def cells(self, today: Optional[datetime.date] = None) -> List[CalendarCell]:
        return build_calendar(self.year, self.month, today)

    def __eq__(self, other):
        return isinstance(other, CalendarMonth) and (self.year, self.month) == (other.year, other.month)

    def __repr__(self):
        return f"CalendarMonth({self.year}, {self.month})"


def fetchable_dates(year: int, month: int, today: Optional[datetime.date] = None) -> List[str]:
    """ISO dates of the month from today onwards; the ones worth asking slot counts for."""
    today = today or datetime.date.today()
    last_day = calendar.monthrange(year, month)[1]
    return [
        datetime.date(year, month, d).isoformat()
        for d in range(1, last_day + 1)
        if datetime.date(year, month, d) >= today
    ]


def default_selected_date(dates: List[str], current: Optional[str] = None,
                          today: Optional[datetime.date] = None) -> Optional[str]:
    """
    Keep ``current`` if it is still selectable, otherwise prefer today and
    then the first selectable date.
    """
    if current and current in dates:
        return current
    today_str = (today or datetime.date.today()).isoformat()
    if today_str in dates:
        return today_str
    return dates[0] if dates else None


# ---------------------------------------------------------------------------
# SLOT GROUPING
# ---------------------------------------------------------------------------

def _slot_value(slot: dict, camel: str, snake: str):
    return slot.get(camel, slot.get(snake))


def group_slots_by_period(slots: List[dict]) -> Dict[str, List[dict]]:
    """
    Partition slots into Morning / Afternoon / Evening / Night, each sorted by
    start time. A slot with a missing or unknown period is placed by its start
    hour, so every slot lands in exactly one bucket.
    """
    grouped = {period: [] for period in PERIODS}
    for slot in slots:
        start = _slot_value(slot, "startTime", "start_time")
        period = slot.get("period")
        if period not in grouped:
            period = period_for_hour(parse_hhmm(start) // 60).value
        grouped[period].append({
            "id": slot.get("id"),
            "startTime": start,
            "endTime": _slot_value(slot, "endTime", "end_time"),
            "period": period,
            "bookingType": _slot_value(slot, "bookingType", "booking_type"),
        })

    for period in PERIODS:
        grouped[period].sort(key=lambda s: parse_hhmm(s["startTime"]))
    return grouped


def period_counts(grouped: Dict[str, List[dict]]) -> Dict[str, int]:
    return {period: len(grouped.get(period, [])) for period in PERIODS}


# ---------------------------------------------------------------------------
# BOOKING WIZARD
# ---------------------------------------------------------------------------

@dataclass
class BookingWizard:
    """
    State of the booking popup for one doctor.

    Step 1 picks the appointment type, step 2 takes optional notes and
    step 3 confirms. ``confirm`` posts the appointment through a
    ``CareApiClient`` and records either success or the server's message,
    e.g. "Time slot is no longer available" when someone else got the slot first.
    """
    doctor_id: int
    slot: Optional[dict] = None
    step: int = 1
    appointment_type: str = "clinic_visit"
    notes: str = ""
    is_open: bool = False
    in_progress: bool = False
    error: Optional[str] = None
    success: bool = False
    appointment: Optional[dict] = field(default=None, repr=False)

    FIRST_STEP = 1
    LAST_STEP = 3

    def open(self, slot: Optional[dict]) -> bool:
        """Start a fresh booking for ``slot``. Nothing happens without a slot."""
        if not slot:
            return False
        self.slot = slot
        self.is_open = True
        self.step = self.FIRST_STEP
        self.appointment_type = "clinic_visit"
        self.notes = ""
        self.error = None
        self.success = False
        self.appointment = None
        return True

    def close(self):
        self.is_open = False
        self.step = self.FIRST_STEP

    def select_type(self, appointment_type: str):
        if appointment_type not in {t["value"] for t in APPOINTMENT_TYPES}:
            raise ValueError(f"Unknown appointment type: {appointment_type}")
        self.appointment_type = appointment_type

    def next_step(self) -> int:
        self.step = min(self.step + 1, self.LAST_STEP)
        return self.step

    def back(self) -> int:
        self.step = max(self.step - 1, self.FIRST_STEP)
        return self.step

    def confirm(self, client) -> bool:
        """Book the selected slot. Returns True on success."""
        if not self.slot or not self.doctor_id:
            return False

        self.in_progress = True
        self.error = None
        try:
            data = client.book_appointment(
                doctor_id=self.doctor_id,
                time_slot_id=self.slot["id"],
                appointment_type=self.appointment_type,
                notes=self.notes,
            )
        except ApiError as e:
            logger.warning("Booking failed for slot %s: %s", self.slot.get("id"), e.message)
            self.error = e.message or "Failed to book appointment. Please try again."
            return False
        finally:
            self.in_progress = False

        if data.get("success"):
            self.success = True
            self.appointment = data.get("data")
            return True

        self.error = data.get("message") or "Failed to book appointment. Please try again."
        return False

    def finish(self):
        """After the success message: close the popup and clear the selection."""
        self.close()
        self.slot = None
