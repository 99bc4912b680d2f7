"""
test_greetings.py
=================
Unit tests for Marcus: time-of-day greetings, message rotation and page hints.
"""

import datetime
import random

import pytest

from carebook.greetings import (
    FIRST_VISIT_WITHOUT_NAME, RETURNING_WITH_NAME, HINTS, WELCOME_FIRST_VISIT,
    first_name_of, get_messages, hint_for, message_type, page_greeting,
    personalized_greeting, select_message, time_greeting,
)


class FixedRandom:
    """Stand-in for ``random`` that always picks the same index."""

    def __init__(self, index):
        self.index = index

    def randrange(self, n):
        return self.index % n

    def choice(self, seq):
        return seq[self.index % len(seq)]


@pytest.mark.parametrize("hour, greeting", [
    (5, "Good morning"),
    (11, "Good morning"),
    (12, "Good afternoon"),
    (17, "Good evening"),
    (22, "Hey"),
    (3, "Hey"),
])
def test_time_greeting(hour, greeting):
    # 2025-03-12 is a Wednesday
    assert time_greeting(datetime.datetime(2025, 3, 12, hour))["greeting"] == greeting


def test_weekend_flag():
    assert time_greeting(datetime.datetime(2025, 3, 15, 10))["is_weekend"]      # Saturday
    assert not time_greeting(datetime.datetime(2025, 3, 14, 10))["is_weekend"]  # Friday


def test_message_type_and_first_name():
    assert first_name_of("  Asha Rao ") == "Asha"
    assert first_name_of(None) == ""
    assert message_type(False, "") == FIRST_VISIT_WITHOUT_NAME
    assert message_type(True, "Asha") == RETURNING_WITH_NAME


def test_weekend_wording():
    weekday = get_messages(RETURNING_WITH_NAME, "Good morning", "☀️", "Asha", is_weekend=False)
    weekend = get_messages(RETURNING_WITH_NAME, "Good morning", "☀️", "Asha", is_weekend=True)
    assert "Good morning! ☀️ How's your day?" in weekday
    assert "Good morning! ☀️ Enjoying your weekend?" in weekend
    assert get_messages("unknown", "Hi", "", "") == []


def test_select_message_avoids_repeats():
    messages = ["a", "b", "c"]
    assert select_message(messages, rng=FixedRandom(1)) == ("b", 1)
    assert select_message(messages, last_index=1, rng=FixedRandom(1)) == ("c", 2)
    assert select_message(messages, session_index=2, rng=FixedRandom(2)) == ("a", 0)
    assert select_message(["only"], last_index=0, rng=FixedRandom(0)) == ("only", 0)
    assert select_message([]) == (None, -1)


def test_personalized_greeting():
    result = personalized_greeting(
        "Asha Rao", returning=True, now=datetime.datetime(2025, 3, 15, 9), rng=random.Random(7),
    )
    assert result["type"] == RETURNING_WITH_NAME
    assert result["greeting"] == "Good morning"
    assert result["isWeekend"] is True
    expected = get_messages(RETURNING_WITH_NAME, "Good morning", "☀️", "Asha", True)
    assert result["message"] == expected[result["index"]]


def test_page_greeting_and_hints():
    assert page_greeting(first_visit=True) == WELCOME_FIRST_VISIT
    assert page_greeting(datetime.datetime(2025, 3, 12, 8)) == "Good morning! 👋"
    assert page_greeting(datetime.datetime(2025, 3, 12, 23)) == "Hey! Late night? 🌙"

    assert hint_for("slot_selected") == "Ready to book? 🎯"
    assert hint_for("idle", rng=FixedRandom(1)) == HINTS["idle"][1]
    assert hint_for("unknown") is None
