"""
greetings.py
============
Messages for Marcus, the mascot shown across the app:
 - time-of-day personalised greetings (first visit / returning, with or
   without a first name), rotated so the same line is not shown twice in a row
 - short hints reacting to booking page events
"""

import datetime
import random
from typing import List, Optional

# ---------------------------------------------------------------------------
# GREETINGS
# ---------------------------------------------------------------------------

FIRST_VISIT_WITH_NAME = "firstVisitWithName"
FIRST_VISIT_WITHOUT_NAME = "firstVisitWithoutName"
RETURNING_WITH_NAME = "returningWithName"
RETURNING_WITHOUT_NAME = "returningWithoutName"


def time_greeting(now: Optional[datetime.datetime] = None) -> dict:
    """{"greeting", "emoji", "is_weekend"} for the given local time."""
    now = now or datetime.datetime.now()
    hour = now.hour
    # Saturday / Sunday
    is_weekend = now.weekday() >= 5

    if 5 <= hour < 12:
        greeting, emoji = "Good morning", "☀️"
    elif 12 <= hour < 17:
        greeting, emoji = "Good afternoon", "🌤️"
    elif 17 <= hour < 22:
        greeting, emoji = "Good evening", "🌆"
    else:
        greeting, emoji = "Hey", "🌙"
    return {"greeting": greeting, "emoji": emoji, "is_weekend": is_weekend}


def message_type(returning: bool, first_name: str) -> str:
    if not returning:
        return FIRST_VISIT_WITH_NAME if first_name else FIRST_VISIT_WITHOUT_NAME
    return RETURNING_WITH_NAME if first_name else RETURNING_WITHOUT_NAME


def get_messages(kind: str, greeting: str, emoji: str, first_name: str = "", is_weekend: bool = False) -> List[str]:
    day_question = "Enjoying your weekend?" if is_weekend else "How's your day?"
    day_wish = "Weekend vibes!" if is_weekend else "Hope it's going well!"

    templates = {
        FIRST_VISIT_WITH_NAME: [
            f"{greeting}! {emoji} Welcome!",
            f"Hi there! {emoji}",
            f"{greeting}! {emoji} Great to see you!",
            f"Hey! {emoji}",
            f"{greeting} {first_name}! {emoji}",
            f"Hi {first_name}! {emoji} Welcome!",
            f"{greeting} {first_name}! {emoji} So glad you're here!",
        ],
        FIRST_VISIT_WITHOUT_NAME: [
            f"{greeting}! {emoji} Welcome!",
            f"Hi there! {emoji}",
            f"{greeting}! {emoji} Great to see you!",
            f"Hey! {emoji}",
            f"{greeting}! {emoji} So glad you're here!",
        ],
        RETURNING_WITH_NAME: [
            f"{greeting}! {emoji} Welcome back!",
            f"{greeting}! {emoji} Good to see you!",
            f"Hey! {emoji} You're back!",
            f"{greeting}! {emoji} Hope you're well!",
            f"{greeting}! {emoji} Nice to see you!",
            f"Welcome back! {emoji}",
            f"{greeting}! {emoji} {day_question}",
            f"{greeting}! {emoji} {day_wish}",
            f"{greeting}! {emoji} Ready when you are!",
            f"{greeting} {first_name}! {emoji}",
            f"Hey {first_name}! {emoji} Welcome back!",
            f"{first_name}! {greeting}! {emoji}",
            f"Hi {first_name}! {emoji} Great to see you again!",
            f"{greeting} {first_name}! {emoji} Always happy to help!",
            f"{first_name}! {emoji} Welcome back!",
        ],
        RETURNING_WITHOUT_NAME: [
            f"{greeting}! {emoji}",
            f"Hey there! {emoji} Welcome back!",
            f"{greeting}! {emoji} Good to see you!",
            f"Hi! {emoji} You're back!",
            f"{greeting}! {emoji} Hope you're well!",
            f"Welcome back! {emoji}",
            f"{greeting}! {emoji} How are you?",
            f"Hey! {emoji} Nice to see you!",
            f"{greeting}! {emoji} Great to see you again!",
            f"Hi! {emoji} Welcome back!",
            f"{greeting}! {emoji} {day_question}",
            f"Hey! {emoji} You're here!",
            f"{greeting}! {emoji} {day_wish}",
            f"Welcome back! {emoji} Always happy to help!",
            f"{greeting}! {emoji} Ready when you are!",
        ],
    }
    return templates.get(kind, [])


def select_message(messages: List[str], last_index: int = -1, session_index: int = -1, rng=random):
    """
    Pick a random message, stepping to the next one when the pick repeats
    the last shown index or the one from this session.
    Returns (message, index); (None, -1) for an empty list.
    """
    if not messages:
        return None, -1
    index = rng.randrange(len(messages))
    if index in (last_index, session_index) and len(messages) > 1:
        index = (index + 1) % len(messages)
    return messages[index], index


def first_name_of(name: Optional[str]) -> str:
    parts = (name or "").split()
    return parts[0] if parts else ""


def personalized_greeting(name: Optional[str] = None, returning: bool = False,
                          last_index: int = -1, session_index: int = -1,
                          now: Optional[datetime.datetime] = None, rng=random) -> dict:
    first_name = first_name_of(name)
    tg = time_greeting(now)
    kind = message_type(returning, first_name)
    messages = get_messages(kind, tg["greeting"], tg["emoji"], first_name, tg["is_weekend"])
    message, index = select_message(messages, last_index, session_index, rng)
    return {
        "message": message,
        "index": index,
        "type": kind,
        "greeting": tg["greeting"],
        "emoji": tg["emoji"],
        "isWeekend": tg["is_weekend"],
    }


# ---------------------------------------------------------------------------
# BOOKING PAGE HINTS
# ---------------------------------------------------------------------------

WELCOME_FIRST_VISIT = "Hi! I'm Marcus 👋 Welcome!"

HINTS = {
    "doctor_loaded": ["Great doctor! ⭐"],
    "date_selected": ["Good choice! 📅", "Nice date! ✨", "Perfect timing! 💙"],
    "slot_selected": ["Ready to book? 🎯"],
    "booking_confirmed": ["Booking confirmed! 🎉"],
    "search_focus": [
        "How can I help? 🤗",
        "What are you looking for? 🔍",
        "I'm here to help! 💙",
        "Ready to search! ✨",
    ],
    "search_typed": ["Got it! 🔍"],
    "date_click": ["Selecting a date? 📅"],
    "slot_click": ["Great time slot! ⏰"],
    "period_click": ["Checking availability! 🔍"],
    "idle": [
        "Need help booking? 💬",
        "I'm here if you need me! 💙",
        "Want some guidance? 😊",
    ],
}

IDLE_AFTER_SECONDS = 30


def page_greeting(now: Optional[datetime.datetime] = None, first_visit: bool = False) -> str:
    """Short greeting used on the doctor profile page."""
    if first_visit:
        return WELCOME_FIRST_VISIT
    hour = (now or datetime.datetime.now()).hour
    if 6 <= hour < 12:
        return "Good morning! 👋"
    if 12 <= hour < 18:
        return "Afternoon! 😊"
    if 18 <= hour < 22:
        return "Evening! 🌙"
    return "Hey! Late night? 🌙"


def hint_for(event: str, rng=random) -> Optional[str]:
    """Marcus line for a booking page event, None for unknown events."""
    options = HINTS.get(event)
    if not options:
        return None
    return rng.choice(options)
