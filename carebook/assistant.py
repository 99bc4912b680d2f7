"""
assistant.py
============
Offline chat assistant for the symptom chat screen.

The assistant is rule based: it spots the specialty a message points at
(keywords per specialty), answers in English or Hinglish, and hands back
matching doctors as suggestions. No model inference happens here; a
hosted model can be swapped in behind ``make_assistant``.

Speech to text for voice messages is forwarded to a Whisper-compatible
HTTP provider configured with STT_API_URL / STT_API_KEY.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

import requests
from sqlalchemy.orm import Session

from . import config
from .models import Doctor

logger = logging.getLogger(__name__)

# Ordered: the first specialty with a keyword hit wins
SPECIALTY_KEYWORDS = {
    "Cardiologist": ["chest pain", "heart", "palpitation", "blood pressure", " bp "],
    "Neurologist": ["headache", "migraine", "seizure", "numbness", "dizziness"],
    "Dermatologist": ["skin", "rash", "acne", "itch", "eczema", "hair fall"],
    "Orthopedic": ["joint", "back pain", "knee", "fracture", "bone", "shoulder"],
    "Pediatrician": ["child", "baby", "infant", "kid"],
    "Gynecologist": ["period", "pregnan", "menstrua", "pcos"],
    "Psychiatrist": ["anxiety", "depress", "stress", "insomnia", "panic"],
    "ENT Specialist": [" ear", "throat", "sinus", "tonsil", "hearing"],
    "Gastroenterologist": ["stomach", "acidity", "diarrh", "constipation", "vomit", "abdomen"],
    "General Physician": ["fever", "cold", "cough", "flu", "tired", "weakness"],
}

EMERGENCY_KEYWORDS = ["unconscious", "severe bleeding", "not breathing", "stroke", "heart attack"]

SUGGESTION_LIMIT = 4


def detect_specialty(text: str) -> Optional[str]:
    lowered = f" {text.lower()} "
    for specialty, words in SPECIALTY_KEYWORDS.items():
        if any(word in lowered for word in words):
            return specialty
    return None


def is_emergency(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in EMERGENCY_KEYWORDS)


# ---------------------------------------------------------------------------
# REPLIES
# ---------------------------------------------------------------------------

REPLIES = {
    "en": {
        "emergency": (
            "This sounds like it could be an emergency. Please call your local emergency "
            "number or go to the nearest hospital right away."
        ),
        "specialty": (
            "Thanks for sharing. Based on what you describe, a {specialty} would be the right "
            "doctor to see. I've listed a few you can book on the right."
        ),
        "no_doctors": (
            "Thanks for sharing. A {specialty} would be the right doctor to see, but none are "
            "listed right now. A General Physician can help you in the meantime."
        ),
        "unknown": (
            "I'm here to help. Could you tell me a little more about your symptoms, "
            "like where it hurts, since when, and how severe it is?"
        ),
        "files": "I've received {count} file(s) and will keep them with this conversation. ",
    },
    "hnd": {
        "emergency": (
            "Yeh emergency ho sakti hai. Kripya turant emergency number par call karein "
            "ya nazdeeki hospital jaayein."
        ),
        "specialty": (
            "Batane ke liye dhanyavaad. Aapke lakshanon ke hisaab se aapko {specialty} se "
            "milna chahiye. Kuch doctors ki list saath mein di gayi hai."
        ),
        "no_doctors": (
            "Dhanyavaad. Aapko {specialty} se milna chahiye, par abhi koi uplabdh nahi hai. "
            "Tab tak General Physician aapki madad kar sakte hain."
        ),
        "unknown": (
            "Main aapki madad ke liye yahan hoon. Kripya apne lakshan thoda aur batayein, "
            "jaise dard kahan hai, kab se hai aur kitna tez hai?"
        ),
        "files": "Aapki {count} file(s) mil gayi hain. ",
    },
}


class RuleBasedAssistant:
    """
    Keyword triage assistant.
    ``respond`` returns the full reply plus the detected specialty,
    ``stream`` yields the same reply word by word.
    """

    def __init__(self, language: str = "en"):
        self.language = language if language in REPLIES else "en"

    def respond(self, message: str, has_doctors: bool = True, file_count: int = 0):
        texts = REPLIES[self.language]
        prefix = texts["files"].format(count=file_count) if file_count else ""

        if is_emergency(message):
            return prefix + texts["emergency"], None

        specialty = detect_specialty(message)
        if not specialty:
            return prefix + texts["unknown"], None
        key = "specialty" if has_doctors else "no_doctors"
        return prefix + texts[key].format(specialty=specialty), specialty

    async def stream(self, reply: str, delay: float = 0.02) -> AsyncIterator[str]:
        words = reply.split(" ")
        for i, word in enumerate(words):
            # Simulate token streaming
            await asyncio.sleep(delay)
            yield word if i == len(words) - 1 else word + " "


def make_assistant(language: str = "en") -> RuleBasedAssistant:
    return RuleBasedAssistant(language)


# ---------------------------------------------------------------------------
# DOCTOR SUGGESTIONS
# ---------------------------------------------------------------------------

def suggest_doctors(db: Session, specialty: Optional[str], limit: int = SUGGESTION_LIMIT) -> List[dict]:
    """Top rated doctors whose specialty matches, as shown in the suggestion panel."""
    if not specialty:
        return []
    doctors = (
        db.query(Doctor)
        .filter(Doctor.specialty.ilike(f"%{specialty}%"))
        .order_by(Doctor.rating.desc(), Doctor.id)
        .limit(limit)
        .all()
    )
    return [
        {
            "id": d.id,
            "name": d.name,
            "specialty": d.specialty,
            "specialization": ", ".join(d.specialization or []) or d.specialty,
            "image": d.image,
            "rating": d.rating,
            "fee": d.fee,
        }
        for d in doctors
    ]


# ---------------------------------------------------------------------------
# SPEECH TO TEXT
# ---------------------------------------------------------------------------

class STTNotConfigured(Exception):
    pass


class STTError(Exception):
    pass


def transcribe_audio(audio: bytes, filename: str = "recording.webm", content_type: str = "audio/webm") -> str:
    """Send a recording to the speech-to-text provider and return the transcript."""
    if not config.STT_API_URL or not config.STT_API_KEY:
        raise STTNotConfigured("Speech to text is not configured")

    try:
        resp = requests.post(
            config.STT_API_URL,
            headers={"Authorization": f"Bearer {config.STT_API_KEY}"},
            files={"file": (filename, audio, content_type or "application/octet-stream")},
            data={"model": config.STT_MODEL},
            timeout=config.REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        raise STTError(f"Speech to text provider unreachable: {e}") from e

    if resp.status_code >= 300:
        logger.error("❌ STT provider error %s: %s", resp.status_code, resp.text)
        raise STTError(f"Speech to text provider returned {resp.status_code}")

    return (resp.json().get("text") or "").strip()
