"""
Chat assistant routes, mounted under /chat/api.

 - threads hold a conversation (language en / hnd, mode normal / private)
 - POST /chat streams the assistant reply as plain text
 - GET /sse/{thread_id} pushes the suggested doctor list as a server-sent event
 - POST /stt turns a voice recording into the text of the user's query
"""

import asyncio
import json
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..assistant import make_assistant, suggest_doctors, detect_specialty, transcribe_audio, STTNotConfigured, STTError
from ..db import get_db, SessionLocal
from ..models import ChatThread, ChatMessage
from ..schemas import ThreadCreateRequest, ChatPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat/api", tags=["chat"])

MAX_USER_MESSAGES = 50
SSE_WAIT_SECONDS = 10
SSE_POLL_SECONDS = 1


def _get_thread_or_404(db: Session, thread_id: str) -> ChatThread:
    thread = db.get(ChatThread, thread_id)
    if not thread:
        raise HTTPException(status_code=404, detail="Thread not found")
    return thread


# ---------------------------------------------------------------------------
# THREADS
# ---------------------------------------------------------------------------

@router.post("/threads", status_code=201)
def create_thread(req: Optional[ThreadCreateRequest] = None, db: Session = Depends(get_db)):
    req = req or ThreadCreateRequest()
    thread = ChatThread(id=uuid.uuid4().hex, language=req.language, mode=req.mode)
    db.add(thread)
    db.commit()
    logger.info("💬 New %s chat thread %s", thread.mode, thread.id)
    return {"thread_id": thread.id, "language": thread.language, "mode": thread.mode}


@router.get("/threads/{thread_id}")
def get_thread(thread_id: str, db: Session = Depends(get_db)):
    thread = _get_thread_or_404(db, thread_id)
    return {
        "thread_id": thread.id,
        "language": thread.language,
        "mode": thread.mode,
        "created_at": thread.created_at.isoformat() if thread.created_at else None,
    }


@router.get("/threads/{thread_id}/messages")
def get_messages(thread_id: str, db: Session = Depends(get_db)):
    thread = _get_thread_or_404(db, thread_id)
    return {
        "thread_id": thread.id,
        "messages": [
            {"role": m.role, "message": m.message, "timestamp": m.timestamp.isoformat()}
            for m in thread.messages
        ],
    }


# ---------------------------------------------------------------------------
# CHAT
# ---------------------------------------------------------------------------

@router.post("/chat")
async def chat(
    data: str = Form(...),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
):
    """
    ``data`` is a JSON string {message, thread_id, mode, language};
    ``files`` are optional attachments. The reply is streamed back in chunks.
    Private threads are not stored.
    """
    try:
        payload = ChatPayload.model_validate_json(data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid chat payload: {e.errors()[0]['msg']}")

    thread = _get_thread_or_404(db, payload.thread_id)
    private = payload.mode == "private" or thread.mode == "private"

    if not private:
        sent = (
            db.query(ChatMessage)
            .filter(ChatMessage.thread_id == thread.id, ChatMessage.role == "user")
            .count()
        )
        if sent >= MAX_USER_MESSAGES:
            raise HTTPException(
                status_code=429,
                detail="Message limit reached for this conversation. Please start a new chat.",
            )

    attachments = [f for f in (files or []) if f.filename]
    suggestions = suggest_doctors(db, detect_specialty(payload.message))
    assistant = make_assistant(payload.language or thread.language)
    reply, specialty = assistant.respond(payload.message, has_doctors=bool(suggestions),
                                         file_count=len(attachments))

    if suggestions:
        thread.doctor_suggestions = suggestions
    if not private:
        db.add(ChatMessage(thread_id=thread.id, role="user", message=payload.message))
        db.add(ChatMessage(thread_id=thread.id, role="assistant", message=reply))
    db.commit()

    if specialty:
        logger.info("🩺 Thread %s routed to %s (%d doctors suggested)", thread.id, specialty, len(suggestions))

    return StreamingResponse(assistant.stream(reply), media_type="text/plain; charset=utf-8")


# ---------------------------------------------------------------------------
# SERVER-SENT EVENTS
# ---------------------------------------------------------------------------

def _load_suggestions(thread_id: str):
    db = SessionLocal()
    try:
        thread = db.get(ChatThread, thread_id)
        return thread.doctor_suggestions if thread else None
    finally:
        db.close()


async def _doctor_list_events(thread_id: str):
    waited = 0
    while True:
        suggestions = _load_suggestions(thread_id)
        if suggestions:
            event = {"type": "doctor_list", "data": suggestions}
            yield f"data: {json.dumps(event)}\n\n"
            return
        if waited >= SSE_WAIT_SECONDS:
            yield ": no suggestions\n\n"
            return
        await asyncio.sleep(SSE_POLL_SECONDS)
        waited += SSE_POLL_SECONDS


@router.get("/sse/{thread_id}")
def doctor_list_stream(thread_id: str, db: Session = Depends(get_db)):
    _get_thread_or_404(db, thread_id)
    return StreamingResponse(
        _doctor_list_events(thread_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ---------------------------------------------------------------------------
# SPEECH TO TEXT
# ---------------------------------------------------------------------------

@router.post("/stt")
def speech_to_text(recording: UploadFile = File(...)):
    audio = recording.file.read()
    if not audio:
        raise HTTPException(status_code=400, detail="Audio recording is empty")

    try:
        text = transcribe_audio(audio, recording.filename or "recording.webm", recording.content_type)
    except STTNotConfigured:
        raise HTTPException(status_code=503, detail="Speech to text is not configured")
    except STTError as e:
        logger.error("❌ Transcription failed: %s", e)
        raise HTTPException(status_code=502, detail="Speech to text failed. Please try again.")

    return {"user_query": text}
