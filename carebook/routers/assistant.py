"""
Marcus mascot routes: the personalised greeting and booking page hints.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ..greetings import personalized_greeting, hint_for, page_greeting, HINTS

router = APIRouter(prefix="/api/assistant", tags=["assistant"])


@router.get("/greeting")
def greeting(
    name: Optional[str] = None,
    returning: bool = False,
    last_index: int = Query(-1, alias="lastIndex"),
    session_index: int = Query(-1, alias="sessionIndex"),
):
    """
    Greeting for the current time of day. The client sends back the index
    it showed last so the next greeting differs.
    """
    return {
        "success": True,
        "data": personalized_greeting(name, returning, last_index, session_index),
    }


@router.get("/hint")
def hint(event: str, first_visit: bool = Query(False, alias="firstVisit")):
    if event == "page_load":
        return {"success": True, "data": {"event": event, "message": page_greeting(first_visit=first_visit)}}

    message = hint_for(event)
    if message is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown event. Expected one of: page_load, {', '.join(HINTS)}",
        )
    return {"success": True, "data": {"event": event, "message": message}}
