"""Anonymous operator feedback submission."""

import asyncio

from fastapi import APIRouter, HTTPException

from app.api.dependencies import StoreDep
from app.core.logging import get_logger
from app.core.schemas_retrieval import AnonymousFeedbackRequest

logger = get_logger(__name__)

router = APIRouter()

FEEDBACK_TYPES = {"complaint", "suggestion", "feedback"}
FEEDBACK_CATEGORIES = {"workflow", "safety", "equipment", "training", "management", "other"}
FEEDBACK_URGENCIES = {"low", "normal", "high"}
MAX_MESSAGE_CHARS = 2000


@router.post("/anonymous")
async def submit_anonymous_feedback(request: AnonymousFeedbackRequest, store: StoreDep) -> dict:
    """
    Submit anonymous feedback. Unknown categories become "other" and unknown
    urgencies become "normal". The embedding is computed lazily by gap analysis.
    """
    if request.type not in FEEDBACK_TYPES:
        raise HTTPException(status_code=400, detail="Valid type required (complaint/suggestion/feedback)")

    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")
    if len(message) > MAX_MESSAGE_CHARS:
        raise HTTPException(status_code=400, detail=f"Message must be {MAX_MESSAGE_CHARS} characters or less")

    row = {
        "type": request.type,
        "category": request.category if request.category in FEEDBACK_CATEGORIES else "other",
        "message": message,
        "urgency": request.urgency if request.urgency in FEEDBACK_URGENCIES else "normal",
    }

    try:
        feedback_id = await asyncio.to_thread(store.insert_feedback, row)
    except Exception:
        logger.exception("Failed to submit anonymous feedback")
        raise HTTPException(status_code=500, detail="Failed to submit feedback")

    logger.info(f"Anonymous {request.type} submitted (id={feedback_id})")
    return {"success": True, "message": "Your feedback has been submitted anonymously."}
