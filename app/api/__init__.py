"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import ask, feedback, gaps

router = APIRouter()

# Question answering + answer feedback
router.include_router(ask.router, tags=["ask"])

# Anonymous operator feedback
router.include_router(feedback.router, prefix="/feedback", tags=["feedback"])

# Knowledge gap analysis
router.include_router(gaps.router, prefix="/gaps", tags=["gaps"])
