"""APIRouter registration for the survey response service."""

from __future__ import annotations

from fastapi import APIRouter

from survey_app.routes.responses import router as responses_router

api_router = APIRouter()
api_router.include_router(responses_router)

__all__ = ["api_router"]
