"""Pydantic models for serialized response bodies and sync payloads."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ChoicePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    option_id: int


class AnswerPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_id: int
    record_id: Optional[int] = None
    content: Optional[str] = None
    updated_at: Optional[datetime] = None
    choices: List[ChoicePayload] = []
    # Only emitted for answers that hold an image
    photo_in_base64: Optional[str] = None


class ResponsePayload(BaseModel):
    """Response with nested answers and choices, as sent to syncing clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    survey_id: Optional[int] = None
    organization_id: Optional[int] = None
    user_id: Optional[int] = None
    status: str
    completed_at: Optional[datetime] = None
    session_token: Optional[str] = None
    mobile_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_update: Optional[datetime] = None
    answers: List[AnswerPayload] = []


class ResponseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    survey_id: Optional[int] = None
    status: str
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ResponsePage(BaseModel):
    page: int
    page_size: int
    total: int
    items: List[ResponseSummary]


class StatusResult(BaseModel):
    id: int
    status: str
    completed_at: Optional[datetime] = None


__all__ = [
    "ChoicePayload",
    "AnswerPayload",
    "ResponsePayload",
    "ResponseSummary",
    "ResponsePage",
    "StatusResult",
]
