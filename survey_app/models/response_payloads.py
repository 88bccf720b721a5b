"""Pydantic payload models for response write operations.

Each operation has its own model enumerating exactly the attributes it may
assign; unknown keys are dropped by construction. ``answers_attributes`` is
accepted either as a list or as an index-keyed mapping (``{"0": {...}}``),
which is normalised to a list ordered by its keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from survey_app.models.response_status import ResponseStatus


def _index_key(key: Any) -> tuple:
    text = str(key)
    return (0, int(text), text) if text.isdigit() else (1, 0, text)


class AnswerAttributes(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    question_id: Optional[int] = None
    content: Optional[str] = None
    record_id: Optional[int] = None
    option_ids: Optional[List[int]] = None
    photo_in_base64: Optional[str] = None
    updated_at: Optional[datetime] = None


class _AnswersMixin(BaseModel):
    answers_attributes: Optional[List[AnswerAttributes]] = None

    @field_validator("answers_attributes", mode="before")
    @classmethod
    def answers_from_indexed_mapping(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return [v[k] for k in sorted(v.keys(), key=_index_key)]
        return v


def _check_status(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in ResponseStatus.ALL:
        raise ValueError(f"status must be one of {sorted(ResponseStatus.ALL)}")
    return v


class ResponseCreateParams(_AnswersMixin):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    mobile_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = None
    comment: Optional[str] = None
    blank: Optional[bool] = None
    session_token: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v)

    def response_attributes(self) -> dict:
        """Return the explicitly supplied non-answer attributes."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "answers_attributes"
        }


class ResponseUpdateParams(_AnswersMixin):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    mobile_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location: Optional[str] = None
    state: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v)

    def is_empty(self) -> bool:
        return not self.model_fields_set

    def response_attributes(self) -> dict:
        """Supplied non-answer attributes other than ``status``."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name not in {"answers_attributes", "status"}
        }


class StatusMergeParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    updated_at: Optional[datetime] = None


class StatusChangeParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v)


class SyncParams(_AnswersMixin):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    updated_at: Optional[datetime] = None


__all__ = [
    "AnswerAttributes",
    "ResponseCreateParams",
    "ResponseUpdateParams",
    "StatusMergeParams",
    "StatusChangeParams",
    "SyncParams",
]
