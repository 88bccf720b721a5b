"""Serialized Response representation for client synchronisation.

Answers carry their choices and, when an image is attached, the photo as
standard base64 text so the payload stays JSON-transferable.
"""

from __future__ import annotations

import base64
from typing import Any, Dict

from survey_app.logic.repository_responses import last_update
from survey_app.models.response import Answer, Response
from survey_app.models.response_types import AnswerPayload, ChoicePayload, ResponsePayload


def answer_payload(answer: Answer) -> AnswerPayload:
    photo = base64.b64encode(answer.photo).decode("ascii") if answer.photo is not None else None
    return AnswerPayload(
        id=answer.id,
        question_id=answer.question_id,
        record_id=answer.record_id,
        content=answer.content,
        updated_at=answer.updated_at,
        choices=[ChoicePayload.model_validate(c) for c in answer.choices],
        photo_in_base64=photo,
    )


def response_payload(response: Response) -> ResponsePayload:
    payload = ResponsePayload.model_validate(response, from_attributes=True)
    return payload.model_copy(
        update={
            "answers": [answer_payload(a) for a in response.answers],
            "last_update": last_update(response),
        }
    )


def to_json_with_answers_and_choices(response: Response) -> Dict[str, Any]:
    return response_payload(response).model_dump(mode="json", exclude_none=False)


__all__ = ["answer_payload", "response_payload", "to_json_with_answers_and_choices"]
