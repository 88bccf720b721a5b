"""Response lifecycle endpoints.

Handlers only translate HTTP to the service layer in
``survey_app.logic.response_service``; domain errors are mapped to
problem+json by the handlers registered in ``survey_app.main``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from sqlalchemy.orm import Session

from survey_app.db.base import session_dependency
from survey_app.http.problem import validation_problem
from survey_app.logic.errors import FieldError
from survey_app.logic import response_service
from survey_app.logic.response_serializer import answer_payload
from survey_app.models.response_payloads import (
    ResponseCreateParams,
    ResponseUpdateParams,
    StatusChangeParams,
    SyncParams,
)
from survey_app.models.response_types import AnswerPayload, ResponsePage, ResponsePayload, StatusResult
from survey_app.models.response_status import ResponseStatus

router = APIRouter()
logger = logging.getLogger(__name__)


def identity_dependency(
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    x_organization_id: Optional[int] = Header(default=None, alias="X-Organization-Id"),
) -> response_service.Identity:
    return response_service.Identity(user_id=x_user_id, organization_id=x_organization_id)


@router.post(
    "/surveys/{survey_id}/responses",
    status_code=201,
    response_model=ResponsePayload,
    summary="Create a response with nested answers",
)
def create_response(
    survey_id: int,
    params: ResponseCreateParams,
    session: Session = Depends(session_dependency),
    identity: response_service.Identity = Depends(identity_dependency),
):
    result = response_service.create_response(session, survey_id, params, identity)
    if not result.outcome:
        return validation_problem(result.outcome.errors)
    return response_service.serialize(session, result.response_id)


@router.put("/responses/{response_id}", response_model=ResponsePayload, summary="Update a response")
def update_response(
    response_id: int,
    params: ResponseUpdateParams,
    session: Session = Depends(session_dependency),
):
    outcome = response_service.update_response(session, response_id, params)
    if outcome is None:
        return Response(status_code=204)
    if not outcome:
        return validation_problem(outcome.errors)
    return response_service.serialize(session, response_id)


@router.post(
    "/responses/{response_id}/sync",
    response_model=ResponsePayload,
    summary="Merge an offline client's status and answers",
)
def sync_response(
    response_id: int,
    params: SyncParams,
    session: Session = Depends(session_dependency),
):
    outcome = response_service.sync_response(session, response_id, params)
    if not outcome:
        return validation_problem(outcome.errors)
    return response_service.serialize(session, response_id)


@router.get("/responses/{response_id}", response_model=ResponsePayload)
def get_response(response_id: int, session: Session = Depends(session_dependency)):
    return response_service.serialize(session, response_id)


@router.get(
    "/responses/{response_id}/answers",
    response_model=List[AnswerPayload],
    summary="Answers in survey display order",
)
def get_sorted_answers(response_id: int, session: Session = Depends(session_dependency)):
    return [answer_payload(a) for a in response_service.get_sorted_answers(session, response_id)]


@router.patch("/responses/{response_id}/status", response_model=StatusResult)
def change_status(
    response_id: int,
    params: StatusChangeParams,
    session: Session = Depends(session_dependency),
):
    if not response_service.mark_response(session, response_id, params.status):
        return validation_problem(
            [FieldError("status", "downgrade", "a complete response can't be marked incomplete")]
        )
    response = response_service.get_response(session, response_id)
    return StatusResult(id=response.id, status=response.status, completed_at=response.completed_at)


@router.get("/surveys/{survey_id}/responses", response_model=ResponsePage)
def list_responses(
    request: Request,
    survey_id: int,
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None),
    status: Optional[str] = Query(default=None, pattern="^(" + "|".join(sorted(ResponseStatus.ALL)) + ")$"),
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    session: Session = Depends(session_dependency),
):
    max_page_size = request.app.state.config.responses.max_page_size
    return response_service.list_responses(
        session,
        survey_id,
        page=page,
        page_size=page_size,
        status=status,
        start=start,
        end=end,
        max_page_size=max_page_size,
    )
