"""Response lifecycle operations exposed to the request-handling layer.

Each function takes the caller's Session and works on one Response. Results
follow the transaction coordinator: an ``Outcome`` (or ``None`` for a no-op
update) for validation failures; ``NotFoundError`` for unknown references.
Events are published only after a successful operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from survey_app.logic import events, repository_responses, response_state
from survey_app.logic.errors import FieldError, ResponseValidationError, SurveyNotFoundError
from survey_app.logic.question_tree import load_question_tree
from survey_app.logic.response_serializer import to_json_with_answers_and_choices
from survey_app.logic.response_transactions import (
    Outcome,
    create_valid_response_from_params,
    merge_status,
    transaction_scope,
    update_answers,
    update_valid_response_from_params,
)
from survey_app.logic.sorted_answers import create_blank_answers, sorted_answers
from survey_app.models.response import Answer, Response
from survey_app.models.response_payloads import (
    AnswerAttributes,
    ResponseCreateParams,
    ResponseUpdateParams,
    StatusMergeParams,
    SyncParams,
)
from survey_app.models.response_types import ResponsePage, ResponseSummary
from survey_app.models.survey import Survey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Who is submitting; supplied by the caller, never checked here."""

    user_id: Optional[int] = None
    organization_id: Optional[int] = None


@dataclass(frozen=True)
class CreateResult:
    outcome: Outcome
    response: Optional[Response] = None

    @property
    def response_id(self) -> Optional[int]:
        return self.response.id if self.outcome and self.response is not None else None


def create_response(
    session: Session,
    survey_id: int,
    params: ResponseCreateParams,
    identity: Identity = Identity(),
) -> CreateResult:
    tree = load_question_tree(session, survey_id)
    response = repository_responses.assign_identity(
        Response(),
        survey_id=survey_id,
        user_id=identity.user_id,
        organization_id=identity.organization_id,
        session_token=params.session_token,
    )
    outcome = create_valid_response_from_params(session, response, params, tree)
    if not outcome:
        return CreateResult(outcome=outcome)
    if params.blank:
        create_blank_answers(session, response, tree)
    events.publish(events.RESPONSE_CREATED, {"response_id": response.id, "survey_id": survey_id})
    return CreateResult(outcome=outcome, response=response)


def update_response(
    session: Session, response_id: int, params: Optional[ResponseUpdateParams]
) -> Optional[Outcome]:
    response = repository_responses.get_response(session, response_id)
    previous_status = response.status
    outcome = update_valid_response_from_params(session, response, params)
    if outcome:
        events.publish(events.RESPONSE_UPDATED, {"response_id": response.id})
        _publish_status_change(response, previous_status)
    return outcome


def update_response_answers(
    session: Session, response_id: int, answers: Optional[List[AnswerAttributes]]
) -> Outcome:
    response = repository_responses.get_response(session, response_id)
    outcome = update_answers(session, response, answers)
    _publish_cleared(response, outcome)
    return outcome


def get_response(session: Session, response_id: int) -> Response:
    return repository_responses.get_response(session, response_id)


def get_sorted_answers(session: Session, response_id: int) -> List[Answer]:
    response = repository_responses.get_response(session, response_id)
    return sorted_answers(session, response)


def mark_response(session: Session, response_id: int, status: str) -> bool:
    response = repository_responses.get_response(session, response_id)
    previous_status = response.status
    with transaction_scope(session, "status_change", response):
        accepted = response_state.mark(session, response, status)
    if accepted:
        _publish_status_change(response, previous_status)
    return accepted


def sync_response(session: Session, response_id: int, params: SyncParams) -> Outcome:
    """Merge an offline client's status and answers.

    The status only applies when the client's ``updated_at`` is newer; stale
    answers are skipped by the reconciler. A rejected status transition is
    reported as a failure. Status and answers share one savepoint, so when
    either is rejected neither is kept.
    """
    response = repository_responses.get_response(session, response_id)
    previous_status = response.status
    try:
        with transaction_scope(session, "response_sync", response):
            merged = merge_status(
                session, response, StatusMergeParams(status=params.status, updated_at=params.updated_at)
            )
            if merged is False:
                raise ResponseValidationError(
                    [
                        FieldError(
                            "status",
                            "transition",
                            f"can't change status from {previous_status!r} to {params.status!r}",
                        )
                    ]
                )
            outcome = update_answers(session, response, params.answers_attributes)
            if not outcome:
                raise ResponseValidationError(list(outcome.errors))
    except ResponseValidationError as exc:
        # status was set as committed in memory; reload it from the rolled-back row
        session.expire(response, ["status", "completed_at"])
        return Outcome.failure(exc.errors)
    if merged:
        _publish_status_change(response, previous_status)
    _publish_cleared(response, outcome)
    return outcome


def serialize(session: Session, response_id: int) -> Dict[str, Any]:
    return to_json_with_answers_and_choices(repository_responses.get_response(session, response_id))


def list_responses(
    session: Session,
    survey_id: int,
    *,
    page: int = 1,
    page_size: Optional[int] = None,
    status: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    max_page_size: int = repository_responses.MAX_PAGE_SIZE,
) -> ResponsePage:
    if session.get(Survey, survey_id) is None:
        raise SurveyNotFoundError(survey_id)
    query = repository_responses.for_survey(survey_id)
    query = repository_responses.with_status(query, status)
    query = repository_responses.created_between(query, start, end)
    query = repository_responses.earliest_first(query)
    size = repository_responses.page_size(page_size, max_page_size)
    rows, total = repository_responses.paginate(session, query, page, size)
    return ResponsePage(
        page=max(1, page),
        page_size=size,
        total=total,
        items=[ResponseSummary.model_validate(r) for r in rows],
    )


def _publish_status_change(response: Response, previous_status: Optional[str]) -> None:
    if response.status != previous_status:
        events.publish(
            events.RESPONSE_STATUS_CHANGED,
            {"response_id": response.id, "from": previous_status, "to": response.status},
        )


def _publish_cleared(response: Response, outcome: Outcome) -> None:
    if outcome and outcome.cleared_answer_ids:
        events.publish(
            events.ANSWERS_CLEARED,
            {"response_id": response.id, "answer_ids": list(outcome.cleared_answer_ids)},
        )


__all__ = [
    "Identity",
    "CreateResult",
    "create_response",
    "update_response",
    "update_response_answers",
    "get_response",
    "get_sorted_answers",
    "mark_response",
    "sync_response",
    "serialize",
    "list_responses",
]
