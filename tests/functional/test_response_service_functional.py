"""Functional tests for the response service layer and its events."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from survey_app.logic import events, response_service
from survey_app.logic.errors import ResponseNotFoundError, ResponseStoreError, SurveyNotFoundError
from survey_app.models.response import Response
from survey_app.models.question_kind import QuestionKind
from survey_app.models.response_payloads import ResponseCreateParams, ResponseUpdateParams, SyncParams
from survey_app.models.response_status import ResponseStatus

WHO = response_service.Identity(user_id=11, organization_id=22)


@pytest.fixture
def survey(survey_builder):
    b = survey_builder()
    b.question(1, mandatory=True)
    b.question(2, QuestionKind.NUMERIC)
    return b.commit()


def _types(buffered):
    return [e["type"] for e in buffered]


def test_create_response_assigns_identity_and_publishes(session, survey):
    q1 = survey.questions[0]
    result = response_service.create_response(
        session,
        survey.id,
        ResponseCreateParams(session_token="tok", answers_attributes=[{"question_id": q1.id, "content": "a"}]),
        WHO,
    )

    assert result.outcome
    response = result.response
    assert (response.user_id, response.organization_id, response.session_token) == (11, 22, "tok")
    assert _types(events.get_buffered_events()) == [events.RESPONSE_CREATED]


def test_create_response_with_blank_flag_prepopulates_answers(session, survey):
    result = response_service.create_response(session, survey.id, ResponseCreateParams(blank=True), WHO)

    assert result.outcome
    assert len(result.response.answers) == 2
    assert all(a.content is None for a in result.response.answers)


def test_failed_create_returns_no_identity_and_no_event(session, survey):
    result = response_service.create_response(session, survey.id, ResponseCreateParams())

    assert not result.outcome
    assert result.response_id is None
    assert events.get_buffered_events() == []


def test_create_for_unknown_survey_raises(session):
    with pytest.raises(SurveyNotFoundError):
        response_service.create_response(session, 404, ResponseCreateParams(), WHO)


def test_update_response_reports_noop_and_status_change(session, survey, make_response):
    response = make_response(survey)

    assert response_service.update_response(session, response.id, ResponseUpdateParams()) is None
    outcome = response_service.update_response(
        session, response.id, ResponseUpdateParams(status=ResponseStatus.VALIDATING)
    )

    assert outcome
    assert _types(events.get_buffered_events()) == [events.RESPONSE_UPDATED, events.RESPONSE_STATUS_CHANGED]


def test_mark_response_rejects_downgrade(session, survey, make_response):
    response = make_response(survey, status=ResponseStatus.COMPLETE)

    assert response_service.mark_response(session, response.id, ResponseStatus.INCOMPLETE) is False
    assert events.get_buffered_events() == []


def test_unknown_response_raises_not_found(session):
    with pytest.raises(ResponseNotFoundError):
        response_service.get_sorted_answers(session, 777)


def test_sync_merges_newer_status_and_clears_omitted_answers(session, survey, make_response):
    q1, q2 = survey.questions
    response = make_response(
        survey,
        updated_at=datetime(2024, 4, 1),
        answers=[{"question_id": q1.id, "content": "a"}, {"question_id": q2.id, "content": "3"}],
    )
    params = SyncParams(
        status=ResponseStatus.COMPLETE,
        updated_at=datetime(2024, 4, 1) + timedelta(minutes=1),
        answers_attributes=[{"question_id": q1.id, "content": "b"}],
    )

    outcome = response_service.sync_response(session, response.id, params)

    assert outcome
    assert response.status == ResponseStatus.COMPLETE
    assert [a.content for a in response.answers] == ["b", None]
    assert _types(events.get_buffered_events()) == [events.RESPONSE_STATUS_CHANGED, events.ANSWERS_CLEARED]


def test_sync_with_rejected_transition_leaves_answers(session, survey, make_response):
    q1 = survey.questions[0]
    response = make_response(
        survey,
        status=ResponseStatus.COMPLETE,
        updated_at=datetime(2024, 4, 1),
        answers=[{"question_id": q1.id, "content": "a"}],
    )
    params = SyncParams(
        status=ResponseStatus.INCOMPLETE,
        updated_at=datetime(2024, 4, 2),
        answers_attributes=[],
    )

    outcome = response_service.sync_response(session, response.id, params)

    assert not outcome
    assert outcome.errors[0].field == "status"
    assert response.answers[0].content == "a"


def _stored_status(session, response_id):
    return session.connection().execute(
        select(Response.status, Response.completed_at).where(Response.id == response_id)
    ).one()


def test_sync_with_invalid_answers_keeps_previous_status(session, survey, make_response):
    q1, q2 = survey.questions
    response = make_response(
        survey,
        updated_at=datetime(2024, 4, 1),
        answers=[{"question_id": q1.id, "content": "a"}, {"question_id": q2.id, "content": "3"}],
    )
    params = SyncParams(
        status=ResponseStatus.COMPLETE,
        updated_at=datetime(2024, 4, 2),
        answers_attributes=[{"question_id": q1.id, "content": "a"}, {"question_id": q2.id, "content": "three"}],
    )

    outcome = response_service.sync_response(session, response.id, params)
    session.commit()

    assert not outcome
    assert outcome.errors[0].code == "not_a_number"
    assert tuple(_stored_status(session, response.id)) == (ResponseStatus.INCOMPLETE, None)
    assert response.status == ResponseStatus.INCOMPLETE
    assert response.completed_at is None
    assert [a.content for a in response.answers] == ["a", "3"]
    assert events.get_buffered_events() == []


def test_mark_response_store_failure_is_a_store_error(session, survey, make_response, mocker):
    response = make_response(survey)
    mocker.patch(
        "survey_app.logic.response_state._write_status",
        side_effect=OperationalError("UPDATE responses", {}, Exception("connection lost")),
    )

    with pytest.raises(ResponseStoreError):
        response_service.mark_response(session, response.id, ResponseStatus.COMPLETE)

    assert _stored_status(session, response.id).status == ResponseStatus.INCOMPLETE
    assert events.get_buffered_events() == []


def test_list_responses_pages_with_filters(session, survey, make_response):
    for day in (1, 2, 3):
        make_response(survey, created_at=datetime(2024, 2, day), updated_at=datetime(2024, 2, day))

    page = response_service.list_responses(
        session, survey.id, page=1, page_size=2, start=datetime(2024, 2, 2), end=datetime(2024, 2, 3)
    )

    assert page.total == 2
    assert page.page_size == 2
    assert [item.updated_at.day for item in page.items] == [2, 3]
