"""Functional tests for response status transitions."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from survey_app.logic import response_state
from survey_app.logic.errors import ResponseNotFoundError, ResponseValidationError
from survey_app.models.response import Response
from survey_app.models.response_status import ResponseStatus


@pytest.fixture
def survey(survey_builder):
    b = survey_builder()
    b.question(1)
    return b.commit()


def _stored(session, response_id, column):
    # Read through the connection so pending ORM changes are not flushed
    return session.connection().execute(select(column).where(Response.id == response_id)).scalar_one()


def test_complete_response_cannot_be_marked_incomplete(session, survey, make_response):
    response = make_response(survey, status=ResponseStatus.COMPLETE)

    with pytest.raises(ResponseValidationError) as excinfo:
        response_state.mark_incomplete(session, response)

    assert excinfo.value.errors[0].code == "downgrade"
    assert response.status == ResponseStatus.COMPLETE
    assert _stored(session, response.id, Response.status) == ResponseStatus.COMPLETE


def test_downgrade_check_uses_persisted_status(session, survey, make_response):
    response = make_response(survey, status=ResponseStatus.COMPLETE)
    # In-memory reassignment must not open a path around the check
    response.status = ResponseStatus.VALIDATING

    assert response_state.mark(session, response, ResponseStatus.INCOMPLETE) is False
    assert _stored(session, response.id, Response.status) == ResponseStatus.COMPLETE


def test_completed_at_is_stamped_once(session, survey, make_response, clock):
    response = make_response(survey)
    t1 = clock.now

    response_state.mark_complete(session, response)
    assert response.completed_at == t1

    clock.tick(hours=2)
    response_state.mark_complete(session, response)
    assert response.completed_at == t1
    assert _stored(session, response.id, Response.completed_at) == t1


def test_validating_is_reachable_from_complete(session, survey, make_response):
    response = make_response(survey, status=ResponseStatus.COMPLETE)

    assert response_state.mark(session, response, ResponseStatus.VALIDATING) is True
    assert response.status == ResponseStatus.VALIDATING
    assert response_state.is_validating(response)
    assert not response_state.is_complete(response)


def test_setters_persist_only_status(session, survey, make_response, clock):
    response = make_response(survey, comment="original")
    updated_at = response.updated_at
    response.comment = "unsaved edit"

    clock.tick(minutes=5)
    response_state.mark_complete(session, response)

    assert _stored(session, response.id, Response.comment) == "original"
    assert _stored(session, response.id, Response.status) == ResponseStatus.COMPLETE
    assert _stored(session, response.id, Response.updated_at) == updated_at
    # The unsaved edit is still pending on the instance
    assert response.comment == "unsaved edit"


def test_mark_rejects_unknown_status(session, survey, make_response):
    response = make_response(survey)

    assert response_state.mark(session, response, "archived") is False
    assert response_state.is_incomplete(response)


def test_transition_on_unsaved_response_raises_not_found(session):
    with pytest.raises(ResponseNotFoundError):
        response_state.mark_validating(session, Response(status=ResponseStatus.INCOMPLETE))


def test_apply_status_keeps_existing_completion_time(clock):
    t1 = clock.now
    response = Response(status=ResponseStatus.INCOMPLETE)
    response_state.apply_status(response, ResponseStatus.COMPLETE)
    first = response.completed_at

    clock.tick(days=1)
    response_state.apply_status(response, ResponseStatus.COMPLETE)

    assert first == t1
    assert response.completed_at == t1
