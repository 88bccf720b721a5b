from __future__ import annotations

"""Functional test bootstrap.

Each test gets a fresh in-memory SQLite engine with the schema created from
the ORM metadata, a Session bound to it, and small builders for surveys and
responses. Time is frozen by patching ``survey_app.clock.utcnow``.
"""

from datetime import datetime, timedelta
from typing import Iterator

import pytest
from sqlalchemy.orm import Session

from survey_app.db.base import build_engine, create_schema, get_sessionmaker
from survey_app.logic import events
from survey_app.models.question_kind import QuestionKind
from survey_app.models.response import Answer, Record, Response
from survey_app.models.response_status import ResponseStatus
from survey_app.models.survey import Category, Option, Question, Survey

T0 = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def engine():
    eng = build_engine("sqlite+pysqlite:///:memory:")
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Iterator[Session]:
    s = get_sessionmaker(engine)()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture(autouse=True)
def clear_events():
    events.get_buffered_events(clear=True)
    yield
    events.get_buffered_events(clear=True)


class FrozenClock:
    """Settable stand-in for ``survey_app.clock.utcnow``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock(mocker) -> FrozenClock:
    frozen = FrozenClock(T0)
    mocker.patch("survey_app.clock.utcnow", side_effect=frozen)
    return frozen


class SurveyBuilder:
    def __init__(self, session: Session, **attrs):
        self.session = session
        self.survey = Survey(name=attrs.pop("name", "Household survey"), **attrs)
        session.add(self.survey)
        session.flush()

    def question(self, order: int, kind: str = QuestionKind.SINGLE_LINE, **attrs) -> Question:
        q = Question(survey_id=self.survey.id, order_number=order, type=kind, content=attrs.pop("content", f"Q{order}"), **attrs)
        self.session.add(q)
        self.session.flush()
        return q

    def category(self, order: int, **attrs) -> Category:
        c = Category(survey_id=self.survey.id, order_number=order, content=attrs.pop("content", f"C{order}"), **attrs)
        self.session.add(c)
        self.session.flush()
        return c

    def option(self, question: Question, order: int, content: str = "") -> Option:
        o = Option(question_id=question.id, order_number=order, content=content or f"O{order}")
        self.session.add(o)
        self.session.flush()
        return o

    def commit(self) -> Survey:
        self.session.commit()
        return self.survey


@pytest.fixture
def survey_builder(session):
    def _build(**attrs) -> SurveyBuilder:
        return SurveyBuilder(session, **attrs)

    return _build


@pytest.fixture
def make_response(session):
    """Persist a Response (with optional answers) bypassing the coordinator."""

    def _make(survey: Survey, *, status: str = ResponseStatus.INCOMPLETE, answers=(), **attrs) -> Response:
        response = Response(
            survey_id=survey.id,
            organization_id=attrs.pop("organization_id", 1),
            user_id=attrs.pop("user_id", 7),
            status=status,
            **attrs,
        )
        for spec in answers:
            response.answers.append(Answer(**spec))
        session.add(response)
        session.commit()
        return response

    return _make


@pytest.fixture
def make_record(session):
    def _make(**attrs) -> Record:
        record = Record(**attrs)
        session.add(record)
        session.commit()
        return record

    return _make
