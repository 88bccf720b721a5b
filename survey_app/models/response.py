"""ORM models for a respondent's submission: Response, Answer, Choice, Record.

A Response exclusively owns its Answers (cascade delete); Answers reference
their Question read-only. Records are child resources (e.g. media) created by
an Answer that also carry a back-reference to the Response for indexing.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from survey_app import clock
from survey_app.models.base import Base
from survey_app.models.response_status import ResponseStatus


def _now():  # type: ignore[no-untyped-def]
    return clock.utcnow()


class Response(Base):  # type: ignore[valid-type]
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True)
    survey_id = Column(ForeignKey("surveys.id", ondelete="CASCADE"), nullable=True, index=True)
    organization_id = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default=ResponseStatus.INCOMPLETE)
    completed_at = Column(DateTime, nullable=True)
    session_token = Column(String, nullable=True)
    mobile_id = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    ip_address = Column(String, nullable=True)
    location = Column(String, nullable=True)
    state = Column(String, nullable=True)
    comment = Column(Text, nullable=True)
    blank = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)

    survey = relationship("Survey")
    answers = relationship(
        "Answer",
        back_populates="response",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Answer.id",
    )
    records = relationship(
        "Record",
        back_populates="response",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Response(id={self.id}, survey_id={self.survey_id}, status={self.status})>"


class Record(Base):  # type: ignore[valid-type]
    __tablename__ = "records"

    id = Column(Integer, primary_key=True)
    response_id = Column(ForeignKey("responses.id", ondelete="CASCADE"), nullable=True, index=True)
    category_id = Column(ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)

    response = relationship("Response", back_populates="records")
    answers = relationship("Answer", back_populates="record")


class Answer(Base):  # type: ignore[valid-type]
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True)
    response_id = Column(ForeignKey("responses.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    record_id = Column(ForeignKey("records.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=True)
    photo = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)

    response = relationship("Response", back_populates="answers")
    question = relationship("Question")
    record = relationship("Record", back_populates="answers")
    choices = relationship(
        "Choice",
        back_populates="answer",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Choice.id",
    )

    def __repr__(self) -> str:
        return f"<Answer(id={self.id}, response_id={self.response_id}, question_id={self.question_id})>"


class Choice(Base):  # type: ignore[valid-type]
    __tablename__ = "choices"

    id = Column(Integer, primary_key=True)
    answer_id = Column(ForeignKey("answers.id", ondelete="CASCADE"), nullable=False, index=True)
    option_id = Column(ForeignKey("options.id", ondelete="CASCADE"), nullable=False)

    answer = relationship("Answer", back_populates="choices")
    option = relationship("Option")


__all__ = ["Response", "Record", "Answer", "Choice"]
