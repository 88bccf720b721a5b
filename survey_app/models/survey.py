"""ORM models for the authored side of a Survey: questions, categories, options.

Questions and Categories are both "elements": each may sit at the top level of
its Survey, inside a Category, or under an Option whose selection reveals it.
Sibling elements are ordered by ``order_number``.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from survey_app import clock
from survey_app.models.base import Base
from survey_app.models.question_kind import QuestionKind


class Survey(Base):  # type: ignore[valid-type]
    __tablename__ = "surveys"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    public = Column(Boolean, nullable=False, default=False)
    finalized = Column(Boolean, nullable=False, default=False)
    organization_id = Column(Integer, nullable=True)
    expiry_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: clock.utcnow())

    questions = relationship("Question", back_populates="survey", cascade="all, delete-orphan", order_by="Question.id")
    categories = relationship("Category", back_populates="survey", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Survey(id={self.id}, public={self.public})>"


class Category(Base):  # type: ignore[valid-type]
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    survey_id = Column(ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    order_number = Column(Integer, nullable=False, default=0)
    category_id = Column(ForeignKey("categories.id", ondelete="CASCADE"), nullable=True)
    parent_option_id = Column(
        ForeignKey("options.id", ondelete="CASCADE", use_alter=True, name="fk_categories_parent_option"),
        nullable=True,
    )

    survey = relationship("Survey", back_populates="categories")


class Question(Base):  # type: ignore[valid-type]
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True)
    survey_id = Column(ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    type = Column(String, nullable=False, default=QuestionKind.SINGLE_LINE)
    order_number = Column(Integer, nullable=False, default=0)
    category_id = Column(ForeignKey("categories.id", ondelete="CASCADE"), nullable=True)
    parent_option_id = Column(
        ForeignKey("options.id", ondelete="CASCADE", use_alter=True, name="fk_questions_parent_option"),
        nullable=True,
    )
    mandatory = Column(Boolean, nullable=False, default=False)
    finalized = Column(Boolean, nullable=False, default=False)
    max_length = Column(Integer, nullable=True)
    min_value = Column(Integer, nullable=True)
    max_value = Column(Integer, nullable=True)
    identifier = Column(Boolean, nullable=False, default=False)

    survey = relationship("Survey", back_populates="questions")
    options = relationship(
        "Option",
        back_populates="question",
        cascade="all, delete-orphan",
        foreign_keys="Option.question_id",
    )


class Option(Base):  # type: ignore[valid-type]
    __tablename__ = "options"

    id = Column(Integer, primary_key=True)
    question_id = Column(ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    order_number = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options", foreign_keys=[question_id])


__all__ = ["Survey", "Category", "Question", "Option"]
