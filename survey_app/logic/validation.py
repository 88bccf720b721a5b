"""Ordered validation pipeline for Responses and their Answers.

Each response rule is a pure function ``(current, proposed) -> FieldError |
None`` where ``current`` is the persisted state before the write (``None`` for
a new Response) and ``proposed`` the state about to be saved. Answer rules see
one answer plus the Response's intended status. The transaction coordinator
runs the pipeline before every flush and rolls back on any error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from survey_app.logic.errors import FieldError, ResponseValidationError
from survey_app.logic.question_tree import QuestionNode, QuestionTree
from survey_app.models.question_kind import QuestionKind
from survey_app.models.response import Answer, Response
from survey_app.models.response_status import ResponseStatus


@dataclass(frozen=True)
class ResponseState:
    survey_id: Optional[int]
    organization_id: Optional[int]
    user_id: Optional[int]
    status: Optional[str]
    survey_public: bool = False


@dataclass(frozen=True)
class AnswerState:
    index: int
    question: QuestionNode
    content: Optional[str] = None
    option_ids: tuple[int, ...] = ()
    has_photo: bool = False

    @property
    def is_blank(self) -> bool:
        if self.has_photo or self.option_ids:
            return False
        return self.content is None or not str(self.content).strip()


ResponseRule = Callable[[Optional[ResponseState], ResponseState], Optional[FieldError]]
AnswerRule = Callable[[AnswerState, Optional[str]], Optional[FieldError]]


# --- response rules -------------------------------------------------------

def survey_id_present(current: Optional[ResponseState], proposed: ResponseState) -> Optional[FieldError]:
    if proposed.survey_id is None:
        return FieldError("survey_id", "blank", "survey_id can't be blank")
    return None


def organization_present_unless_public(
    current: Optional[ResponseState], proposed: ResponseState
) -> Optional[FieldError]:
    if not proposed.survey_public and proposed.organization_id is None:
        return FieldError("organization_id", "blank", "organization_id can't be blank")
    return None


def user_present_unless_public(current: Optional[ResponseState], proposed: ResponseState) -> Optional[FieldError]:
    if not proposed.survey_public and proposed.user_id is None:
        return FieldError("user_id", "blank", "user_id can't be blank")
    return None


def status_known(current: Optional[ResponseState], proposed: ResponseState) -> Optional[FieldError]:
    if proposed.status not in ResponseStatus.ALL:
        return FieldError("status", "inclusion", f"status {proposed.status!r} is not a known status")
    return None


def completed_cannot_be_marked_incomplete(
    current: Optional[ResponseState], proposed: ResponseState
) -> Optional[FieldError]:
    if (
        current is not None
        and current.status == ResponseStatus.COMPLETE
        and proposed.status == ResponseStatus.INCOMPLETE
    ):
        return FieldError("status", "downgrade", "a complete response can't be marked incomplete")
    return None


RESPONSE_RULES: tuple[ResponseRule, ...] = (
    survey_id_present,
    organization_present_unless_public,
    user_present_unless_public,
    status_known,
    completed_cannot_be_marked_incomplete,
)


# --- answer rules ---------------------------------------------------------

def mandatory_answered(answer: AnswerState, response_status: Optional[str]) -> Optional[FieldError]:
    # Mandatory questions only bind once the respondent submits the response
    if response_status != ResponseStatus.COMPLETE:
        return None
    if answer.question.mandatory and answer.is_blank:
        return FieldError("content", "mandatory", "this question is mandatory", answer.index)
    return None


def content_within_max_length(answer: AnswerState, response_status: Optional[str]) -> Optional[FieldError]:
    limit = answer.question.max_length
    if limit is not None and answer.content is not None and len(answer.content) > limit:
        return FieldError("content", "too_long", f"content is longer than {limit} characters", answer.index)
    return None


def numeric_content(answer: AnswerState, response_status: Optional[str]) -> Optional[FieldError]:
    q = answer.question
    if q.kind != QuestionKind.NUMERIC or answer.content is None or not answer.content.strip():
        return None
    try:
        value = float(answer.content)
    except ValueError:
        return FieldError("content", "not_a_number", "content must be a number", answer.index)
    if q.min_value is not None and value < q.min_value:
        return FieldError("content", "too_small", f"content must be at least {q.min_value}", answer.index)
    if q.max_value is not None and value > q.max_value:
        return FieldError("content", "too_large", f"content must be at most {q.max_value}", answer.index)
    return None


def choices_belong_to_question(answer: AnswerState, response_status: Optional[str]) -> Optional[FieldError]:
    stray = set(answer.option_ids) - answer.question.option_ids
    if stray:
        return FieldError(
            "choices", "foreign_option", f"options {sorted(stray)} don't belong to this question", answer.index
        )
    return None


ANSWER_RULES: tuple[AnswerRule, ...] = (
    mandatory_answered,
    content_within_max_length,
    numeric_content,
    choices_belong_to_question,
)


# --- snapshots and pipeline ---------------------------------------------

def snapshot_response(response: Response, tree: QuestionTree | None) -> ResponseState:
    return ResponseState(
        survey_id=response.survey_id,
        organization_id=response.organization_id,
        user_id=response.user_id,
        status=response.status,
        survey_public=bool(tree.public) if tree is not None else False,
    )


def snapshot_answers(answers: Iterable[Answer], tree: QuestionTree) -> list[AnswerState]:
    states: list[AnswerState] = []
    for index, answer in enumerate(answers):
        question = tree.question(answer.question_id)
        if question is None:
            # Reference checks happen before validation; skip foreign rows
            continue
        states.append(
            AnswerState(
                index=index,
                question=question,
                content=answer.content,
                option_ids=tuple(c.option_id for c in answer.choices),
                has_photo=answer.photo is not None,
            )
        )
    return states


def answer_errors(response_status: Optional[str], answers: Iterable[AnswerState]) -> list[FieldError]:
    errors: list[FieldError] = []
    for answer in answers:
        for rule in ANSWER_RULES:
            err = rule(answer, response_status)
            if err is not None:
                errors.append(err)
    return errors


def collect_errors(
    current: Optional[ResponseState],
    proposed: ResponseState,
    answers: Iterable[AnswerState] = (),
) -> list[FieldError]:
    errors: list[FieldError] = []
    for rule in RESPONSE_RULES:
        err = rule(current, proposed)
        if err is not None:
            errors.append(err)
    errors.extend(answer_errors(proposed.status, answers))
    return errors


def ensure_valid(
    current: Optional[ResponseState],
    proposed: ResponseState,
    answers: Iterable[AnswerState] = (),
) -> None:
    """Run every rule and raise ResponseValidationError with all failures."""
    errors = collect_errors(current, proposed, answers)
    if errors:
        raise ResponseValidationError(errors)


def ensure_answers_valid(response_status: Optional[str], answers: Iterable[AnswerState]) -> None:
    """Run only the answer rules, for writes that leave the Response row alone."""
    errors = answer_errors(response_status, answers)
    if errors:
        raise ResponseValidationError(errors)


__all__ = [
    "ResponseState",
    "AnswerState",
    "RESPONSE_RULES",
    "ANSWER_RULES",
    "snapshot_response",
    "snapshot_answers",
    "answer_errors",
    "collect_errors",
    "ensure_valid",
    "ensure_answers_valid",
]
