"""Transactional create/update of a Response together with its Answers.

Every operation runs inside one SAVEPOINT on the caller's Session. Validation
happens before each flush; a failure rolls the savepoint back explicitly and
is reported through ``Outcome`` rather than raised. Missing references
(question, answer, record, survey) and store failures also roll back, then
propagate as ``NotFoundError`` / ``ResponseStoreError``.

On rollback SQLAlchemy expunges rows flushed in the savepoint and expires the
attributes modified in it; objects added but never flushed are expunged here.
Both the store and the in-memory Response then read as they did before the
call.
"""

from __future__ import annotations

import base64
import binascii
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from survey_app.clock import to_utc_naive
from survey_app.logic import response_state
from survey_app.logic.answer_reconciler import select_new_answers
from survey_app.logic.errors import (
    AnswerNotFoundError,
    FieldError,
    QuestionNotFoundError,
    RecordNotFoundError,
    ResponseStoreError,
    ResponseValidationError,
)
from survey_app.logic.question_tree import QuestionTree, load_question_tree
from survey_app.logic.validation import (
    ensure_answers_valid,
    ensure_valid,
    snapshot_answers,
    snapshot_response,
)
from survey_app.models.response import Answer, Choice, Record, Response
from survey_app.models.response_payloads import (
    AnswerAttributes,
    ResponseCreateParams,
    ResponseUpdateParams,
    StatusMergeParams,
)
from survey_app.models.response_status import ResponseStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    ok: bool
    errors: tuple[FieldError, ...] = ()
    cleared_answer_ids: tuple[int, ...] = ()

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, cleared_answer_ids: Sequence[int] = ()) -> "Outcome":
        return cls(ok=True, cleared_answer_ids=tuple(cleared_answer_ids))

    @classmethod
    def failure(cls, errors: Sequence[FieldError]) -> "Outcome":
        return cls(ok=False, errors=tuple(errors))


def _rollback(session: Session, savepoint: SessionTransaction, pending_before: set) -> None:
    savepoint.rollback()
    for obj in list(session.new):
        if obj not in pending_before:
            session.expunge(obj)


@contextmanager
def transaction_scope(session: Session, label: str, response: Response) -> Iterator[SessionTransaction]:
    """Run the block in a SAVEPOINT; roll it back explicitly on any failure."""
    pending_before = set(session.new)
    savepoint = session.begin_nested()
    try:
        yield savepoint
    except ResponseValidationError as exc:
        _rollback(session, savepoint, pending_before)
        logger.info(
            "%s_rejected response_id=%s errors=%s",
            label,
            response.id,
            [e.as_dict() for e in exc.errors],
        )
        raise
    except SQLAlchemyError as exc:
        _rollback(session, savepoint, pending_before)
        logger.error("%s_store_failed response_id=%s", label, response.id, exc_info=True)
        raise ResponseStoreError(f"{label} failed: {exc}") from exc
    except BaseException:
        _rollback(session, savepoint, pending_before)
        raise
    else:
        savepoint.commit()


def _tree_for(session: Session, response: Response, tree: QuestionTree | None) -> QuestionTree | None:
    if tree is not None:
        return tree
    if response.survey_id is None:
        return None
    return load_question_tree(session, response.survey_id)


def _require_tree(tree: QuestionTree | None) -> QuestionTree:
    if tree is None:
        raise ResponseValidationError([FieldError("survey_id", "blank", "survey_id can't be blank")])
    return tree


def _decode_photo(encoded: str, index: int) -> bytes:
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ResponseValidationError(
            [FieldError("photo_in_base64", "invalid", "photo is not valid base64", index)]
        )


def _apply_answer_attributes(
    session: Session,
    answer: Answer,
    attrs: AnswerAttributes,
    index: int,
    *,
    only_supplied: bool,
) -> None:
    supplied = attrs.model_fields_set if only_supplied else set(AnswerAttributes.model_fields)
    if "content" in supplied:
        answer.content = attrs.content
    if "record_id" in supplied:
        if attrs.record_id is not None:
            with session.no_autoflush:
                record = session.get(Record, attrs.record_id)
            if record is None:
                raise RecordNotFoundError(attrs.record_id)
        answer.record_id = attrs.record_id
    if "option_ids" in supplied and attrs.option_ids is not None:
        answer.choices = [Choice(option_id=option_id) for option_id in dict.fromkeys(attrs.option_ids)]
    if "photo_in_base64" in supplied and attrs.photo_in_base64 is not None:
        answer.photo = _decode_photo(attrs.photo_in_base64, index)
    if attrs.updated_at is not None:
        answer.updated_at = to_utc_naive(attrs.updated_at)


def _new_answer(session: Session, tree: QuestionTree, attrs: AnswerAttributes, index: int) -> Answer:
    if tree.question(attrs.question_id) is None:
        raise QuestionNotFoundError(attrs.question_id)
    answer = Answer(question_id=attrs.question_id)
    _apply_answer_attributes(session, answer, attrs, index, only_supplied=False)
    return answer


def _match_existing(response: Response, attrs: AnswerAttributes) -> Answer | None:
    """Find the stored answer an incoming one refers to: by id, else by question."""
    if attrs.id is not None:
        for answer in response.answers:
            if answer.id == attrs.id:
                return answer
        raise AnswerNotFoundError(attrs.id)
    if attrs.question_id is None:
        return None
    for answer in response.answers:
        if answer.question_id == attrs.question_id and answer.record_id == attrs.record_id:
            return answer
    return None


def _upsert_answers(
    session: Session, response: Response, tree: QuestionTree, answers_attributes: Sequence[AnswerAttributes]
) -> None:
    """Write incoming answers onto the Response, matching stored ones first."""
    for index, attrs in enumerate(answers_attributes):
        existing = _match_existing(response, attrs)
        if existing is None:
            response.answers.append(_new_answer(session, tree, attrs, index))
            continue
        _apply_answer_attributes(session, existing, attrs, index, only_supplied=True)


def _clear_answer(answer: Answer) -> None:
    answer.content = None
    answer.photo = None
    answer.choices = []


def update_records(session: Session, response: Response) -> int:
    """Stamp this Response on its answers' Records that carry no response yet.

    Records already linked to a Response are never reassigned. Returns how
    many Records were linked.
    """
    linked = 0
    seen: set[int] = set()
    for answer in response.answers:
        record = answer.record
        if record is None and answer.record_id is not None:
            record = session.get(Record, answer.record_id)
        if record is None or record.id in seen:
            continue
        seen.add(record.id)
        if record.response_id is None:
            record.response_id = response.id
            linked += 1
    if linked:
        session.flush()
        logger.info("records_linked response_id=%s count=%s", response.id, linked)
    return linked


def create_valid_response_from_params(
    session: Session,
    response: Response,
    params: ResponseCreateParams,
    tree: QuestionTree | None = None,
) -> Outcome:
    """Create ``response`` and its nested answers atomically.

    Non-answer attributes are applied and the Response row written first so
    answers can reference it; answers are added only if the Response is valid
    so far; Records are linked last. Any failure leaves no Response, Answer or
    Record change behind.
    """
    try:
        with transaction_scope(session, "response_create", response):
            if response.status is None:
                response.status = ResponseStatus.INCOMPLETE
            for name, value in params.response_attributes().items():
                if name == "status" and value is not None:
                    response_state.apply_status(response, value)
                else:
                    setattr(response, name, value)
            tree = _tree_for(session, response, tree)
            ensure_valid(None, snapshot_response(response, tree))
            session.add(response)
            session.flush()

            tree = _require_tree(tree)
            _upsert_answers(session, response, tree, params.answers_attributes or [])
            with session.no_autoflush:
                ensure_valid(None, snapshot_response(response, tree), snapshot_answers(response.answers, tree))
            session.flush()
            update_records(session, response)
    except ResponseValidationError as exc:
        return Outcome.failure(exc.errors)
    logger.info("response_created response_id=%s answers=%s", response.id, len(response.answers))
    return Outcome.success()


def update_valid_response_from_params(
    session: Session,
    response: Response,
    params: ResponseUpdateParams | None,
    tree: QuestionTree | None = None,
) -> Optional[Outcome]:
    """Update ``response`` and nested answers atomically.

    Returns ``None`` when there is nothing to apply. A supplied ``status`` is
    saved first so answer rules that depend on it (mandatory answers once
    complete) see the intended final status.
    """
    if params is None or params.is_empty():
        return None
    try:
        with transaction_scope(session, "response_update", response):
            tree = _require_tree(_tree_for(session, response, tree))
            current = snapshot_response(response, tree)
            if params.status is not None:
                response_state.apply_status(response, params.status)
                ensure_valid(current, snapshot_response(response, tree))
                session.flush()
                current = snapshot_response(response, tree)

            for name, value in params.response_attributes().items():
                setattr(response, name, value)
            _upsert_answers(session, response, tree, params.answers_attributes or [])
            with session.no_autoflush:
                ensure_valid(current, snapshot_response(response, tree), snapshot_answers(response.answers, tree))
            session.flush()
            update_records(session, response)
    except ResponseValidationError as exc:
        return Outcome.failure(exc.errors)
    logger.info("response_updated response_id=%s status=%s", response.id, response.status)
    return Outcome.success()


def update_answers(
    session: Session,
    response: Response,
    answer_params: Sequence[AnswerAttributes] | None,
    tree: QuestionTree | None = None,
) -> Outcome:
    """Replace the Response's answer set with ``answer_params``.

    Stored answers that the incoming set does not mention are cleared. Incoming
    answers older than their stored counterpart are neither written nor
    cleared. All writes and clears share one savepoint, so a single invalid
    answer undoes the whole batch.
    """
    if answer_params is None:
        return Outcome.success()
    try:
        with transaction_scope(session, "answers_update", response):
            tree = _require_tree(_tree_for(session, response, tree))
            existing = list(response.answers)
            accepted = select_new_answers(existing, list(answer_params))

            mentioned: set[int] = set()
            for attrs in answer_params:
                match = _match_existing(response, attrs)
                if match is not None:
                    mentioned.add(match.id)
            cleared = [a for a in existing if a.id not in mentioned]
            for answer in cleared:
                _clear_answer(answer)

            _upsert_answers(session, response, tree, accepted)
            with session.no_autoflush:
                ensure_answers_valid(response.status, snapshot_answers(response.answers, tree))
            session.flush()
    except ResponseValidationError as exc:
        return Outcome.failure(exc.errors)
    logger.info(
        "answers_updated response_id=%s written=%s cleared=%s",
        response.id,
        len(accepted),
        len(cleared),
    )
    return Outcome.success([a.id for a in cleared])


def merge_status(session: Session, response: Response, params: StatusMergeParams) -> Optional[bool]:
    """Apply an offline client's status only if it is newer than the Response.

    Returns ``None`` when the update is ignored (no timestamp, no status, or not
    strictly newer than ``updated_at``); otherwise whether the transition was
    accepted by the state machine.
    """
    incoming = to_utc_naive(params.updated_at)
    if incoming is None or params.status is None:
        return None
    if response.updated_at is not None and not incoming > response.updated_at:
        logger.info(
            "status_merge_ignored response_id=%s incoming=%s current=%s",
            response.id,
            incoming.isoformat(),
            response.updated_at.isoformat(),
        )
        return None
    return response_state.mark(session, response, params.status)


__all__ = [
    "Outcome",
    "transaction_scope",
    "create_valid_response_from_params",
    "update_valid_response_from_params",
    "update_answers",
    "update_records",
    "merge_status",
]
