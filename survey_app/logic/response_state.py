"""Response status transitions.

States are ``incomplete`` (initial), ``validating`` and ``complete``. A
complete Response may never go back to incomplete; ``completed_at`` is stamped
on the first entry into complete and kept on re-entry.

The ``mark_*`` setters write only ``status`` (and ``completed_at`` when it is
first stamped) straight to the store. Other in-memory edits on the instance
are neither flushed nor discarded by them, and ``updated_at`` is left as is.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from survey_app import clock
from survey_app.logic.errors import FieldError, ResponseNotFoundError, ResponseValidationError
from survey_app.models.response import Response
from survey_app.models.response_status import ResponseStatus

logger = logging.getLogger(__name__)


def is_complete(response: Response) -> bool:
    return response.status == ResponseStatus.COMPLETE


def is_incomplete(response: Response) -> bool:
    return response.status == ResponseStatus.INCOMPLETE


def is_validating(response: Response) -> bool:
    return response.status == ResponseStatus.VALIDATING


def apply_status(response: Response, status: str, now: datetime | None = None) -> None:
    """Assign ``status`` in memory, stamping ``completed_at`` on first completion.

    Downgrade checks are left to the validation pipeline, which compares
    against the persisted value.
    """
    response.status = status
    if status == ResponseStatus.COMPLETE and response.completed_at is None:
        response.completed_at = now or clock.utcnow()


def _persisted_status(session: Session, response_id: int) -> tuple[str, datetime | None]:
    with session.no_autoflush:
        row = session.execute(
            select(Response.status, Response.completed_at).where(Response.id == response_id)
        ).one_or_none()
    if row is None:
        raise ResponseNotFoundError(response_id)
    return row[0], row[1]


def _write_status(session: Session, response: Response, status: str, completed_at: datetime | None) -> None:
    table = Response.__table__
    with session.no_autoflush:
        session.execute(
            update(table)
            .where(table.c.id == response.id)
            .values(status=status, completed_at=completed_at, updated_at=table.c.updated_at)
        )
    set_committed_value(response, "status", status)
    set_committed_value(response, "completed_at", completed_at)


def _transition(session: Session, response: Response, status: str) -> None:
    if response.id is None:
        raise ResponseNotFoundError(None)
    previous, completed_at = _persisted_status(session, response.id)
    if previous == ResponseStatus.COMPLETE and status == ResponseStatus.INCOMPLETE:
        logger.info("response_status_downgrade_rejected response_id=%s", response.id)
        raise ResponseValidationError(
            [FieldError("status", "downgrade", "a complete response can't be marked incomplete")]
        )
    if status == ResponseStatus.COMPLETE and completed_at is None:
        completed_at = clock.utcnow()
    _write_status(session, response, status, completed_at)
    logger.info("response_status_changed response_id=%s from=%s to=%s", response.id, previous, status)


def mark_complete(session: Session, response: Response) -> None:
    _transition(session, response, ResponseStatus.COMPLETE)


def mark_incomplete(session: Session, response: Response) -> None:
    """Raises ResponseValidationError when the stored status is complete."""
    _transition(session, response, ResponseStatus.INCOMPLETE)


def mark_validating(session: Session, response: Response) -> None:
    _transition(session, response, ResponseStatus.VALIDATING)


_SETTERS = {
    ResponseStatus.COMPLETE: mark_complete,
    ResponseStatus.INCOMPLETE: mark_incomplete,
    ResponseStatus.VALIDATING: mark_validating,
}


def mark(session: Session, response: Response, status: str) -> bool:
    """Apply ``status`` through its setter; return False on a rejected transition."""
    setter = _SETTERS.get(status)
    if setter is None:
        logger.info("response_status_unknown response_id=%s status=%s", response.id, status)
        return False
    try:
        setter(session, response)
    except ResponseValidationError:
        return False
    return True


__all__ = [
    "is_complete",
    "is_incomplete",
    "is_validating",
    "apply_status",
    "mark_complete",
    "mark_incomplete",
    "mark_validating",
    "mark",
]
