"""Response data access helpers.

Query builders take and return SQLAlchemy ``Select`` statements so route
handlers can compose listing filters without inline SQL.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from survey_app.clock import to_utc_naive
from survey_app.logic.errors import ResponseNotFoundError
from survey_app.models.response import Response
from survey_app.models.response_status import ResponseStatus

MAX_PAGE_SIZE = 50


def get_response(session: Session, response_id: int) -> Response:
    response = session.get(Response, response_id)
    if response is None:
        raise ResponseNotFoundError(response_id)
    return response


def for_survey(survey_id: int) -> Select:
    return select(Response).where(Response.survey_id == survey_id)


def earliest_first(query: Select) -> Select:
    return query.order_by(Response.updated_at.asc(), Response.id.asc())


def completed(query: Select) -> Select:
    return query.where(Response.status == ResponseStatus.COMPLETE)


def with_status(query: Select, status: Optional[str]) -> Select:
    if status is None:
        return query
    return query.where(Response.status == status)


def created_between(query: Select, start: Optional[datetime], end: Optional[datetime]) -> Select:
    """Restrict to Responses created within ``[start, end]``; either bound may be open."""
    if start is not None:
        query = query.where(Response.created_at >= to_utc_naive(start))
    if end is not None:
        query = query.where(Response.created_at <= to_utc_naive(end))
    return query


def page_size(value: object = None, max_page_size: int = MAX_PAGE_SIZE) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return max_page_size
    return max(1, min(int(value), max_page_size))


def paginate(session: Session, query: Select, page: int = 1, size: Optional[int] = None) -> tuple[list[Response], int]:
    """Return one 1-based page of ``query`` and the unpaged total."""
    size = max(1, int(size)) if size is not None else page_size()
    page = max(1, int(page))
    total = session.execute(select(func.count()).select_from(query.order_by(None).subquery())).scalar_one()
    rows = session.execute(query.limit(size).offset((page - 1) * size)).scalars().all()
    return list(rows), int(total)


def last_update(response: Response) -> Optional[datetime]:
    """Latest of the Response's ``updated_at`` and its Answers' ``updated_at``."""
    stamps = [a.updated_at for a in response.answers if a.updated_at is not None]
    if response.updated_at is not None:
        stamps.append(response.updated_at)
    return max(stamps) if stamps else None


def assign_identity(
    response: Response,
    survey_id: Optional[int],
    user_id: Optional[int],
    organization_id: Optional[int],
    session_token: Optional[str] = None,
) -> Response:
    response.survey_id = survey_id
    response.user_id = user_id
    response.organization_id = organization_id
    response.session_token = session_token
    return response


__all__ = [
    "MAX_PAGE_SIZE",
    "get_response",
    "for_survey",
    "earliest_first",
    "completed",
    "with_status",
    "created_between",
    "page_size",
    "paginate",
    "last_update",
    "assign_identity",
]
