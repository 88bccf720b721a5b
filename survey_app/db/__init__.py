"""Database bootstrap utilities for the survey response service.

Convenience imports for engine/session construction and schema creation from
the ORM metadata. Route handlers receive sessions through
`session_dependency` and never build engines themselves.
"""

from survey_app.db.base import (
    build_engine,
    create_schema,
    get_engine,
    get_sessionmaker,
    session_dependency,
    session_scope,
)

__all__ = [
    "build_engine",
    "create_schema",
    "get_engine",
    "get_sessionmaker",
    "session_dependency",
    "session_scope",
]
