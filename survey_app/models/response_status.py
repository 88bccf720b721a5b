"""ResponseStatus constants for the Response lifecycle."""

from __future__ import annotations


class ResponseStatus:
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    VALIDATING = "validating"

    ALL = frozenset({INCOMPLETE, COMPLETE, VALIDATING})


__all__ = ["ResponseStatus"]
