"""QuestionKind constants for the question types a Survey may contain.

Values are stored as-is in ``questions.type``.
"""

from __future__ import annotations


class QuestionKind:
    SINGLE_LINE = "single_line"
    MULTILINE = "multiline"
    NUMERIC = "numeric"
    DATE = "date"
    RATING = "rating"
    PHOTO = "photo"
    RADIO = "radio"
    DROP_DOWN = "drop_down"
    MULTI_CHOICE = "multi_choice"


__all__ = ["QuestionKind"]
