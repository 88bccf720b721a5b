"""Domain error types raised by the response lifecycle core.

Validation failures are recovered at the transaction boundary and reported as
``False``; ``NotFoundError`` and ``ResponseStoreError`` cross the boundary so
the HTTP layer can pick the matching status code.
"""

from __future__ import annotations

from dataclasses import dataclass


class SurveyAppError(Exception):
    pass


@dataclass(frozen=True)
class FieldError:
    field: str
    code: str
    message: str
    answer_index: int | None = None

    def as_dict(self) -> dict:
        out = {"field": self.field, "code": self.code, "message": self.message}
        if self.answer_index is not None:
            out["answer_index"] = self.answer_index
        return out


class ResponseValidationError(SurveyAppError):
    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))


class NotFoundError(SurveyAppError):
    resource = "resource"

    def __init__(self, identifier: object):
        self.identifier = identifier
        super().__init__(f"{self.resource} {identifier} not found")


class ResponseNotFoundError(NotFoundError):
    resource = "response"


class SurveyNotFoundError(NotFoundError):
    resource = "survey"


class QuestionNotFoundError(NotFoundError):
    resource = "question"


class AnswerNotFoundError(NotFoundError):
    resource = "answer"


class RecordNotFoundError(NotFoundError):
    resource = "record"


class ResponseStoreError(SurveyAppError):
    """The durable store failed; the surrounding transaction was rolled back."""


__all__ = [
    "SurveyAppError",
    "FieldError",
    "ResponseValidationError",
    "NotFoundError",
    "ResponseNotFoundError",
    "SurveyNotFoundError",
    "QuestionNotFoundError",
    "AnswerNotFoundError",
    "RecordNotFoundError",
    "ResponseStoreError",
]
