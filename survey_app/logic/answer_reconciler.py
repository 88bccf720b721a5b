"""Timestamp reconciliation between incoming and persisted answers.

Two devices may sync the same Response out of order. An incoming answer that
names an existing Answer ``id`` is dropped only when its ``updated_at`` is
strictly older than the stored one; ties and a missing incoming timestamp are
accepted. Answers without a matching ``id`` are always new and accepted.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence, Union

from survey_app.clock import to_utc_naive
from survey_app.models.response import Answer
from survey_app.models.response_payloads import AnswerAttributes

logger = logging.getLogger(__name__)


def is_stale(incoming: AnswerAttributes, existing: Answer | None) -> bool:
    if existing is None or incoming.updated_at is None or existing.updated_at is None:
        return False
    return to_utc_naive(incoming.updated_at) < to_utc_naive(existing.updated_at)


def select_new_answers(
    existing_answers: Iterable[Answer],
    incoming: Union[Mapping, Sequence[AnswerAttributes]],
):
    """Return the subset of ``incoming`` that should overwrite stored answers.

    Accepts either a sequence or an index-keyed mapping of incoming answers
    and returns the same shape, preserving input order.
    """
    by_id = {a.id: a for a in existing_answers}
    if isinstance(incoming, Mapping):
        accepted = {k: v for k, v in incoming.items() if not is_stale(v, by_id.get(v.id))}
        rejected = len(incoming) - len(accepted)
    else:
        accepted = [v for v in incoming if not is_stale(v, by_id.get(v.id))]
        rejected = len(incoming) - len(accepted)
    if rejected:
        logger.info("answers_stale_rejected count=%s accepted=%s", rejected, len(accepted))
    return accepted


__all__ = ["is_stale", "select_new_answers"]
