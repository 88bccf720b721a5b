"""Answers of a Response in the Survey's display order.

Order follows ``QuestionTree.iter_questions``: top-level questions and
categories by ``order_number``, category contents in turn, and each
question's option-triggered sub-questions right after it. Questions with no
answer are skipped.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from survey_app.logic.question_tree import QuestionTree, load_question_tree
from survey_app.logic.response_transactions import transaction_scope
from survey_app.models.response import Answer, Response

logger = logging.getLogger(__name__)


def _answers_by_question(response: Response) -> dict[int, list[Answer]]:
    grouped: dict[int, list[Answer]] = defaultdict(list)
    for answer in response.answers:
        grouped[answer.question_id].append(answer)
    # Multi-record categories hold one answer per record for the same question
    for answers in grouped.values():
        answers.sort(key=lambda a: (a.record_id is not None, a.record_id or 0, a.id or 0))
    return grouped


def sorted_answers(session: Session, response: Response, tree: QuestionTree | None = None) -> list[Answer]:
    tree = tree or load_question_tree(session, response.survey_id)
    grouped = _answers_by_question(response)
    ordered: list[Answer] = []
    for question in tree.iter_questions():
        ordered.extend(grouped.get(question.id, ()))
    return ordered


def create_blank_answers(session: Session, response: Response, tree: QuestionTree | None = None) -> int:
    """Create an empty Answer for every reachable question still unanswered.

    Returns the number of answers created.
    """
    tree = tree or load_question_tree(session, response.survey_id)
    answered = {a.question_id for a in response.answers}
    created = 0
    with transaction_scope(session, "blank_answers", response):
        for question in tree.iter_questions():
            if question.id in answered:
                continue
            response.answers.append(Answer(question_id=question.id))
            answered.add(question.id)
            created += 1
        session.flush()
    logger.info("blank_answers_created response_id=%s count=%s", response.id, created)
    return created


__all__ = ["sorted_answers", "create_blank_answers"]
