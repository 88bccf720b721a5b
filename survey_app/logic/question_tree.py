"""Immutable snapshot of a Survey's question forest.

The tree is loaded once per operation and never mutated afterwards. Top-level
elements are Questions and Categories without a parent; Categories contain
elements; Options of a Question contain the elements their selection reveals.
Siblings are ordered by ``order_number`` with Questions ahead of Categories on
ties and the primary key as the final tie-breaker, so traversal is
deterministic for identical ordering fields.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from survey_app.logic.errors import SurveyNotFoundError
from survey_app.models.question_kind import QuestionKind
from survey_app.models.survey import Category, Option, Question, Survey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionNode:
    id: int
    question_id: int
    order_number: int
    content: Optional[str] = None
    children: tuple["Element", ...] = ()


@dataclass(frozen=True)
class QuestionNode:
    id: int
    kind: str
    order_number: int
    content: Optional[str] = None
    mandatory: bool = False
    max_length: Optional[int] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    options: tuple[OptionNode, ...] = ()

    @property
    def option_ids(self) -> frozenset[int]:
        return frozenset(o.id for o in self.options)


@dataclass(frozen=True)
class CategoryNode:
    id: int
    order_number: int
    content: Optional[str] = None
    children: tuple["Element", ...] = ()


Element = Union[QuestionNode, CategoryNode]


@dataclass(frozen=True)
class QuestionTree:
    survey_id: int
    public: bool
    roots: tuple[Element, ...]
    questions: Mapping[int, QuestionNode] = field(default_factory=dict)

    def question(self, question_id: int | None) -> QuestionNode | None:
        if question_id is None:
            return None
        return self.questions.get(int(question_id))

    def iter_questions(self) -> Iterator[QuestionNode]:
        """Yield reachable questions depth-first in display order.

        A question is followed by the subtrees of its options (in option
        order) before its next sibling.
        """
        for element in self.roots:
            yield from _walk(element)

    def ordered_question_ids(self) -> list[int]:
        return [q.id for q in self.iter_questions()]


def _walk(element: Element) -> Iterator[QuestionNode]:
    if isinstance(element, QuestionNode):
        yield element
        for option in element.options:
            for child in option.children:
                yield from _walk(child)
    else:
        for child in element.children:
            yield from _walk(child)


def _sibling_key(row: Question | Category) -> tuple:
    rank = 0 if isinstance(row, Question) else 1
    return (row.order_number or 0, rank, row.id)


def _option_key(opt: Option) -> tuple:
    return (opt.order_number or 0, opt.id)


def _question_node(row: Question, options: tuple[OptionNode, ...]) -> QuestionNode:
    return QuestionNode(
        id=row.id,
        kind=row.type or QuestionKind.SINGLE_LINE,
        order_number=row.order_number or 0,
        content=row.content,
        mandatory=bool(row.mandatory),
        max_length=row.max_length,
        min_value=row.min_value,
        max_value=row.max_value,
        options=options,
    )


def build_question_tree(
    survey: Survey,
    questions: list[Question],
    categories: list[Category],
    options: list[Option],
) -> QuestionTree:
    """Assemble a QuestionTree from already-loaded rows of one survey."""
    by_category: dict[int, list] = defaultdict(list)
    by_option: dict[int, list] = defaultdict(list)
    top_level: list = []
    for row in [*questions, *categories]:
        if row.parent_option_id is not None:
            by_option[row.parent_option_id].append(row)
        elif row.category_id is not None:
            by_category[row.category_id].append(row)
        else:
            top_level.append(row)

    options_by_question: dict[int, list[Option]] = defaultdict(list)
    for opt in options:
        options_by_question[opt.question_id].append(opt)

    built: dict[int, QuestionNode] = {}
    visiting: set[tuple[str, int]] = set()

    def build(row: Question | Category) -> Element | None:
        key = ("q" if isinstance(row, Question) else "c", row.id)
        if key in visiting:
            logger.warning("question_tree_cycle_skipped survey_id=%s element=%s", survey.id, key)
            return None
        visiting.add(key)
        try:
            if isinstance(row, Question):
                option_nodes = tuple(
                    OptionNode(
                        id=opt.id,
                        question_id=row.id,
                        order_number=opt.order_number or 0,
                        content=opt.content,
                        children=build_children(by_option.get(opt.id, [])),
                    )
                    for opt in sorted(options_by_question.get(row.id, []), key=_option_key)
                )
                node = _question_node(row, option_nodes)
                built[row.id] = node
                return node
            return CategoryNode(
                id=row.id,
                order_number=row.order_number or 0,
                content=row.content,
                children=build_children(by_category.get(row.id, [])),
            )
        finally:
            visiting.discard(key)

    def build_children(rows: list) -> tuple[Element, ...]:
        nodes = (build(r) for r in sorted(rows, key=_sibling_key))
        return tuple(n for n in nodes if n is not None)

    roots = build_children(top_level)

    # Unreachable questions still validate answers that reference them
    for row in questions:
        if row.id not in built:
            built[row.id] = _question_node(
                row,
                tuple(
                    OptionNode(id=o.id, question_id=row.id, order_number=o.order_number or 0, content=o.content)
                    for o in sorted(options_by_question.get(row.id, []), key=_option_key)
                ),
            )

    return QuestionTree(
        survey_id=survey.id,
        public=bool(survey.public),
        roots=roots,
        questions=MappingProxyType(built),
    )


def load_question_tree(session: Session, survey_id: int) -> QuestionTree:
    """Load every element of ``survey_id`` in four queries and build the tree."""
    survey = session.get(Survey, survey_id)
    if survey is None:
        raise SurveyNotFoundError(survey_id)
    questions = list(session.scalars(select(Question).where(Question.survey_id == survey_id)))
    categories = list(session.scalars(select(Category).where(Category.survey_id == survey_id)))
    question_ids = [q.id for q in questions]
    options: list[Option] = []
    if question_ids:
        options = list(session.scalars(select(Option).where(Option.question_id.in_(question_ids))))
    tree = build_question_tree(survey, questions, categories, options)
    logger.info(
        "question_tree_loaded survey_id=%s questions=%s reachable=%s",
        survey_id,
        len(tree.questions),
        len(tree.ordered_question_ids()),
    )
    return tree


__all__ = [
    "OptionNode",
    "QuestionNode",
    "CategoryNode",
    "QuestionTree",
    "build_question_tree",
    "load_question_tree",
]
