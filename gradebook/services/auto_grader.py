# gradebook/services/auto_grader.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from gradebook.core.config import settings
from gradebook.models.question import OBJECTIVE_TYPES

ZERO = Decimal("0")


@dataclass(frozen=True)
class ItemResult:
    score: Decimal
    is_correct: bool | None  # None for subjective items


def quantize_score(value) -> Decimal:
    places = Decimal(1).scaleb(-settings.SCORE_PLACES)
    return Decimal(str(value)).quantize(places)


def normalize_answer(value: str | None) -> str:
    return (value or "").strip().upper()


def is_objective(question_type: str) -> bool:
    return question_type in OBJECTIVE_TYPES


def grade_item(
    question_type: str,
    reference_answer: str | None,
    weight,
    student_answer: str | None,
) -> ItemResult:
    """
    Score one answer.

    Objective items get the full link weight on an exact match of the
    normalized strings and zero otherwise; a multiple-choice answer that
    is only partly right earns nothing. Subjective items are left at zero
    with ``is_correct`` unset until a teacher grades them.
    """
    if not is_objective(question_type):
        return ItemResult(score=quantize_score(ZERO), is_correct=None)

    # 没配标准答案的客观题无法判分，按错处理
    if not normalize_answer(reference_answer):
        return ItemResult(score=quantize_score(ZERO), is_correct=False)

    is_correct = normalize_answer(student_answer) == normalize_answer(reference_answer)
    score = Decimal(str(weight or 0)) if is_correct else ZERO
    return ItemResult(score=quantize_score(score), is_correct=is_correct)
