# gradebook/services/scoring_service.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from gradebook.core.clock import utcnow
from gradebook.core.config import settings
from gradebook.models.assessment import AssessmentQuestion
from gradebook.models.question import Question
from gradebook.models.submission import STATUS_GRADED, Submission, SubmissionDetail
from gradebook.models.user import User
from gradebook.schemas.score import GradeItem
from gradebook.services import assessment_service
from gradebook.services.auto_grader import quantize_score
from gradebook.services.errors import (
    NotFoundError,
    SubmissionValidationError,
)
from gradebook.services.question_service import parse_options
from gradebook.workers.queue import enqueue_grade_released_task

logger = logging.getLogger(__name__)

_SCORE_LIMIT = Decimal(10) ** (8 - settings.SCORE_PLACES)


def _get_owned_submission(db: Session, submission_id: int, teacher_id: int):
    submission: Optional[Submission] = db.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError(f"submission {submission_id} not found")

    # 只有出题老师能批改
    source = assessment_service.get_owned_source(
        db, submission.source_kind, submission.source_id, teacher_id
    )
    return submission, source


def _check_score(item: GradeItem) -> None:
    score = item.score
    if not score.is_finite() or score < 0:
        raise SubmissionValidationError(
            f"score for detail {item.detail_id} must be a non-negative number"
        )
    # Numeric(8,2) 能存下的上限
    if score >= _SCORE_LIMIT:
        raise SubmissionValidationError(
            f"score for detail {item.detail_id} must be below {_SCORE_LIMIT}"
        )


def recompute_total(db: Session, submission: Submission) -> Decimal:
    """
    Re-read every detail row and write the sum back to the header.
    Never applies a delta, so repeated or interleaved calls converge.
    """
    db.flush()
    scores = (
        db.query(SubmissionDetail.score)
        .filter(SubmissionDetail.submission_id == submission.id)
        .all()
    )
    total = sum((Decimal(str(row[0] or 0)) for row in scores), Decimal("0"))
    submission.total_score = quantize_score(total)
    return submission.total_score


def apply_grades(
    db: Session,
    *,
    submission_id: int,
    teacher_id: int,
    grades: Sequence[GradeItem],
    now: datetime | None = None,
) -> Submission:
    """
    教师批改：
      - 覆盖每道题得分（不按分值封顶）
      - 用全部明细重新汇总总分
      - status -> 'graded'，记录 graded_at / graded_by

    One transaction; a rejected batch leaves every score as it was.
    """
    now = now or utcnow()
    submission, _ = _get_owned_submission(db, submission_id, teacher_id)

    for item in grades:
        _check_score(item)

    new_scores = {item.detail_id: item.score for item in grades}
    details = []
    if new_scores:
        details = (
            db.query(SubmissionDetail)
            .filter(
                SubmissionDetail.id.in_(new_scores.keys()),
                SubmissionDetail.submission_id == submission.id,
            )
            .all()
        )
    missing = sorted(set(new_scores) - {d.id for d in details})
    if missing:
        raise NotFoundError(
            f"details {missing} do not belong to submission {submission_id}"
        )

    try:
        for detail in details:
            detail.score = quantize_score(new_scores[detail.id])

        recompute_total(db, submission)
        if submission.total_score >= _SCORE_LIMIT:
            raise SubmissionValidationError(
                f"total for submission {submission_id} would exceed {_SCORE_LIMIT}"
            )
        submission.status = STATUS_GRADED
        submission.graded_at = now
        submission.graded_by = teacher_id
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Grading batch for submission {submission_id} failed", exc_info=True)
        raise

    db.refresh(submission)
    logger.info(
        f"Graded submission {submission_id}: teacher={teacher_id}, "
        f"items={len(details)}, new_total={submission.total_score}"
    )

    if settings.GRADE_NOTIFICATIONS_ENABLED:
        _notify_grade_released(submission.id)

    return submission


def _notify_grade_released(submission_id: int) -> None:
    # 分数已提交，通知失败不回滚
    try:
        job_id = enqueue_grade_released_task(submission_id)
    except Exception as e:
        logger.warning(
            f"Could not enqueue grade release notice for submission {submission_id}: {e}",
            exc_info=True,
        )
        return
    logger.info(f"Enqueued grade release notice {job_id} for submission {submission_id}")


def get_submission_for_grading(
    db: Session,
    *,
    submission_id: int,
    teacher_id: int,
) -> dict:
    """
    获取单份答卷详情（题目、学生答案、自动判分结果、当前分值）
    """
    submission, source = _get_owned_submission(db, submission_id, teacher_id)
    student = db.get(User, submission.student_id)

    rows = (
        db.query(SubmissionDetail, Question, AssessmentQuestion.weight)
        .join(Question, SubmissionDetail.question_id == Question.id)
        # 链接可能在提交后被替换掉，所以是 outer join
        .outerjoin(
            AssessmentQuestion,
            (AssessmentQuestion.source_kind == submission.source_kind)
            & (AssessmentQuestion.source_id == submission.source_id)
            & (AssessmentQuestion.question_id == Question.id),
        )
        .filter(SubmissionDetail.submission_id == submission.id)
        .order_by(SubmissionDetail.id)
        .all()
    )

    return {
        "submission": {
            "id": submission.id,
            "student_id": submission.student_id,
            "student_name": student.name if student else "",
            "source_kind": submission.source_kind,
            "source_id": submission.source_id,
            "source_title": source.title,
            "status": submission.status,
            "total_score": submission.total_score,
            "submitted_at": submission.submitted_at,
            "graded_at": submission.graded_at,
        },
        "details": [
            {
                "detail_id": detail.id,
                "question_id": question.id,
                "title": question.title,
                "content": question.content,
                "type": question.type,
                "options": parse_options(question.options),
                "standard_answer": question.answer,
                "student_answer": detail.student_answer,
                "is_correct": detail.is_correct,
                "score": detail.score,
                "max_score": weight,
            }
            for detail, question, weight in rows
        ],
    }
