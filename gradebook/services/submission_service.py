# gradebook/services/submission_service.py
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gradebook.core.clock import utcnow
from gradebook.models.assessment import SOURCE_ASSIGNMENT, SOURCE_EXAM, SOURCE_KINDS
from gradebook.models.submission import STATUS_SUBMITTED, Submission, SubmissionDetail
from gradebook.schemas.submission import AnswerIn
from gradebook.services import assessment_service, question_service
from gradebook.services.auto_grader import grade_item, quantize_score
from gradebook.services.errors import (
    AlreadySubmittedError,
    DeadlineError,
    SourceNotFoundError,
    SubmissionValidationError,
)
from gradebook.services.time_window import IN_PROGRESS, assignment_closed, exam_state

logger = logging.getLogger(__name__)


def get_submission(db: Session, submission_id: int) -> Optional[Submission]:
    return db.get(Submission, submission_id)


def get_submission_status(
    db: Session,
    *,
    student_id: int,
    source_kind: str,
    source_id: int,
) -> Optional[Submission]:
    """
    查询某个学生对某个作业/考试的提交记录；没交返回 None
    """
    return (
        db.query(Submission)
        .filter(
            Submission.student_id == student_id,
            Submission.source_kind == source_kind,
            Submission.source_id == source_id,
        )
        .first()
    )


def _validate_answers(answers: Sequence[AnswerIn]) -> None:
    if not answers:
        raise SubmissionValidationError("answer set is empty")
    seen = set()
    for ans in answers:
        if ans.question_id in seen:
            raise SubmissionValidationError(
                f"question {ans.question_id} answered more than once"
            )
        seen.add(ans.question_id)


def _check_window(source, source_kind: str, now: datetime) -> None:
    # 服务端再校验一次，前端的时间不可信
    if source_kind == SOURCE_EXAM:
        state = exam_state(source.start_time, source.duration, now)
        if state != IN_PROGRESS:
            raise DeadlineError(f"exam {source.id} is {state}, submissions are closed")
    elif assignment_closed(source.due_date, now):
        raise DeadlineError(f"assignment {source.id} is past its due date")


def submit(
    db: Session,
    *,
    student_id: int,
    source_kind: str,
    source_id: int,
    answers: Sequence[AnswerIn],
    now: datetime | None = None,
) -> Submission:
    """
    学生提交作业/考试：一个事务内完成
      1. 插入答卷头 (status = submitted, total = 0)
      2. 取标准答案和本次分值
      3. 客观题自动判分
      4. 批量插入每题明细
      5. 回写总分

    Any failure rolls the whole thing back; no header is left behind.
    Answers to questions no longer linked to the source are dropped and
    logged, the rest of the submission goes through.
    """
    now = now or utcnow()
    _validate_answers(answers)

    if source_kind not in SOURCE_KINDS:
        raise SubmissionValidationError(f"unknown source kind {source_kind!r}")
    source = assessment_service.get_source(db, source_kind, source_id)
    if source is None:
        raise SourceNotFoundError(f"{source_kind} {source_id} not found")

    try:
        _check_window(source, source_kind, now)
    except DeadlineError as e:
        logger.warning(f"Rejected late submission from student {student_id}: {e}")
        raise

    existing = get_submission_status(
        db, student_id=student_id, source_kind=source_kind, source_id=source_id
    )
    if existing is not None:
        logger.warning(
            f"Student {student_id} already submitted {source_kind} {source_id} "
            f"(submission {existing.id})"
        )
        raise AlreadySubmittedError(f"{source_kind} {source_id} already submitted")

    references = question_service.resolve_reference_answers(
        db, source_kind=source_kind, source_id=source_id
    )
    if not references:
        raise SourceNotFoundError(f"{source_kind} {source_id} has no linked questions")
    ref_by_question = {ref.question_id: ref for ref in references}

    try:
        submission = Submission(
            student_id=student_id,
            source_kind=source_kind,
            source_id=source_id,
            status=STATUS_SUBMITTED,
            total_score=quantize_score(0),
            submitted_at=now,
        )
        db.add(submission)
        # 唯一约束在这里兜底并发重复提交
        db.flush()

        total = Decimal("0")
        dropped: List[int] = []
        for ans in answers:
            ref = ref_by_question.get(ans.question_id)
            if ref is None:
                dropped.append(ans.question_id)
                continue
            result = grade_item(ref.type, ref.reference_answer, ref.weight, ans.content)
            total += result.score
            db.add(
                SubmissionDetail(
                    submission_id=submission.id,
                    question_id=ans.question_id,
                    student_answer=ans.content,
                    is_correct=result.is_correct,
                    score=result.score,
                )
            )

        if dropped:
            logger.warning(
                f"Dropped answers for unlinked questions {dropped} in "
                f"{source_kind} {source_id} (student {student_id})"
            )

        submission.total_score = quantize_score(total)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(
            f"Concurrent duplicate submission for {source_kind} {source_id} "
            f"by student {student_id}"
        )
        raise AlreadySubmittedError(f"{source_kind} {source_id} already submitted") from e
    except Exception:
        db.rollback()
        logger.error(
            f"Submission for {source_kind} {source_id} by student {student_id} failed",
            exc_info=True,
        )
        raise

    db.refresh(submission)
    logger.info(
        f"Accepted submission {submission.id}: student={student_id}, "
        f"{source_kind}={source_id}, auto_total={submission.total_score}"
    )
    return submission


def submit_assignment(
    db: Session,
    *,
    student_id: int,
    assignment_id: int,
    answers: Sequence[AnswerIn],
    now: datetime | None = None,
) -> Submission:
    return submit(
        db,
        student_id=student_id,
        source_kind=SOURCE_ASSIGNMENT,
        source_id=assignment_id,
        answers=answers,
        now=now,
    )


def submit_exam(
    db: Session,
    *,
    student_id: int,
    exam_id: int,
    answers: Sequence[AnswerIn],
    now: datetime | None = None,
) -> Submission:
    return submit(
        db,
        student_id=student_id,
        source_kind=SOURCE_EXAM,
        source_id=exam_id,
        answers=answers,
        now=now,
    )
