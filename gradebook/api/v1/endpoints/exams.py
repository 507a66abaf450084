# gradebook/api/v1/endpoints/exams.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gradebook.api.deps import get_clock, to_http_exception
from gradebook.core.clock import Clock
from gradebook.core.security import get_current_student, get_current_teacher, get_current_user
from gradebook.db.session import get_db
from gradebook.models.assessment import SOURCE_EXAM
from gradebook.models.user import User
from gradebook.schemas.assessment import DeleteResult, ExamPublic, ExamSave, ExamSummary, SavedId
from gradebook.schemas.score import SourceStats
from gradebook.schemas.submission import (
    StudentSubmissionRow,
    SubmissionCreate,
    SubmissionPublic,
    SubmitResult,
)
from gradebook.services import assessment_service, rollup_service, submission_service
from gradebook.services.errors import GradingError

router = APIRouter(prefix="/exams", tags=["exams"])


def _require_exam(db: Session, exam_id: int):
    exam = assessment_service.get_source(db, SOURCE_EXAM, exam_id)
    if exam is None:
        raise HTTPException(status_code=404, detail="Exam not found")
    return exam


@router.post("/", response_model=SavedId, status_code=status.HTTP_201_CREATED)
def create_exam(
    obj_in: ExamSave,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    try:
        exam = assessment_service.save_exam(db, teacher_id=current_teacher.id, obj_in=obj_in)
    except GradingError as e:
        raise to_http_exception(e) from e
    return SavedId(id=exam.id)


@router.put("/{exam_id}", response_model=SavedId)
def update_exam(
    exam_id: int,
    obj_in: ExamSave,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    try:
        exam = assessment_service.save_exam(
            db, teacher_id=current_teacher.id, obj_in=obj_in, exam_id=exam_id
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return SavedId(id=exam.id)


@router.get("/", response_model=List[ExamSummary])
def list_exams(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
):
    """
    考试列表：学生看自己班级的考试，老师看自己出的。
    """
    if current_user.role == "student":
        return assessment_service.list_exams_for_student(
            db, student_id=current_user.id, now=clock()
        )
    return assessment_service.list_exams_for_teacher(
        db, teacher_id=current_user.id, now=clock()
    )


@router.delete("/{exam_id}", response_model=DeleteResult)
def delete_exam(
    exam_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    try:
        assessment_service.delete_source(
            db, source_kind=SOURCE_EXAM, source_id=exam_id, teacher_id=current_teacher.id
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return DeleteResult()


@router.get("/{exam_id}", response_model=ExamPublic)
def get_exam(
    exam_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),  # 学生答题面板也要用
):
    """
    考试详情，state 按服务器当前时间实时推算。
    """
    exam = _require_exam(db, exam_id)
    return assessment_service.exam_to_dict(db, exam, clock())


@router.post("/{exam_id}/submit", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
def submit_exam(
    exam_id: int,
    obj_in: SubmissionCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_student: User = Depends(get_current_student),
):
    """
    学生交卷：只有考试进行中才接受。
    """
    try:
        sub = submission_service.submit_exam(
            db,
            student_id=current_student.id,
            exam_id=exam_id,
            answers=obj_in.answers,
            now=clock(),
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return SubmitResult(submission_id=sub.id, score=sub.total_score)


@router.get("/{exam_id}/submission", response_model=SubmissionPublic | None)
def get_my_exam_submission(
    exam_id: int,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    return submission_service.get_submission_status(
        db,
        student_id=current_student.id,
        source_kind=SOURCE_EXAM,
        source_id=exam_id,
    )


@router.get("/{exam_id}/stats", response_model=SourceStats)
def get_exam_stats(
    exam_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    try:
        return rollup_service.source_stats(
            db, source_kind=SOURCE_EXAM, source_id=exam_id, teacher_id=current_teacher.id
        )
    except GradingError as e:
        raise to_http_exception(e) from e


@router.get("/{exam_id}/submissions", response_model=List[StudentSubmissionRow])
def list_exam_submissions(
    exam_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    教师阅卷列表（含未交卷的学生）。
    """
    try:
        return rollup_service.list_source_submissions(
            db, source_kind=SOURCE_EXAM, source_id=exam_id, teacher_id=current_teacher.id
        )
    except GradingError as e:
        raise to_http_exception(e) from e
