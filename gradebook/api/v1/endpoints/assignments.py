# gradebook/api/v1/endpoints/assignments.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gradebook.api.deps import get_clock, to_http_exception
from gradebook.core.clock import Clock
from gradebook.core.security import get_current_student, get_current_teacher, get_current_user
from gradebook.db.session import get_db
from gradebook.models.assessment import SOURCE_ASSIGNMENT
from gradebook.models.user import User
from gradebook.schemas.assessment import (
    AssignmentPublic,
    AssignmentSave,
    AssignmentSummary,
    DeleteResult,
    SavedId,
)
from gradebook.schemas.score import SourceStats
from gradebook.schemas.submission import (
    StudentSubmissionRow,
    SubmissionCreate,
    SubmissionPublic,
    SubmitResult,
)
from gradebook.services import assessment_service, rollup_service, submission_service
from gradebook.services.errors import GradingError

router = APIRouter(prefix="/assignments", tags=["assignments"])


def _require_assignment(db: Session, assignment_id: int):
    assignment = assessment_service.get_source(db, SOURCE_ASSIGNMENT, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


@router.post("/", response_model=SavedId, status_code=status.HTTP_201_CREATED)
def create_assignment(
    obj_in: AssignmentSave,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    老师创建作业，同时下发班级、关联题目及分值。
    """
    try:
        assignment = assessment_service.save_assignment(
            db, teacher_id=current_teacher.id, obj_in=obj_in
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return SavedId(id=assignment.id)


@router.put("/{assignment_id}", response_model=SavedId)
def update_assignment(
    assignment_id: int,
    obj_in: AssignmentSave,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    更新作业：班级和题目关联整体替换。
    """
    try:
        assignment = assessment_service.save_assignment(
            db, teacher_id=current_teacher.id, obj_in=obj_in, assignment_id=assignment_id
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return SavedId(id=assignment.id)


@router.get("/", response_model=List[AssignmentSummary])
def list_assignments(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
    course_id: int | None = None,
):
    """
    作业列表：学生看下发到自己班级的已发布作业，老师看自己布置的。
    """
    if current_user.role == "student":
        return assessment_service.list_assignments_for_student(
            db, student_id=current_user.id, now=clock(), course_id=course_id
        )
    return assessment_service.list_assignments_for_teacher(
        db, teacher_id=current_user.id, now=clock(), course_id=course_id
    )


@router.delete("/{assignment_id}", response_model=DeleteResult)
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    删除作业；已经有人提交的作业不能删。
    """
    try:
        assessment_service.delete_source(
            db,
            source_kind=SOURCE_ASSIGNMENT,
            source_id=assignment_id,
            teacher_id=current_teacher.id,
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return DeleteResult()


@router.get("/{assignment_id}", response_model=AssignmentPublic)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
):
    """
    作业详情，学生端也用它显示截止时间。
    """
    assignment = _require_assignment(db, assignment_id)
    return assessment_service.assignment_to_dict(db, assignment, clock())


@router.post(
    "/{assignment_id}/submit",
    response_model=SubmitResult,
    status_code=status.HTTP_201_CREATED,
)
def submit_assignment(
    assignment_id: int,
    obj_in: SubmissionCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_student: User = Depends(get_current_student),
):
    """
    学生提交作业；客观题当场判分，主观题等老师批改。
    """
    try:
        sub = submission_service.submit_assignment(
            db,
            student_id=current_student.id,
            assignment_id=assignment_id,
            answers=obj_in.answers,
            now=clock(),
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return SubmitResult(submission_id=sub.id, score=sub.total_score)


@router.get("/{assignment_id}/submission", response_model=SubmissionPublic | None)
def get_my_submission(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    """
    学生查看自己对该作业的提交状态；没交返回 null。
    """
    return submission_service.get_submission_status(
        db,
        student_id=current_student.id,
        source_kind=SOURCE_ASSIGNMENT,
        source_id=assignment_id,
    )


@router.get("/{assignment_id}/stats", response_model=SourceStats)
def get_assignment_stats(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    try:
        return rollup_service.source_stats(
            db,
            source_kind=SOURCE_ASSIGNMENT,
            source_id=assignment_id,
            teacher_id=current_teacher.id,
        )
    except GradingError as e:
        raise to_http_exception(e) from e


@router.get("/{assignment_id}/submissions", response_model=List[StudentSubmissionRow])
def list_assignment_submissions(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    老师查看提交名单（含未提交的学生）。
    """
    try:
        return rollup_service.list_source_submissions(
            db,
            source_kind=SOURCE_ASSIGNMENT,
            source_id=assignment_id,
            teacher_id=current_teacher.id,
        )
    except GradingError as e:
        raise to_http_exception(e) from e
