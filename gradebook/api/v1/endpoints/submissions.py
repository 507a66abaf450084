# gradebook/api/v1/endpoints/submissions.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.api.deps import get_clock, to_http_exception
from gradebook.core.clock import Clock
from gradebook.core.security import get_current_teacher
from gradebook.db.session import get_db
from gradebook.models.user import User
from gradebook.schemas.score import GradesResult, GradesUpdate
from gradebook.schemas.submission import SubmissionForGrading
from gradebook.services import scoring_service
from gradebook.services.errors import GradingError

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.get("/{submission_id}", response_model=SubmissionForGrading)
def get_submission_for_grading(
    submission_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    老师查看单份答卷（题目、标准答案、学生答案、当前得分）。
    """
    try:
        return scoring_service.get_submission_for_grading(
            db, submission_id=submission_id, teacher_id=current_teacher.id
        )
    except GradingError as e:
        raise to_http_exception(e) from e


@router.put("/{submission_id}/grades", response_model=GradesResult)
def apply_grades(
    submission_id: int,
    grades_in: GradesUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    老师保存评分：
      - 覆盖每道题得分
      - 总分按全部明细重算
      - status -> 'graded'
    """
    try:
        updated = scoring_service.apply_grades(
            db,
            submission_id=submission_id,
            teacher_id=current_teacher.id,
            grades=grades_in.grades,
            now=clock(),
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return GradesResult(success=True, new_total_score=updated.total_score)
