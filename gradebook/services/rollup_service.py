# gradebook/services/rollup_service.py
from typing import List

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from gradebook.models.assessment import AssessmentClass
from gradebook.models.classroom import ClassEnrollment, SchoolClass
from gradebook.models.submission import STATUS_GRADED, Submission
from gradebook.models.user import User
from gradebook.services.assessment_service import get_owned_source


def source_stats(db: Session, *, source_kind: str, source_id: int, teacher_id: int) -> dict:
    """
    看板统计：
      - submitted: 有答卷头就算已交（不论是否已批改）
      - graded: status = 'graded'
      - pending = submitted - graded
      - total_students: 下发班级里去重后的学生数（分母）
    """
    get_owned_source(db, source_kind, source_id, teacher_id)

    rows = (
        db.query(Submission.status, func.count(Submission.id))
        .filter(
            Submission.source_kind == source_kind,
            Submission.source_id == source_id,
        )
        .group_by(Submission.status)
        .all()
    )
    submitted = sum(count for _, count in rows)
    graded = sum(count for status, count in rows if status == STATUS_GRADED)

    total_students = (
        db.query(func.count(func.distinct(ClassEnrollment.student_id)))
        .select_from(ClassEnrollment)
        .join(AssessmentClass, AssessmentClass.class_id == ClassEnrollment.class_id)
        .filter(
            AssessmentClass.source_kind == source_kind,
            AssessmentClass.source_id == source_id,
        )
        .scalar()
    )

    return {
        "submitted": submitted,
        "graded": graded,
        "pending": submitted - graded,
        "total_students": total_students or 0,
    }


def list_source_submissions(
    db: Session, *, source_kind: str, source_id: int, teacher_id: int
) -> List[dict]:
    """
    批阅名单：下发班级里的所有学生 left join 答卷头，
    没交的学生也会出现，submission 字段为空。
    """
    get_owned_source(db, source_kind, source_id, teacher_id)

    rows = (
        db.query(User, SchoolClass.name, Submission)
        .select_from(AssessmentClass)
        .join(ClassEnrollment, ClassEnrollment.class_id == AssessmentClass.class_id)
        .join(User, User.id == ClassEnrollment.student_id)
        .join(SchoolClass, SchoolClass.id == AssessmentClass.class_id)
        .outerjoin(
            Submission,
            and_(
                Submission.source_kind == source_kind,
                Submission.source_id == source_id,
                Submission.student_id == ClassEnrollment.student_id,
            ),
        )
        .filter(
            AssessmentClass.source_kind == source_kind,
            AssessmentClass.source_id == source_id,
        )
        .order_by(SchoolClass.name, User.username)
        .all()
    )

    listing = []
    seen = set()
    for student, class_name, submission in rows:
        # 一个学生在多个下发班级里只列一次
        if student.id in seen:
            continue
        seen.add(student.id)
        listing.append(
            {
                "student_id": student.id,
                "student_name": student.name,
                "student_number": student.username,
                "class_name": class_name,
                "submission_id": submission.id if submission else None,
                "status": submission.status if submission else None,
                "total_score": submission.total_score if submission else None,
                "submitted_at": submission.submitted_at if submission else None,
            }
        )
    return listing
