# gradebook/services/assessment_service.py
import logging
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gradebook.core.clock import as_naive_utc
from gradebook.models.assessment import (
    SOURCE_ASSIGNMENT,
    SOURCE_EXAM,
    Assignment,
    Exam,
    AssessmentClass,
    AssessmentQuestion,
)
from gradebook.models.classroom import ClassEnrollment, SchoolClass
from gradebook.models.question import Question
from gradebook.models.submission import Submission
from gradebook.schemas.assessment import AssignmentSave, ExamSave, QuestionLinkIn
from gradebook.services.errors import ConflictError, NotFoundError, PermissionDeniedError
from gradebook.services.time_window import assignment_closed, exam_end_time, exam_state

logger = logging.getLogger(__name__)

Source = Union[Assignment, Exam]

_SOURCE_MODELS = {
    SOURCE_ASSIGNMENT: Assignment,
    SOURCE_EXAM: Exam,
}


def get_source(db: Session, source_kind: str, source_id: int) -> Optional[Source]:
    model = _SOURCE_MODELS.get(source_kind)
    if model is None:
        return None
    return db.get(model, source_id)


def get_owned_source(db: Session, source_kind: str, source_id: int, teacher_id: int) -> Source:
    """
    Load an assignment/exam for its creator. Anyone else gets
    PermissionDeniedError; a missing row gets NotFoundError.
    """
    obj = get_source(db, source_kind, source_id)
    if obj is None:
        raise NotFoundError(f"{source_kind} {source_id} not found")
    if obj.created_by != teacher_id:
        raise PermissionDeniedError(f"{source_kind} {source_id} belongs to another teacher")
    return obj


def _dedupe_links(questions: List[QuestionLinkIn]) -> List[QuestionLinkIn]:
    # 同一道题只保留第一次出现的分值
    kept = {}
    for link in questions:
        kept.setdefault(link.question_id, link)
    if len(kept) != len(questions):
        logger.warning(f"Dropped {len(questions) - len(kept)} duplicate question links on save")
    return list(kept.values())


def _replace_links(
    db: Session,
    *,
    source_kind: str,
    source_id: int,
    class_ids: List[int],
    questions: List[QuestionLinkIn],
) -> None:
    """
    先删后增：链接表整体替换，不做增量 diff。
    """
    questions = _dedupe_links(questions)
    class_ids = list(dict.fromkeys(class_ids))

    question_ids = {q.question_id for q in questions}
    if question_ids:
        found = {
            row[0]
            for row in db.query(Question.id).filter(Question.id.in_(question_ids)).all()
        }
        missing = sorted(question_ids - found)
        if missing:
            raise NotFoundError(f"questions {missing} not found")

    if class_ids:
        found = {
            row[0]
            for row in db.query(SchoolClass.id).filter(SchoolClass.id.in_(class_ids)).all()
        }
        missing = sorted(set(class_ids) - found)
        if missing:
            raise NotFoundError(f"classes {missing} not found")

    _delete_links(db, source_kind, source_id)

    for class_id in class_ids:
        db.add(AssessmentClass(source_kind=source_kind, source_id=source_id, class_id=class_id))
    for idx, link in enumerate(questions, start=1):
        db.add(
            AssessmentQuestion(
                source_kind=source_kind,
                source_id=source_id,
                question_id=link.question_id,
                weight=link.weight,
                position=link.position if link.position is not None else idx,
            )
        )

    logger.info(
        f"Replaced links for {source_kind} {source_id}: "
        f"{len(class_ids)} classes, {len(questions)} questions"
    )


def _delete_links(db: Session, source_kind: str, source_id: int) -> None:
    db.query(AssessmentClass).filter(
        AssessmentClass.source_kind == source_kind,
        AssessmentClass.source_id == source_id,
    ).delete(synchronize_session=False)
    db.query(AssessmentQuestion).filter(
        AssessmentQuestion.source_kind == source_kind,
        AssessmentQuestion.source_id == source_id,
    ).delete(synchronize_session=False)


def save_assignment(
    db: Session,
    *,
    teacher_id: int,
    obj_in: AssignmentSave,
    assignment_id: int | None = None,
) -> Assignment:
    try:
        if assignment_id is None:
            assignment = Assignment(created_by=teacher_id)
            db.add(assignment)
        else:
            assignment = get_owned_source(db, SOURCE_ASSIGNMENT, assignment_id, teacher_id)

        assignment.course_id = obj_in.course_id
        assignment.title = obj_in.title
        assignment.description = obj_in.description
        assignment.due_date = as_naive_utc(obj_in.due_date)
        assignment.status = obj_in.status
        db.flush()

        _replace_links(
            db,
            source_kind=SOURCE_ASSIGNMENT,
            source_id=assignment.id,
            class_ids=obj_in.class_ids,
            questions=obj_in.questions,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    return assignment


def save_exam(
    db: Session,
    *,
    teacher_id: int,
    obj_in: ExamSave,
    exam_id: int | None = None,
) -> Exam:
    try:
        if exam_id is None:
            exam = Exam(created_by=teacher_id)
            db.add(exam)
        else:
            exam = get_owned_source(db, SOURCE_EXAM, exam_id, teacher_id)

        exam.course_id = obj_in.course_id
        exam.title = obj_in.title
        exam.description = obj_in.description
        exam.start_time = as_naive_utc(obj_in.start_time)
        exam.duration = obj_in.duration
        exam.total_score = obj_in.total_score
        db.flush()

        _replace_links(
            db,
            source_kind=SOURCE_EXAM,
            source_id=exam.id,
            class_ids=obj_in.class_ids,
            questions=obj_in.questions,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(exam)
    return exam


def list_class_ids(db: Session, source_kind: str, source_id: int) -> List[int]:
    rows = (
        db.query(AssessmentClass.class_id)
        .filter(
            AssessmentClass.source_kind == source_kind,
            AssessmentClass.source_id == source_id,
        )
        .order_by(AssessmentClass.id)
        .all()
    )
    return [row[0] for row in rows]


def list_question_links(db: Session, source_kind: str, source_id: int) -> List[dict]:
    rows = (
        db.query(AssessmentQuestion, Question)
        .join(Question, AssessmentQuestion.question_id == Question.id)
        .filter(
            AssessmentQuestion.source_kind == source_kind,
            AssessmentQuestion.source_id == source_id,
        )
        .order_by(AssessmentQuestion.position, AssessmentQuestion.id)
        .all()
    )
    return [
        {
            "question_id": question.id,
            "title": question.title,
            "type": question.type,
            "weight": link.weight,
            "position": link.position,
        }
        for link, question in rows
    ]


def assignment_to_dict(db: Session, assignment: Assignment, now: datetime) -> dict:
    return {
        "id": assignment.id,
        "course_id": assignment.course_id,
        "title": assignment.title,
        "description": assignment.description,
        "due_date": assignment.due_date,
        "status": assignment.status,
        "created_by": assignment.created_by,
        "is_closed": assignment_closed(assignment.due_date, now),
        "class_ids": list_class_ids(db, SOURCE_ASSIGNMENT, assignment.id),
        "questions": list_question_links(db, SOURCE_ASSIGNMENT, assignment.id),
    }


def exam_to_dict(db: Session, exam: Exam, now: datetime) -> dict:
    return {
        "id": exam.id,
        "course_id": exam.course_id,
        "title": exam.title,
        "description": exam.description,
        "start_time": exam.start_time,
        "duration": exam.duration,
        "end_time": exam_end_time(exam.start_time, exam.duration),
        "total_score": exam.total_score,
        "created_by": exam.created_by,
        "state": exam_state(exam.start_time, exam.duration, now),
        "class_ids": list_class_ids(db, SOURCE_EXAM, exam.id),
        "questions": list_question_links(db, SOURCE_EXAM, exam.id),
    }


def delete_source(db: Session, *, source_kind: str, source_id: int, teacher_id: int) -> None:
    """
    Delete an assignment/exam together with its link rows.
    Once anyone has submitted it stays, so answer sheets never lose their source.
    """
    source = get_owned_source(db, source_kind, source_id, teacher_id)
    submitted = (
        db.query(func.count(Submission.id))
        .filter(Submission.source_kind == source_kind, Submission.source_id == source_id)
        .scalar()
    )
    if submitted:
        raise ConflictError(
            f"{source_kind} {source_id} already has {submitted} submissions and cannot be deleted"
        )

    try:
        _delete_links(db, source_kind, source_id)
        db.delete(source)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Teacher {teacher_id} deleted {source_kind} {source_id}")


def _link_totals(db: Session, source_kind: str, source_ids: List[int]) -> dict:
    if not source_ids:
        return {}
    rows = (
        db.query(
            AssessmentQuestion.source_id,
            func.count(AssessmentQuestion.id),
            func.coalesce(func.sum(AssessmentQuestion.weight), 0),
        )
        .filter(
            AssessmentQuestion.source_kind == source_kind,
            AssessmentQuestion.source_id.in_(source_ids),
        )
        .group_by(AssessmentQuestion.source_id)
        .all()
    )
    return {source_id: (count, int(total)) for source_id, count, total in rows}


def _student_source_ids(source_kind: str, student_id: int):
    # 学生所在班级收到的作业/考试
    return (
        select(AssessmentClass.source_id)
        .join(ClassEnrollment, ClassEnrollment.class_id == AssessmentClass.class_id)
        .where(
            AssessmentClass.source_kind == source_kind,
            ClassEnrollment.student_id == student_id,
        )
    )


def _assignment_summary(assignment: Assignment, totals: dict, now: datetime) -> dict:
    count, total = totals.get(assignment.id, (0, 0))
    return {
        "id": assignment.id,
        "course_id": assignment.course_id,
        "title": assignment.title,
        "due_date": assignment.due_date,
        "status": assignment.status,
        "is_closed": assignment_closed(assignment.due_date, now),
        "question_count": count,
        "total_weight": total,
    }


def _exam_summary(exam: Exam, totals: dict, now: datetime) -> dict:
    count, total = totals.get(exam.id, (0, 0))
    return {
        "id": exam.id,
        "course_id": exam.course_id,
        "title": exam.title,
        "start_time": exam.start_time,
        "duration": exam.duration,
        "end_time": exam_end_time(exam.start_time, exam.duration),
        "state": exam_state(exam.start_time, exam.duration, now),
        "question_count": count,
        "total_weight": total,
    }


def list_assignments_for_teacher(
    db: Session, *, teacher_id: int, now: datetime, course_id: int | None = None
) -> List[dict]:
    query = db.query(Assignment).filter(Assignment.created_by == teacher_id)
    if course_id is not None:
        query = query.filter(Assignment.course_id == course_id)
    assignments = query.order_by(Assignment.created_at.desc(), Assignment.id.desc()).all()
    totals = _link_totals(db, SOURCE_ASSIGNMENT, [a.id for a in assignments])
    return [_assignment_summary(a, totals, now) for a in assignments]


def list_assignments_for_student(
    db: Session, *, student_id: int, now: datetime, course_id: int | None = None
) -> List[dict]:
    """
    学生视角：只看已发布、且下发到自己班级的作业
    """
    query = db.query(Assignment).filter(
        Assignment.id.in_(_student_source_ids(SOURCE_ASSIGNMENT, student_id)),
        Assignment.status == "published",
    )
    if course_id is not None:
        query = query.filter(Assignment.course_id == course_id)
    assignments = query.order_by(Assignment.due_date, Assignment.id).all()
    totals = _link_totals(db, SOURCE_ASSIGNMENT, [a.id for a in assignments])
    return [_assignment_summary(a, totals, now) for a in assignments]


def list_exams_for_teacher(db: Session, *, teacher_id: int, now: datetime) -> List[dict]:
    exams = (
        db.query(Exam)
        .filter(Exam.created_by == teacher_id)
        .order_by(Exam.created_at.desc(), Exam.id.desc())
        .all()
    )
    totals = _link_totals(db, SOURCE_EXAM, [e.id for e in exams])
    return [_exam_summary(e, totals, now) for e in exams]


def list_exams_for_student(db: Session, *, student_id: int, now: datetime) -> List[dict]:
    exams = (
        db.query(Exam)
        .filter(Exam.id.in_(_student_source_ids(SOURCE_EXAM, student_id)))
        .order_by(Exam.start_time.desc(), Exam.id.desc())
        .all()
    )
    totals = _link_totals(db, SOURCE_EXAM, [e.id for e in exams])
    return [_exam_summary(e, totals, now) for e in exams]
