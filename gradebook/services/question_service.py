# gradebook/services/question_service.py
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from gradebook.models.assessment import AssessmentQuestion
from gradebook.models.question import Question
from gradebook.models.submission import STATUS_GRADED, Submission, SubmissionDetail
from gradebook.schemas.question import QuestionCreate, QuestionImportItem, QuestionUpdate
from gradebook.services.errors import ConflictError, PermissionDeniedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceAnswer:
    question_id: int
    type: str
    reference_answer: str | None
    weight: int


def parse_options(raw: str | None) -> list:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning(f"Unparsable question options, treating as empty: {raw[:50]!r}")
        return []
    return parsed if isinstance(parsed, list) else []


def question_to_dict(question: Question) -> dict:
    return {
        "id": question.id,
        "type": question.type,
        "title": question.title,
        "content": question.content,
        "options": parse_options(question.options),
        "answer": question.answer,
        "analysis": question.analysis,
        "difficulty": question.difficulty,
        "course_id": question.course_id,
        "created_by": question.created_by,
        "status": question.status,
        "created_at": question.created_at,
        "updated_at": question.updated_at,
    }


def _link_count(db: Session, question_id: int) -> int:
    return (
        db.query(func.count(AssessmentQuestion.id))
        .filter(AssessmentQuestion.question_id == question_id)
        .scalar()
    )


def _answer_count(db: Session, question_id: int) -> int:
    # 链接会被整体替换，答卷明细才是永久引用
    return (
        db.query(func.count(SubmissionDetail.id))
        .filter(SubmissionDetail.question_id == question_id)
        .scalar()
    )


def _graded_reference_count(db: Session, question_id: int) -> int:
    return (
        db.query(func.count(SubmissionDetail.id))
        .join(Submission, Submission.id == SubmissionDetail.submission_id)
        .filter(
            SubmissionDetail.question_id == question_id,
            Submission.status == STATUS_GRADED,
        )
        .scalar()
    )


def create_question(
    db: Session,
    *,
    teacher_id: int,
    obj_in: QuestionCreate,
) -> Question:
    """
    teacher create question
    """
    db_obj = Question(
        created_by=teacher_id,
        course_id=obj_in.course_id,
        type=obj_in.type,
        title=obj_in.title,
        content=obj_in.content,
        options=json.dumps(obj_in.options) if obj_in.options is not None else None,
        answer=obj_in.answer,
        analysis=obj_in.analysis,
        difficulty=obj_in.difficulty,
        status="active",
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def import_questions(
    db: Session,
    *,
    teacher_id: int,
    items: List[QuestionImportItem],
) -> int:
    """
    批量导入题目，一个事务：任何一道失败整批都不入库
    """
    try:
        for item in items:
            db.add(
                Question(
                    created_by=teacher_id,
                    course_id=item.course_id,
                    type=item.type,
                    title=item.title or item.content[:50],
                    content=item.content,
                    options=json.dumps(item.options) if item.options is not None else None,
                    answer=item.answer or "",
                    analysis=item.analysis,
                    difficulty=item.difficulty,
                    status="active",
                )
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Teacher {teacher_id} imported {len(items)} questions")
    return len(items)


def get_question(db: Session, question_id: int) -> Optional[Question]:
    return db.get(Question, question_id)


def list_questions_for_teacher(
    db: Session,
    *,
    teacher_id: int,
    course_id: int | None = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Question]:
    """
    question list created by some teacher, archived ones hidden
    """
    query = db.query(Question).filter(
        Question.created_by == teacher_id,
        Question.status == "active",
    )
    if course_id is not None:
        query = query.filter(Question.course_id == course_id)
    return (
        query.order_by(Question.created_at.desc(), Question.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def update_question(
    db: Session,
    *,
    db_obj: Question,
    teacher_id: int,
    obj_in: QuestionUpdate,
) -> Question:
    """
    teacher update question
    """
    if db_obj.created_by != teacher_id:
        raise PermissionDeniedError(f"question {db_obj.id} belongs to another teacher")
    # 已批改答卷引用过的题目不能再改，否则标准答案和批改结果对不上
    if _graded_reference_count(db, db_obj.id):
        raise ConflictError(
            f"question {db_obj.id} is referenced by graded submissions and cannot be edited"
        )

    update_data = obj_in.model_dump(exclude_unset=True)
    if "options" in update_data:
        options = update_data.pop("options")
        db_obj.options = json.dumps(options) if options is not None else None
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_questions(db: Session, *, ids: List[int], teacher_id: int) -> dict:
    """
    Delete the teacher's questions. A question still referenced by any
    assignment/exam link or by any submitted answer is archived instead,
    so answer sheets keep pointing at a real row.
    """
    results = {"deleted": 0, "archived": 0}
    try:
        questions = (
            db.query(Question)
            .filter(Question.id.in_(ids), Question.created_by == teacher_id)
            .all()
        )
        for question in questions:
            if _link_count(db, question.id) or _answer_count(db, question.id):
                question.status = "archived"
                results["archived"] += 1
            else:
                db.delete(question)
                results["deleted"] += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Teacher {teacher_id} removed questions {ids}: "
        f"deleted={results['deleted']}, archived={results['archived']}"
    )
    return results


def resolve_reference_answers(
    db: Session,
    *,
    source_kind: str,
    source_id: int,
) -> List[ReferenceAnswer]:
    """
    Join link rows with questions for one assignment/exam, returning only
    what the grader needs. Archived questions still resolve.
    """
    rows = (
        db.query(
            Question.id,
            Question.type,
            Question.answer,
            AssessmentQuestion.weight,
        )
        .join(AssessmentQuestion, AssessmentQuestion.question_id == Question.id)
        .filter(
            AssessmentQuestion.source_kind == source_kind,
            AssessmentQuestion.source_id == source_id,
        )
        .order_by(AssessmentQuestion.position, AssessmentQuestion.id)
        .all()
    )
    return [
        ReferenceAnswer(
            question_id=row[0],
            type=row[1],
            reference_answer=row[2],
            weight=row[3] or 0,
        )
        for row in rows
    ]

