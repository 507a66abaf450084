# gradebook/api/v1/endpoints/questions.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gradebook.api.deps import to_http_exception
from gradebook.core.security import get_current_teacher
from gradebook.db.session import get_db
from gradebook.models.user import User
from gradebook.schemas.question import (
    QuestionBulkDelete,
    QuestionBulkDeleteResult,
    QuestionCreate,
    QuestionImport,
    QuestionImportResult,
    QuestionPublic,
    QuestionUpdate,
)
from gradebook.services import question_service
from gradebook.services.errors import GradingError

router = APIRouter(prefix="/questions", tags=["questions"])


@router.post("/", response_model=QuestionPublic, status_code=status.HTTP_201_CREATED)
def create_question(
    obj_in: QuestionCreate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    老师创建题目。
    """
    q = question_service.create_question(db, teacher_id=current_teacher.id, obj_in=obj_in)
    return question_service.question_to_dict(q)


@router.post("/import", response_model=QuestionImportResult, status_code=status.HTTP_201_CREATED)
def import_questions(
    payload: QuestionImport,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    批量导入题目，整批成功或整批失败。
    """
    count = question_service.import_questions(
        db, teacher_id=current_teacher.id, items=payload.questions
    )
    return QuestionImportResult(count=count)


@router.get("/mine", response_model=List[QuestionPublic])
def list_my_questions(
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
    course_id: int | None = None,
    skip: int = 0,
    limit: int = 100,
):
    """
    老师查看自己创建的题目列表（不含已归档）。
    """
    qs = question_service.list_questions_for_teacher(
        db, teacher_id=current_teacher.id, course_id=course_id, skip=skip, limit=limit
    )
    return [question_service.question_to_dict(q) for q in qs]


@router.get("/{question_id}", response_model=QuestionPublic)
def get_question(
    question_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    q = question_service.get_question(db, question_id)
    if not q:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Question not found",
        )
    return question_service.question_to_dict(q)


@router.put("/{question_id}", response_model=QuestionPublic)
def update_question(
    question_id: int,
    obj_in: QuestionUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    老师更新自己创建的题目。
    """
    q = question_service.get_question(db, question_id)
    if not q:
        raise HTTPException(status_code=404, detail="Question not found")

    try:
        q = question_service.update_question(
            db, db_obj=q, teacher_id=current_teacher.id, obj_in=obj_in
        )
    except GradingError as e:
        raise to_http_exception(e) from e
    return question_service.question_to_dict(q)


@router.post("/delete", response_model=QuestionBulkDeleteResult)
def delete_questions(
    payload: QuestionBulkDelete,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    批量删除：被作业/考试引用过的题目改为归档。
    """
    return question_service.delete_questions(
        db, ids=payload.ids, teacher_id=current_teacher.id
    )
