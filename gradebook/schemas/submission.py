# gradebook/schemas/submission.py
from pydantic import BaseModel, Field
from datetime import datetime


class AnswerIn(BaseModel):
    question_id: int
    content: str = ""


class SubmissionCreate(BaseModel):
    answers: list[AnswerIn] = Field(min_length=1)


class SubmitResult(BaseModel):
    submission_id: int
    score: float  # 仅客观题自动得分


class SubmissionPublic(BaseModel):
    """学生可见的答卷头信息"""
    id: int
    student_id: int
    source_kind: str
    source_id: int
    status: str  # submitted / graded
    total_score: float
    submitted_at: datetime
    graded_at: datetime | None = None
    graded_by: int | None = None

    model_config = {"from_attributes": True}


class SubmissionDetailPublic(BaseModel):
    """教师阅卷时看到的每道题"""
    detail_id: int
    question_id: int
    title: str
    content: str | None = None
    type: str
    options: list = []
    standard_answer: str | None = None
    student_answer: str | None = None
    is_correct: bool | None = None
    score: float
    max_score: int | None = None  # 链接被删时为空


class GradingHeader(BaseModel):
    id: int
    student_id: int
    student_name: str
    source_kind: str
    source_id: int
    source_title: str
    status: str
    total_score: float
    submitted_at: datetime
    graded_at: datetime | None = None


class SubmissionForGrading(BaseModel):
    submission: GradingHeader
    details: list[SubmissionDetailPublic]


class StudentSubmissionRow(BaseModel):
    """批阅名单：没交的学生 submission_* 字段为空"""
    student_id: int
    student_name: str
    student_number: str
    class_name: str
    submission_id: int | None = None
    status: str | None = None
    total_score: float | None = None
    submitted_at: datetime | None = None
