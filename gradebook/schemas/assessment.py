# gradebook/schemas/assessment.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SourceKind = Literal["assignment", "exam"]


class QuestionLinkIn(BaseModel):
    question_id: int
    weight: int = Field(default=1, ge=0)
    position: int | None = None


class QuestionLinkPublic(BaseModel):
    question_id: int
    title: str
    type: str
    weight: int
    position: int | None = None


class AssignmentSave(BaseModel):
    course_id: int | None = None
    title: str = Field(min_length=1)
    description: str | None = None
    due_date: datetime
    status: Literal["draft", "published", "closed"] = "draft"
    class_ids: list[int] = []
    questions: list[QuestionLinkIn] = []


class AssignmentPublic(BaseModel):
    id: int
    course_id: int | None = None
    title: str
    description: str | None = None
    due_date: datetime
    status: str
    created_by: int
    is_closed: bool
    class_ids: list[int]
    questions: list[QuestionLinkPublic]


class ExamSave(BaseModel):
    course_id: int | None = None
    title: str = Field(min_length=1)
    description: str | None = None
    start_time: datetime
    duration: int = Field(ge=1)  # 考试时长至少 1 分钟
    total_score: int = 100
    class_ids: list[int] = []
    questions: list[QuestionLinkIn] = []


class ExamPublic(BaseModel):
    id: int
    course_id: int | None = None
    title: str
    description: str | None = None
    start_time: datetime
    duration: int
    end_time: datetime
    total_score: int
    created_by: int
    state: Literal["not_started", "in_progress", "ended"]
    class_ids: list[int]
    questions: list[QuestionLinkPublic]


class SavedId(BaseModel):
    id: int


class AssignmentSummary(BaseModel):
    """作业列表里的一行"""
    id: int
    course_id: int | None = None
    title: str
    due_date: datetime
    status: str
    is_closed: bool
    question_count: int
    total_weight: int


class ExamSummary(BaseModel):
    id: int
    course_id: int | None = None
    title: str
    start_time: datetime
    duration: int
    end_time: datetime
    state: Literal["not_started", "in_progress", "ended"]
    question_count: int
    total_weight: int


class DeleteResult(BaseModel):
    success: bool = True
