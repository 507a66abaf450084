# gradebook/schemas/question.py
from typing import Any, Literal

from pydantic import BaseModel, Field
from datetime import datetime

QuestionType = Literal[
    "single_choice", "multiple_choice", "true_false",
    "fill_blank", "essay", "programming",
]
Difficulty = Literal["easy", "medium", "hard"]


class QuestionBase(BaseModel):
    type: QuestionType
    title: str
    content: str | None = None
    options: list[Any] | None = None
    answer: str | None = None
    analysis: str | None = None
    difficulty: Difficulty = "medium"
    course_id: int | None = None


class QuestionCreate(QuestionBase):
    pass


class QuestionUpdate(BaseModel):
    type: QuestionType | None = None
    title: str | None = None
    content: str | None = None
    options: list[Any] | None = None
    answer: str | None = None
    analysis: str | None = None
    difficulty: Difficulty | None = None
    course_id: int | None = None


class QuestionPublic(QuestionBase):
    id: int
    created_by: int
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QuestionBulkDelete(BaseModel):
    ids: list[int] = Field(min_length=1)


class QuestionBulkDeleteResult(BaseModel):
    deleted: int
    archived: int


class QuestionImportItem(BaseModel):
    """批量导入的一道题，title 缺省时取 content 前 50 个字"""
    type: QuestionType
    content: str = Field(min_length=1)
    title: str | None = None
    options: list[Any] | None = None
    answer: str | None = None
    analysis: str | None = None
    difficulty: Difficulty = "medium"
    course_id: int | None = None


class QuestionImport(BaseModel):
    questions: list[QuestionImportItem] = Field(min_length=1)


class QuestionImportResult(BaseModel):
    success: bool = True
    count: int
