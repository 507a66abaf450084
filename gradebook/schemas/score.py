# gradebook/schemas/score.py
from decimal import Decimal

from pydantic import BaseModel, Field


class GradeItem(BaseModel):
    detail_id: int
    # 不按题目分值封顶：允许老师给附加分
    score: Decimal = Field(max_digits=8, decimal_places=2)


class GradesUpdate(BaseModel):
    """教师提交评分"""
    # 空列表表示只确认客观题分数
    grades: list[GradeItem] = []


class GradesResult(BaseModel):
    success: bool = True
    new_total_score: float


class SourceStats(BaseModel):
    """看板统计"""
    submitted: int
    graded: int
    pending: int
    total_students: int
