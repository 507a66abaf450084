# gradebook/models/question.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from gradebook.db.base import Base

# 客观题：系统自动判分
OBJECTIVE_TYPES = ("single_choice", "multiple_choice", "true_false")
# 主观题：必须老师批改
SUBJECTIVE_TYPES = ("fill_blank", "essay", "programming")
QUESTION_TYPES = OBJECTIVE_TYPES + SUBJECTIVE_TYPES

DIFFICULTIES = ("easy", "medium", "hard")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, nullable=True, index=True)

    type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    options = Column(Text, nullable=True)  # JSON 字符串
    answer = Column(Text, nullable=True)
    analysis = Column(Text, nullable=True)
    difficulty = Column(String(10), nullable=False, default="medium")

    # 被作业/考试引用过的题目只归档，不物理删除
    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
