# gradebook/models/assessment.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.sql import func
from gradebook.db.base import Base

SOURCE_ASSIGNMENT = "assignment"
SOURCE_EXAM = "exam"
SOURCE_KINDS = (SOURCE_ASSIGNMENT, SOURCE_EXAM)


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # naive UTC
    due_date = Column(DateTime, nullable=False)
    # draft / published / closed
    status = Column(String(20), nullable=False, default="draft")

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # 考试状态不落库，由 start_time + duration 实时推算
    start_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # 分钟
    total_score = Column(Integer, nullable=False, default=100)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class AssessmentQuestion(Base):
    """
    Link row: binds a question to one assignment or exam with the weight
    it carries *there*. Saving the source replaces the whole set.
    """
    __tablename__ = "assessment_questions"
    __table_args__ = (
        Index("ix_assessment_questions_source", "source_kind", "source_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    source_kind = Column(String(20), nullable=False)
    source_id = Column(Integer, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)

    weight = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AssessmentClass(Base):
    """作业/考试下发到哪些班级"""
    __tablename__ = "assessment_classes"
    __table_args__ = (
        Index("ix_assessment_classes_source", "source_kind", "source_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    source_kind = Column(String(20), nullable=False)
    source_id = Column(Integer, nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
