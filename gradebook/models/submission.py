# gradebook/models/submission.py
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gradebook.db.base import Base

# 没有“未提交”状态：没交就是没有这一行
STATUS_SUBMITTED = "submitted"
STATUS_GRADED = "graded"


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        # 同一学生对同一作业/考试只能有一份答卷，并发提交靠这个约束兜底
        UniqueConstraint(
            "student_id", "source_id", "source_kind",
            name="uq_submission_student_source",
        ),
        Index("ix_submissions_source", "source_kind", "source_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    source_kind = Column(String(20), nullable=False)  # assignment / exam
    source_id = Column(Integer, nullable=False)

    # 状态：submitted / graded
    status = Column(String(20), nullable=False, default=STATUS_SUBMITTED, index=True)
    total_score = Column(Numeric(8, 2), nullable=False, default=Decimal("0.00"))
    submitted_at = Column(DateTime, nullable=False)

    # 老师评分
    graded_at = Column(DateTime, nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    details = relationship(
        "SubmissionDetail",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionDetail.id",
    )


class SubmissionDetail(Base):
    __tablename__ = "submission_details"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)

    student_answer = Column(Text, nullable=True)
    # 只有客观题有意义，主观题保持 NULL
    is_correct = Column(Boolean, nullable=True)
    score = Column(Numeric(8, 2), nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    submission = relationship("Submission", back_populates="details")
