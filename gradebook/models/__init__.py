# gradebook/models/__init__.py
# 导入 Base 会顺带注册所有表
from gradebook.db.base import Base  # noqa
from gradebook.models.user import User  # noqa
from gradebook.models.classroom import SchoolClass, ClassEnrollment  # noqa
from gradebook.models.question import Question  # noqa
from gradebook.models.assessment import (  # noqa
    Assignment,
    Exam,
    AssessmentQuestion,
    AssessmentClass,
)
from gradebook.models.submission import Submission, SubmissionDetail  # noqa
