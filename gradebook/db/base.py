# gradebook/db/base.py
from sqlalchemy.orm import declarative_base

Base = declarative_base()

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
