"""
Notification Tasks for Worker
These tasks are executed by RQ workers after a grading batch commits
"""

import logging
from typing import Callable

from sqlalchemy.orm import Session

from gradebook.db.session import SessionLocal
from gradebook.models.submission import Submission

logger = logging.getLogger(__name__)


def grade_released_task(
    submission_id: int,
    session_factory: Callable[[], Session] = SessionLocal,
) -> dict:
    """
    Worker task announcing that a submission has been graded.

    This task:
    1. Creates a database session
    2. Loads the graded submission header
    3. Returns a summary for the job result

    Args:
        submission_id: ID of the graded submission
        session_factory: Session maker, overridable in tests

    Returns:
        Dictionary with the released grade
    """
    db = session_factory()
    try:
        logger.info(f"Starting grade release task for submission {submission_id}")

        submission = db.get(Submission, submission_id)
        if submission is None:
            logger.error(f"Grade release failed: submission {submission_id} not found")
            return {
                "status": "error",
                "submission_id": submission_id,
                "error": "submission not found",
                "message": f"Submission {submission_id} not found",
            }

        result = {
            "status": "success",
            "submission_id": submission.id,
            "student_id": submission.student_id,
            "source_kind": submission.source_kind,
            "source_id": submission.source_id,
            "total_score": float(submission.total_score),
            "message": (
                f"Your {submission.source_kind} has been graded: "
                f"{submission.total_score} points"
            ),
        }

        logger.info(
            f"Completed grade release task for submission {submission_id}: "
            f"student={submission.student_id}, total={submission.total_score}"
        )
        return result

    except Exception as e:
        logger.error(
            f"Unexpected error during grade release for submission {submission_id}: {e}",
            exc_info=True
        )
        raise

    finally:
        db.close()
