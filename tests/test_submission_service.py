"""
Submission tests: one transaction per hand-in, auto-grading on the way in,
deadline and uniqueness enforced by the server.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from gradebook.models.assessment import SOURCE_ASSIGNMENT, SOURCE_EXAM
from gradebook.models.submission import STATUS_SUBMITTED, Submission, SubmissionDetail
from gradebook.schemas.submission import AnswerIn
from gradebook.services import submission_service
from gradebook.services.auto_grader import grade_item
from gradebook.services.errors import (
    AlreadySubmittedError,
    DeadlineError,
    SourceNotFoundError,
    SubmissionValidationError,
)
from tests.conftest import NOW


def _answers(*pairs):
    return [AnswerIn(question_id=qid, content=content) for qid, content in pairs]


def _submission_count(db_session):
    return db_session.query(Submission).count()


class TestSubmitAssignment:
    def test_objective_item_graded_on_submit(self, db_session, test_student, mixed_assignment):
        assignment, choice, essay = mixed_assignment

        sub = submission_service.submit_assignment(
            db_session,
            student_id=test_student.id,
            assignment_id=assignment.id,
            answers=_answers((choice.id, " b "), (essay.id, "My essay")),
            now=NOW,
        )

        assert sub.status == STATUS_SUBMITTED
        assert sub.total_score == Decimal("10.00")
        assert sub.submitted_at == NOW
        assert sub.graded_at is None

        by_question = {d.question_id: d for d in sub.details}
        assert by_question[choice.id].is_correct is True
        assert by_question[choice.id].score == Decimal("10.00")
        assert by_question[essay.id].is_correct is None
        assert by_question[essay.id].score == Decimal("0")
        assert by_question[essay.id].student_answer == "My essay"

    def test_total_equals_sum_of_details(self, db_session, test_student, make_question, make_assignment):
        q1 = make_question("single_choice", answer="A")
        q2 = make_question("true_false", answer="TRUE")
        q3 = make_question("multiple_choice", answer="ACD")
        assignment = make_assignment([(q1, 4), (q2, 3), (q3, 8)])

        sub = submission_service.submit_assignment(
            db_session,
            student_id=test_student.id,
            assignment_id=assignment.id,
            answers=_answers((q1.id, "a"), (q2.id, "false"), (q3.id, "acd")),
            now=NOW,
        )

        detail_sum = sum(d.score for d in sub.details)
        assert sub.total_score == detail_sum == Decimal("12.00")

    def test_accepted_one_second_before_due(self, db_session, test_student, mixed_assignment):
        assignment, choice, _ = mixed_assignment
        sub = submission_service.submit_assignment(
            db_session,
            student_id=test_student.id,
            assignment_id=assignment.id,
            answers=_answers((choice.id, "B")),
            now=assignment.due_date - timedelta(seconds=1),
        )
        assert sub.id is not None

    def test_rejected_one_second_after_due(self, db_session, test_student, mixed_assignment):
        """A late hand-in raises and leaves no header behind."""
        assignment, choice, _ = mixed_assignment

        with pytest.raises(DeadlineError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=_answers((choice.id, "B")),
                now=assignment.due_date + timedelta(seconds=1),
            )

        assert submission_service.get_submission_status(
            db_session,
            student_id=test_student.id,
            source_kind=SOURCE_ASSIGNMENT,
            source_id=assignment.id,
        ) is None

    def test_second_submission_is_rejected(self, db_session, test_student, mixed_assignment):
        assignment, choice, _ = mixed_assignment
        submission_service.submit_assignment(
            db_session,
            student_id=test_student.id,
            assignment_id=assignment.id,
            answers=_answers((choice.id, "B")),
            now=NOW,
        )

        with pytest.raises(AlreadySubmittedError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=_answers((choice.id, "A")),
                now=NOW,
            )

        assert _submission_count(db_session) == 1
        kept = db_session.query(Submission).one()
        assert kept.total_score == Decimal("10.00"), "first submission must be untouched"

    def test_unique_constraint_catches_race(self, db_session, test_student, mixed_assignment, monkeypatch):
        """
        Two requests that both pass the existence check: the unique
        constraint turns the loser into AlreadySubmittedError.
        """
        assignment, choice, _ = mixed_assignment
        db_session.add(
            Submission(
                student_id=test_student.id,
                source_kind=SOURCE_ASSIGNMENT,
                source_id=assignment.id,
                status=STATUS_SUBMITTED,
                total_score=Decimal("0"),
                submitted_at=NOW,
            )
        )
        db_session.commit()
        monkeypatch.setattr(submission_service, "get_submission_status", lambda db, **kw: None)

        with pytest.raises(AlreadySubmittedError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=_answers((choice.id, "B")),
                now=NOW,
            )

        assert _submission_count(db_session) == 1
        assert db_session.query(SubmissionDetail).count() == 0

    def test_failure_mid_transaction_rolls_back(self, db_session, test_student, mixed_assignment, monkeypatch):
        assignment, choice, essay = mixed_assignment
        calls = {"n": 0}

        def flaky_grade_item(*args):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("grader blew up")
            return grade_item(*args)

        monkeypatch.setattr(submission_service, "grade_item", flaky_grade_item)

        with pytest.raises(RuntimeError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=_answers((choice.id, "B"), (essay.id, "text")),
                now=NOW,
            )

        assert _submission_count(db_session) == 0
        assert db_session.query(SubmissionDetail).count() == 0

    def test_answer_to_unlinked_question_is_dropped(self, db_session, test_student, mixed_assignment, make_question):
        assignment, choice, _ = mixed_assignment
        stray = make_question("single_choice", answer="A", title="Not on this assignment")

        sub = submission_service.submit_assignment(
            db_session,
            student_id=test_student.id,
            assignment_id=assignment.id,
            answers=_answers((choice.id, "B"), (stray.id, "A")),
            now=NOW,
        )

        assert [d.question_id for d in sub.details] == [choice.id]
        assert sub.total_score == Decimal("10.00")

    def test_missing_assignment(self, db_session, test_student):
        with pytest.raises(SourceNotFoundError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=999,
                answers=_answers((1, "A")),
                now=NOW,
            )

    def test_assignment_without_questions(self, db_session, test_student, make_assignment):
        assignment = make_assignment([])
        with pytest.raises(SourceNotFoundError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=_answers((1, "A")),
                now=NOW,
            )
        assert _submission_count(db_session) == 0

    def test_empty_answer_set(self, db_session, test_student, mixed_assignment):
        assignment, _, _ = mixed_assignment
        with pytest.raises(SubmissionValidationError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=[],
                now=NOW,
            )

    def test_same_question_answered_twice(self, db_session, test_student, mixed_assignment):
        assignment, choice, _ = mixed_assignment
        with pytest.raises(SubmissionValidationError):
            submission_service.submit_assignment(
                db_session,
                student_id=test_student.id,
                assignment_id=assignment.id,
                answers=_answers((choice.id, "A"), (choice.id, "B")),
                now=NOW,
            )
        assert _submission_count(db_session) == 0

    def test_unknown_source_kind(self, db_session, test_student):
        with pytest.raises(SubmissionValidationError):
            submission_service.submit(
                db_session,
                student_id=test_student.id,
                source_kind="quiz",
                source_id=1,
                answers=_answers((1, "A")),
                now=NOW,
            )


class TestSubmitExam:
    """Exams only accept hand-ins while the window is open."""

    @pytest.fixture
    def exam(self, make_question, make_exam):
        choice = make_question("single_choice", answer="D")
        return make_exam([(choice, 5)], start_time=NOW, duration=60), choice

    def test_before_start_is_rejected(self, db_session, test_student, exam):
        exam, choice = exam
        with pytest.raises(DeadlineError):
            submission_service.submit_exam(
                db_session,
                student_id=test_student.id,
                exam_id=exam.id,
                answers=_answers((choice.id, "D")),
                now=NOW - timedelta(minutes=1),
            )
        assert _submission_count(db_session) == 0

    def test_in_progress_is_accepted(self, db_session, test_student, exam):
        exam, choice = exam
        sub = submission_service.submit_exam(
            db_session,
            student_id=test_student.id,
            exam_id=exam.id,
            answers=_answers((choice.id, "d")),
            now=NOW + timedelta(minutes=30),
        )
        assert sub.source_kind == SOURCE_EXAM
        assert sub.total_score == Decimal("5.00")

    def test_at_end_instant_is_accepted(self, db_session, test_student, exam):
        exam, choice = exam
        sub = submission_service.submit_exam(
            db_session,
            student_id=test_student.id,
            exam_id=exam.id,
            answers=_answers((choice.id, "A")),
            now=NOW + timedelta(minutes=60),
        )
        assert sub.total_score == Decimal("0")

    def test_after_end_is_rejected(self, db_session, test_student, exam):
        exam, choice = exam
        with pytest.raises(DeadlineError):
            submission_service.submit_exam(
                db_session,
                student_id=test_student.id,
                exam_id=exam.id,
                answers=_answers((choice.id, "D")),
                now=NOW + timedelta(minutes=61),
            )
        assert _submission_count(db_session) == 0

    def test_exam_and_assignment_ids_do_not_collide(
        self, db_session, test_student, exam, make_assignment
    ):
        """Same numeric id under a different source kind is a separate hand-in."""
        exam, choice = exam
        assignment = make_assignment([(choice, 5)])
        assert assignment.id == exam.id

        submission_service.submit_exam(
            db_session, student_id=test_student.id, exam_id=exam.id,
            answers=_answers((choice.id, "D")), now=NOW,
        )
        submission_service.submit_assignment(
            db_session, student_id=test_student.id, assignment_id=assignment.id,
            answers=_answers((choice.id, "D")), now=NOW,
        )
        assert _submission_count(db_session) == 2
