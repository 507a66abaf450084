"""
Assignment/exam save tests: header and links are written in one go,
links are replaced wholesale on every save.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gradebook.models.assessment import (
    SOURCE_ASSIGNMENT,
    SOURCE_EXAM,
    AssessmentClass,
    AssessmentQuestion,
    Assignment,
    Exam,
)
from gradebook.schemas.assessment import AssignmentSave, ExamSave, QuestionLinkIn
from gradebook.schemas.submission import AnswerIn
from gradebook.services import assessment_service, submission_service
from gradebook.services.errors import ConflictError, NotFoundError, PermissionDeniedError
from gradebook.services.time_window import ENDED, IN_PROGRESS, NOT_STARTED
from tests.conftest import NOW


def _assignment_payload(questions, class_ids=(), title="Homework 1"):
    return AssignmentSave(
        title=title,
        due_date=NOW + timedelta(days=3),
        class_ids=list(class_ids),
        questions=[QuestionLinkIn(question_id=q.id, weight=w) for q, w in questions],
    )


class TestSaveAssignment:
    def test_update_replaces_links(self, db_session, test_teacher, make_question, make_class, make_assignment):
        q1, q2, q3 = make_question(), make_question(), make_question()
        class_a, class_b = make_class("Class A"), make_class("Class B")
        assignment = make_assignment([(q1, 5), (q2, 5)], classes=[class_a])

        assessment_service.save_assignment(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=_assignment_payload([(q3, 7)], class_ids=[class_b.id], title="Renamed"),
            assignment_id=assignment.id,
        )

        view = assessment_service.assignment_to_dict(db_session, assignment, NOW)
        assert view["title"] == "Renamed"
        assert view["class_ids"] == [class_b.id]
        assert [(q["question_id"], q["weight"]) for q in view["questions"]] == [(q3.id, 7)]
        assert db_session.query(AssessmentQuestion).count() == 1
        assert db_session.query(AssessmentClass).count() == 1

    def test_unknown_question_writes_nothing(self, db_session, test_teacher, make_question):
        question = make_question()

        with pytest.raises(NotFoundError):
            assessment_service.save_assignment(
                db_session,
                teacher_id=test_teacher.id,
                obj_in=AssignmentSave(
                    title="Broken",
                    due_date=NOW,
                    questions=[
                        QuestionLinkIn(question_id=question.id),
                        QuestionLinkIn(question_id=9999),
                    ],
                ),
            )

        assert db_session.query(Assignment).count() == 0
        assert db_session.query(AssessmentQuestion).count() == 0

    def test_other_teacher_cannot_update(self, db_session, other_teacher, make_question, make_assignment):
        question = make_question()
        assignment = make_assignment([(question, 5)])

        with pytest.raises(PermissionDeniedError):
            assessment_service.save_assignment(
                db_session,
                teacher_id=other_teacher.id,
                obj_in=_assignment_payload([]),
                assignment_id=assignment.id,
            )

        assert len(assessment_service.list_question_links(db_session, SOURCE_ASSIGNMENT, assignment.id)) == 1

    def test_update_missing_assignment(self, db_session, test_teacher):
        with pytest.raises(NotFoundError):
            assessment_service.save_assignment(
                db_session,
                teacher_id=test_teacher.id,
                obj_in=_assignment_payload([]),
                assignment_id=123,
            )

    def test_aware_due_date_stored_as_utc(self, db_session, test_teacher):
        due = datetime(2026, 3, 5, 20, 0, 0, tzinfo=timezone(timedelta(hours=8)))
        assignment = assessment_service.save_assignment(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=AssignmentSave(title="Tz", due_date=due),
        )
        assert assignment.due_date == datetime(2026, 3, 5, 12, 0, 0)

    def test_is_closed_flag(self, db_session, make_question, make_assignment):
        assignment = make_assignment([(make_question(), 1)], due_date=NOW)
        assert assessment_service.assignment_to_dict(db_session, assignment, NOW)["is_closed"] is False
        later = NOW + timedelta(seconds=1)
        assert assessment_service.assignment_to_dict(db_session, assignment, later)["is_closed"] is True


class TestSaveExam:
    def test_create_and_state(self, db_session, test_teacher, make_question):
        question = make_question()
        exam = assessment_service.save_exam(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=ExamSave(
                title="Final",
                start_time=NOW,
                duration=90,
                questions=[QuestionLinkIn(question_id=question.id, weight=50)],
            ),
        )

        before = assessment_service.exam_to_dict(db_session, exam, NOW - timedelta(minutes=1))
        during = assessment_service.exam_to_dict(db_session, exam, NOW + timedelta(minutes=45))

        assert before["state"] == NOT_STARTED
        assert during["state"] == IN_PROGRESS
        assert during["end_time"] == NOW + timedelta(minutes=90)
        assert during["questions"][0]["weight"] == 50

    def test_links_do_not_leak_across_kinds(self, db_session, make_question, make_assignment, make_exam):
        q1, q2 = make_question(), make_question()
        assignment = make_assignment([(q1, 1)])
        exam = make_exam([(q2, 1)])
        assert assignment.id == exam.id

        exam_links = assessment_service.list_question_links(db_session, SOURCE_EXAM, exam.id)
        assert [link["question_id"] for link in exam_links] == [q2.id]


class TestLinkValidation:
    def test_duplicate_question_keeps_first_weight(self, db_session, test_teacher, make_question):
        q1, q2 = make_question(), make_question()
        assignment = assessment_service.save_assignment(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=_assignment_payload([(q1, 5), (q2, 3), (q1, 40)]),
        )

        links = assessment_service.list_question_links(db_session, SOURCE_ASSIGNMENT, assignment.id)
        assert [(link["question_id"], link["weight"]) for link in links] == [(q1.id, 5), (q2.id, 3)]

    def test_duplicate_class_linked_once(self, db_session, test_teacher, make_question, make_class):
        klass = make_class("Class A")
        assignment = assessment_service.save_assignment(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=_assignment_payload([(make_question(), 1)], class_ids=[klass.id, klass.id]),
        )
        assert assessment_service.list_class_ids(db_session, SOURCE_ASSIGNMENT, assignment.id) == [klass.id]

    def test_unknown_class_writes_nothing(self, db_session, test_teacher, make_question, make_class):
        klass = make_class("Class A")

        with pytest.raises(NotFoundError):
            assessment_service.save_exam(
                db_session,
                teacher_id=test_teacher.id,
                obj_in=ExamSave(
                    title="Quiz",
                    start_time=NOW,
                    duration=30,
                    class_ids=[klass.id, 777],
                    questions=[QuestionLinkIn(question_id=make_question().id)],
                ),
            )

        assert db_session.query(Exam).count() == 0
        assert db_session.query(AssessmentClass).count() == 0


class TestDeleteSource:
    def test_delete_without_submissions(self, db_session, test_teacher, make_question, make_class, make_assignment):
        assignment = make_assignment([(make_question(), 5)], classes=[make_class("Class A")])
        assignment_id = assignment.id

        assessment_service.delete_source(
            db_session, source_kind=SOURCE_ASSIGNMENT, source_id=assignment_id, teacher_id=test_teacher.id
        )

        assert db_session.get(Assignment, assignment_id) is None
        assert db_session.query(AssessmentQuestion).count() == 0
        assert db_session.query(AssessmentClass).count() == 0

    def test_refused_once_submitted(self, db_session, test_teacher, test_student, make_question, make_assignment):
        question = make_question()
        assignment = make_assignment([(question, 5)])
        submission_service.submit_assignment(
            db_session,
            student_id=test_student.id,
            assignment_id=assignment.id,
            answers=[AnswerIn(question_id=question.id, content="B")],
            now=NOW,
        )

        with pytest.raises(ConflictError):
            assessment_service.delete_source(
                db_session, source_kind=SOURCE_ASSIGNMENT, source_id=assignment.id, teacher_id=test_teacher.id
            )
        assert db_session.get(Assignment, assignment.id) is not None
        assert len(assessment_service.list_question_links(db_session, SOURCE_ASSIGNMENT, assignment.id)) == 1

    def test_other_teacher_cannot_delete(self, db_session, other_teacher, make_question, make_exam):
        exam = make_exam([(make_question(), 5)])

        with pytest.raises(PermissionDeniedError):
            assessment_service.delete_source(
                db_session, source_kind=SOURCE_EXAM, source_id=exam.id, teacher_id=other_teacher.id
            )
        assert db_session.get(Exam, exam.id) is not None


class TestListings:
    def test_student_sees_published_in_own_classes(
        self, db_session, test_teacher, test_student, make_question, make_class, make_assignment
    ):
        mine = make_class("Class A", [test_student])
        other = make_class("Class B")
        question = make_question()
        visible = make_assignment([(question, 4), (make_question(), 6)], classes=[mine])
        make_assignment([(question, 1)], classes=[other])
        assessment_service.save_assignment(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=_assignment_payload([(question, 1)], class_ids=[mine.id], title="Draft"),
        )

        rows = assessment_service.list_assignments_for_student(
            db_session, student_id=test_student.id, now=NOW
        )

        assert [row["id"] for row in rows] == [visible.id]
        assert rows[0]["question_count"] == 2
        assert rows[0]["total_weight"] == 10
        assert rows[0]["is_closed"] is False

    def test_teacher_sees_own_including_drafts(
        self, db_session, test_teacher, other_teacher, make_question, make_assignment
    ):
        question = make_question()
        published = make_assignment([(question, 1)])
        draft = assessment_service.save_assignment(
            db_session,
            teacher_id=test_teacher.id,
            obj_in=_assignment_payload([], title="Draft"),
        )
        make_assignment([(question, 1)], teacher=other_teacher)

        rows = assessment_service.list_assignments_for_teacher(
            db_session, teacher_id=test_teacher.id, now=NOW
        )

        assert sorted(row["id"] for row in rows) == sorted([published.id, draft.id])
        by_id = {row["id"]: row for row in rows}
        assert by_id[draft.id]["status"] == "draft"
        assert by_id[draft.id]["question_count"] == 0

    def test_exams_carry_state(self, db_session, test_student, make_question, make_class, make_exam):
        klass = make_class("Class A", [test_student])
        question = make_question()
        running = make_exam([(question, 5)], classes=[klass])
        upcoming = make_exam([(question, 5)], classes=[klass], start_time=NOW + timedelta(hours=1))
        finished = make_exam([(question, 5)], classes=[klass], start_time=NOW - timedelta(days=1))
        make_exam([(question, 5)])

        rows = assessment_service.list_exams_for_student(db_session, student_id=test_student.id, now=NOW)

        assert [row["id"] for row in rows] == [upcoming.id, running.id, finished.id]
        states = {row["id"]: row["state"] for row in rows}
        assert states == {upcoming.id: NOT_STARTED, running.id: IN_PROGRESS, finished.id: ENDED}

    def test_teacher_exam_listing(self, db_session, test_teacher, other_teacher, make_question, make_exam):
        question = make_question()
        exam = make_exam([(question, 5)])
        make_exam([(question, 5)], teacher=other_teacher)

        rows = assessment_service.list_exams_for_teacher(db_session, teacher_id=test_teacher.id, now=NOW)

        assert [row["id"] for row in rows] == [exam.id]
        assert rows[0]["end_time"] == exam.start_time + timedelta(minutes=60)
