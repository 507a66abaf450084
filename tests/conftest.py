"""
Shared fixtures for the grading service tests.
Every test gets a fresh in-memory SQLite database.
"""

import os
from datetime import datetime, timedelta

# Must be set before gradebook.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GRADE_NOTIFICATIONS_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gradebook.api.deps import get_clock
from gradebook.core.security import create_access_token
from gradebook.db.base import Base
from gradebook.db.session import get_db
from gradebook.main import app
from gradebook.models.classroom import ClassEnrollment, SchoolClass
from gradebook.models.question import Question
from gradebook.models.user import User
from gradebook.schemas.assessment import AssignmentSave, ExamSave, QuestionLinkIn
from gradebook.services import assessment_service

# 测试里固定的“服务器当前时间”
NOW = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture(scope="function")
def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a test database session."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role="student", name=None, username=None):
        counter["n"] += 1
        user = User(
            username=username or f"{role[0]}{counter['n']:04d}",
            email=f"{role}{counter['n']}@test.com",
            # Pre-hashed password to avoid running bcrypt in tests
            password_hash=f"$2b$12$hashed_password_{counter['n']:03d}",
            name=name or f"Test {role.title()} {counter['n']}",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def test_teacher(make_user):
    """Create a test teacher user."""
    return make_user("teacher", name="Test Teacher")


@pytest.fixture
def other_teacher(make_user):
    return make_user("teacher", name="Other Teacher")


@pytest.fixture
def test_student(make_user):
    """Create a test student user."""
    return make_user("student", name="Test Student")


@pytest.fixture
def make_class(db_session):
    def _make(name, students=()):
        klass = SchoolClass(name=name)
        db_session.add(klass)
        db_session.flush()
        for student in students:
            db_session.add(ClassEnrollment(class_id=klass.id, student_id=student.id))
        db_session.commit()
        db_session.refresh(klass)
        return klass

    return _make


@pytest.fixture
def make_question(db_session, test_teacher):
    def _make(qtype="single_choice", answer="B", title=None, teacher=None, options=None):
        question = Question(
            created_by=(teacher or test_teacher).id,
            type=qtype,
            title=title or f"{qtype} question",
            content="Question body",
            options=options,
            answer=answer,
            difficulty="medium",
            status="active",
        )
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question

    return _make


@pytest.fixture
def make_assignment(db_session, test_teacher):
    """Assignment saved through the service, so links are built the real way."""

    def _make(links, classes=(), due_date=None, teacher=None):
        obj_in = AssignmentSave(
            title="Homework 1",
            due_date=due_date or NOW + timedelta(days=1),
            status="published",
            class_ids=[c.id for c in classes],
            questions=[QuestionLinkIn(question_id=q.id, weight=w) for q, w in links],
        )
        return assessment_service.save_assignment(
            db_session, teacher_id=(teacher or test_teacher).id, obj_in=obj_in
        )

    return _make


@pytest.fixture
def make_exam(db_session, test_teacher):
    def _make(links, classes=(), start_time=None, duration=60, teacher=None):
        obj_in = ExamSave(
            title="Midterm",
            start_time=start_time or NOW - timedelta(minutes=10),
            duration=duration,
            class_ids=[c.id for c in classes],
            questions=[QuestionLinkIn(question_id=q.id, weight=w) for q, w in links],
        )
        return assessment_service.save_exam(
            db_session, teacher_id=(teacher or test_teacher).id, obj_in=obj_in
        )

    return _make


@pytest.fixture
def mixed_assignment(make_question, make_assignment):
    """One objective item worth 10 and one essay worth 20."""
    choice = make_question("single_choice", answer="B", title="Pick one")
    essay = make_question("essay", answer="Any reasonable argument", title="Discuss")
    assignment = make_assignment([(choice, 10), (essay, 20)])
    return assignment, choice, essay


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    token = create_access_token(data={"sub": user.username})
    return {"Authorization": f"Bearer {token}"}
