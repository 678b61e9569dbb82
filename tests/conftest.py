import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine


def _ensure_app_on_path():
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    return repo_root


_ensure_app_on_path()

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from gradebook.deps import RequestContext
from gradebook.models import (
    BankQuestion,
    OnlineExam,
    OnlineExamAnswer,
    OnlineExamAttempt,
    OnlineExamQuestion,
    School,
    Student,
    Subject,
)

# StaticPool keeps every connection on the same in-memory database
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TEACHER_ID = 501


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield
    with Session(test_engine) as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.exec(table.delete())
        session.commit()


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================

from gradebook.database import get_session
from gradebook.main import app


@pytest.fixture
def client():
    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


@pytest.fixture
def school(session):
    school = School(name="Greenfield Academy")
    session.add(school)
    session.commit()
    session.refresh(school)
    return school


@pytest.fixture
def other_school(session):
    school = School(name="Riverside High")
    session.add(school)
    session.commit()
    session.refresh(school)
    return school


@pytest.fixture
def context(school):
    return RequestContext(user_id=TEACHER_ID, school_id=school.id)


@pytest.fixture
def headers(context):
    return {"X-User-Id": str(context.user_id), "X-School-Id": str(context.school_id)}


@pytest.fixture
def subject(session, school):
    subject = Subject(school_id=school.id, name="Basic Science", code="BSC")
    session.add(subject)
    session.commit()
    session.refresh(subject)
    return subject


@pytest.fixture
def student(session, school):
    student = Student(
        school_id=school.id,
        full_name="Ada Obi",
        email="ada.obi@example.com",
        admission_no="GFA/001",
    )
    session.add(student)
    session.commit()
    session.refresh(student)
    return student


@pytest.fixture
def second_student(session, school):
    student = Student(
        school_id=school.id,
        full_name="Tunde Bello",
        email="tunde.bello@example.com",
        admission_no="GFA/002",
    )
    session.add(student)
    session.commit()
    session.refresh(student)
    return student


@pytest.fixture
def bank_questions(session, school, subject):
    """Three bank questions: multiple choice, true/false and fill-in-the-blank."""
    questions = [
        BankQuestion(
            school_id=school.id,
            subject_id=subject.id,
            created_by=TEACHER_ID,
            question_type="multiple_choice",
            question_text="Which planet is known as the red planet?",
            options=[
                {"id": "1", "text": "Venus"},
                {"id": "2", "text": "Mars"},
                {"id": "3", "text": "Jupiter"},
                {"id": "4", "text": "Saturn"},
            ],
            correct_answer="2",
            marks=2,
            difficulty="easy",
        ),
        BankQuestion(
            school_id=school.id,
            subject_id=subject.id,
            created_by=TEACHER_ID,
            question_type="true_false",
            question_text="Water boils at 100 degrees Celsius at sea level.",
            correct_answer="true",
            marks=1,
        ),
        BankQuestion(
            school_id=school.id,
            subject_id=subject.id,
            created_by=TEACHER_ID,
            question_type="fill_blank",
            question_text="The chemical symbol for gold is ____.",
            correct_answer="Au",
            marks=2,
            difficulty="hard",
        ),
    ]
    session.add_all(questions)
    session.commit()
    for q in questions:
        session.refresh(q)
    return questions


@pytest.fixture
def online_exam(session, school, subject, bank_questions):
    """A 5-mark proctored online exam built from the bank questions."""
    exam = OnlineExam(
        school_id=school.id,
        subject_id=subject.id,
        title="Science Quiz 1",
        term="Term 1",
        total_marks=5,
        proctoring_enabled=True,
        tab_switch_limit=3,
        start_time=datetime.now(timezone.utc) - timedelta(hours=1),
        end_time=datetime.now(timezone.utc) + timedelta(hours=1),
        created_by=TEACHER_ID,
    )
    session.add(exam)
    session.commit()
    session.refresh(exam)

    for order, question in enumerate(bank_questions, start=1):
        session.add(
            OnlineExamQuestion(
                online_exam_id=exam.id,
                question_id=question.id,
                question_order=order,
                marks=question.marks,
            )
        )
    session.commit()
    return exam


@pytest.fixture
def in_progress_attempt(session, online_exam, student):
    attempt = OnlineExamAttempt(
        online_exam_id=online_exam.id,
        student_id=student.id,
        started_at=datetime.now(timezone.utc) - timedelta(minutes=20),
    )
    session.add(attempt)
    session.commit()
    session.refresh(attempt)
    return attempt


@pytest.fixture
def graded_attempt(session, online_exam, student, bank_questions):
    """Submitted attempt: MC right, true/false wrong, fill-in-the-blank skipped."""
    started = datetime.now(timezone.utc) - timedelta(minutes=30)
    attempt = OnlineExamAttempt(
        online_exam_id=online_exam.id,
        student_id=student.id,
        started_at=started,
        submitted_at=started + timedelta(minutes=12),
        status="submitted",
        total_marks_obtained=2,
    )
    session.add(attempt)
    session.commit()
    session.refresh(attempt)

    mc, tf, _ = bank_questions
    session.add_all(
        [
            OnlineExamAnswer(attempt_id=attempt.id, question_id=mc.id, student_answer="2", is_correct=True, marks_obtained=2),
            OnlineExamAnswer(attempt_id=attempt.id, question_id=tf.id, student_answer="false", is_correct=False, marks_obtained=0),
        ]
    )
    session.commit()
    return attempt
