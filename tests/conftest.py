import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session


def _ensure_app_on_path():
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    return repo_root


_ensure_app_on_path()

from exam_portal.config import Settings
from exam_portal.database import create_db_and_tables, create_store_engine
from exam_portal.main import create_app
from exam_portal.models import ROLE_STUDENT, Exam, ExamAttempt, Question, User
from exam_portal.seed import ensure_admin

ADMIN_PASSWORD = "admin123"


# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret",
        admin_code="ADMIN",
        admin_password=ADMIN_PASSWORD,
        seed_sample_exams=False,
        expiry_sweep_seconds=0,
        log_level="WARNING",
    )


@pytest.fixture
def engine():
    """A fresh in-memory database per test; StaticPool shares it across sessions."""
    test_engine = create_store_engine("sqlite://")
    create_db_and_tables(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine):
    """Provide a database session for tests."""
    with Session(engine) as session:
        yield session


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================


@pytest.fixture
def app(settings, engine):
    return create_app(settings=settings, engine=engine)


@pytest.fixture
def client(app):
    """TestClient used as a context manager so startup provisioning runs."""
    with TestClient(app) as test_client:
        yield test_client


def login_headers(client, code, name=None, password=None) -> dict:
    body = {"code": code}
    if name is not None:
        body["name"] = name
    if password is not None:
        body["password"] = password
    response = client.post("/api/auth/login", json=body)
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin_headers(client):
    return login_headers(client, "ADMIN", password=ADMIN_PASSWORD)


@pytest.fixture
def student_headers(client):
    return login_headers(client, "12345678Z", name="Alice Student")


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


@pytest.fixture
def admin_user(session, settings):
    return ensure_admin(session, settings)


@pytest.fixture
def student(session):
    """Create a sample student identity."""
    user = User(code="12345678Z", name="Alice Student", role=ROLE_STUDENT)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def other_student(session):
    user = User(code="87654321X", name="Bob Student", role=ROLE_STUDENT)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


# Correct option per question position for exams built by make_exam
CORRECT_OPTIONS = [0, 1, 2, 3, 0, 1, 2, 3]


@pytest.fixture
def make_exam(session):
    """Factory creating an exam with ``question_count`` questions in natural order."""

    def _make_exam(
        question_count: int = 5,
        points_correct: float = 1.0,
        points_incorrect: float = 0.0,
        max_attempts: int = 2,
        time_limit: int = 1800,
        shuffle: bool = False,
        deadline=None,
        is_active: bool = True,
        title: str = "MCQ Quiz",
    ) -> Exam:
        exam = Exam(
            title=title,
            time_limit=time_limit,
            points_correct=points_correct,
            points_incorrect=points_incorrect,
            max_attempts=max_attempts,
            shuffle_questions=shuffle,
            deadline=deadline,
            is_active=is_active,
        )
        session.add(exam)
        session.commit()
        session.refresh(exam)
        for i in range(question_count):
            session.add(
                Question(
                    exam_id=exam.id,
                    question_text=f"MCQ Question {i + 1}?",
                    option_a="Option A",
                    option_b="Option B",
                    option_c="Option C",
                    option_d="Option D",
                    correct_option=CORRECT_OPTIONS[i % len(CORRECT_OPTIONS)],
                    explanation=f"Explanation {i + 1}",
                    order_num=i,
                )
            )
        session.commit()
        session.refresh(exam)
        return exam

    return _make_exam


def backdate_attempt(session: Session, attempt_id: int, seconds: int) -> None:
    """Move an attempt's start time into the past."""
    attempt = session.get(ExamAttempt, attempt_id)
    attempt.started_at = datetime.utcnow() - timedelta(seconds=seconds)
    session.add(attempt)
    session.commit()
