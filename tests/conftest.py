"""
Exam Portal - Test Configuration and Fixtures
"""
import os
import uuid
from datetime import timedelta
from typing import Generator

import pytest

# Set testing environment before the app reads its settings
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_USE_REDIS'] = 'false'
os.environ['RATE_LIMIT_PER_MINUTE'] = '100000'
os.environ['RATE_LIMIT_PER_HOUR'] = '1000000'
os.environ['LOG_LEVEL'] = 'WARNING'

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.main import app
from app.database import Base, SessionLocal, engine, get_db
from app.models import Exam, Question
from app.services.eligibility import utcnow
from app.utils.auth import Role, create_access_token


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Fresh schema and session for each test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Test client; every request gets its own session on the test database"""
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
    
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def student_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a role, optionally for a given user"""
    def _headers(role: Role, user_id: uuid.UUID = None) -> dict:
        token = create_access_token(user_id or uuid.uuid4(), role)
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def student_headers(auth_headers, student_id) -> dict:
    return auth_headers(Role.STUDENT, student_id)


@pytest.fixture
def make_exam(db_session: Session):
    """
    Create an exam whose window is given in minutes relative to now.
    Defaults to an active exam that opened 10 minutes ago for an hour.
    """
    def _make_exam(
        start_offset: int = -10,
        end_offset: int = 50,
        duration: int = 60,
        is_active: bool = True,
        name: str = 'Sample Math Exam',
    ) -> Exam:
        now = utcnow()
        exam = Exam(
            exam_name=name,
            start_time=now + timedelta(minutes=start_offset),
            end_time=now + timedelta(minutes=end_offset),
            duration=duration,
            is_active=is_active,
            created_by=uuid.uuid4(),
        )
        db_session.add(exam)
        db_session.commit()
        db_session.refresh(exam)
        return exam
    return _make_exam


@pytest.fixture
def make_question(db_session: Session):
    """Create a question on an exam with the given answer key"""
    def _make_question(exam: Exam, correct_option: int = 1, text: str = None) -> Question:
        question = Question(
            exam_id=exam.id,
            question_text=text or f'Question {uuid.uuid4().hex[:6]}?',
            option1='A',
            option2='B',
            option3='C',
            option4='D',
            correct_option=correct_option,
            created_by=uuid.uuid4(),
        )
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question
    return _make_question


@pytest.fixture
def exam_with_questions(make_exam, make_question):
    """Ongoing exam with three questions keyed 1, 2 and 3"""
    exam = make_exam()
    questions = [make_question(exam, correct_option=option) for option in (1, 2, 3)]
    return exam, questions
