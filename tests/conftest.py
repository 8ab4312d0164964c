"""
Pytest configuration and fixtures.

Provides:
- An in-memory SQLite database per test
- Academic directory data (session, terms, class levels, subjects, students)
- A FastAPI test client bound to the test session
"""

import os

# Must be set before the application settings are first loaded
os.environ["DATABASE_URL"] = "sqlite://"

from collections.abc import Callable, Generator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from academic_records import models  # noqa: F401
from academic_records.core.database import Base, build_engine, get_db
from academic_records.main import app
from academic_records.models.academics import AcademicSession, ClassLevel, Subject, Term
from academic_records.models.student import Student
from academic_records.services.directory import DirectoryService

SUBJECT_NAMES = ["Mathematics", "English", "Physics", "Chemistry", "Biology", "Geography"]


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with all tables."""
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    """Database session for each test."""
    session = Session(engine, expire_on_commit=False)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def academic_session(db: Session) -> AcademicSession:
    session = AcademicSession(
        name="2025/2026",
        start_date=date(2025, 9, 8),
        end_date=date(2026, 7, 24),
        is_current=True,
    )
    db.add(session)
    db.commit()
    return session


@pytest.fixture
def terms(db: Session, academic_session: AcademicSession) -> dict[str, Term]:
    """First and Second term of the test session."""
    created = {}
    for order, name in enumerate(["First Term", "Second Term"], start=1):
        term = Term(session_id=academic_session.id, name=name, order=order, is_current=order == 1)
        db.add(term)
        created[name] = term
    db.commit()
    return created


@pytest.fixture
def first_term(terms: dict[str, Term]) -> Term:
    return terms["First Term"]


@pytest.fixture
def class_levels(db: Session) -> dict[str, ClassLevel]:
    levels, _ = DirectoryService(db).setup_class_levels()
    db.commit()
    return {level.name: level for level in levels}


@pytest.fixture
def subjects(db: Session) -> dict[str, Subject]:
    created = {}
    for name in SUBJECT_NAMES:
        subject = Subject(name=name, code=name[:3].upper() + "101")
        db.add(subject)
        created[name] = subject
    db.commit()
    return created


@pytest.fixture
def make_student(
    db: Session,
    class_levels: dict[str, ClassLevel],
    academic_session: AcademicSession,
) -> Callable[..., Student]:
    """Factory for students in a given class."""

    def _make(admission_number: str, full_name: str = "Test Student", class_name: str = "JSS1", **kwargs) -> Student:
        student = Student(
            admission_number=admission_number,
            full_name=full_name,
            class_level_id=class_levels[class_name].id,
            enrollment_session_id=academic_session.id,
            **kwargs,
        )
        db.add(student)
        db.commit()
        return student

    return _make


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Test client whose requests share the test session."""

    def _get_test_db() -> Generator[Session, None, None]:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
