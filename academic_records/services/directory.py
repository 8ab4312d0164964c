"""Academic directory: sessions, terms, class levels, subjects and students."""

import logging
from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from academic_records.core.exceptions import NotFoundError, ValidationError
from academic_records.models.academics import AcademicSession, ClassLevel, Subject, Term
from academic_records.models.student import Student
from academic_records.schemas.academics import (
    AcademicSessionCreate,
    StudentCreate,
    SubjectCreate,
    TermCreate,
)
from academic_records.schemas.promotion import CLASS_PROGRESSION

logger = logging.getLogger(__name__)

DEFAULT_CLASS_LEVELS = [
    ("JSS1", 1),
    ("JSS2", 2),
    ("JSS3", 3),
    ("SS1", 4),
    ("SS2", 5),
    ("SS3", 6),
]


def normalize_admission_number(value: object) -> str:
    """Admission numbers are matched trimmed and upper-cased."""
    return str(value or "").strip().upper()


class DirectoryService:
    """Lookups and setup for the records the engine reads."""

    def __init__(self, db: Session):
        self.db = db

    # ==========================================
    # Sessions and terms
    # ==========================================

    def get_session(self, session_id: int) -> AcademicSession:
        session = self.db.get(AcademicSession, session_id)
        if not session:
            raise NotFoundError("Academic session", str(session_id))
        return session

    def get_term(self, term_id: int) -> Term:
        term = self.db.get(Term, term_id)
        if not term:
            raise NotFoundError("Term", str(term_id))
        return term

    def get_term_in_session(self, session_id: int, term_id: int) -> Term:
        """Resolve a term and check it belongs to the session."""
        self.get_session(session_id)
        term = self.get_term(term_id)
        if term.session_id != session_id:
            raise ValidationError(
                f"Term {term.name} does not belong to session {session_id}",
                details={"session_id": session_id, "term_id": term_id},
            )
        return term

    def list_sessions(self) -> list[AcademicSession]:
        result = self.db.execute(select(AcademicSession).order_by(AcademicSession.name))
        return list(result.scalars().all())

    def list_terms(self, session_id: int) -> list[Term]:
        result = self.db.execute(
            select(Term).where(Term.session_id == session_id).order_by(Term.order)
        )
        return list(result.scalars().all())

    def get_current_session(self) -> AcademicSession | None:
        result = self.db.execute(
            select(AcademicSession).where(AcademicSession.is_current.is_(True))
        )
        return result.scalars().first()

    def create_session(self, request: AcademicSessionCreate) -> AcademicSession:
        """Create a session; marking it current un-marks every other session."""
        existing = self.db.execute(
            select(AcademicSession).where(AcademicSession.name == request.name)
        ).scalar_one_or_none()
        if existing:
            raise ValidationError(f"Session {request.name} already exists")

        if request.is_current:
            self.db.execute(update(AcademicSession).values(is_current=False))

        session = AcademicSession(**request.model_dump())
        self.db.add(session)
        self.db.flush()
        logger.info(f"Created academic session {session.name} (current={session.is_current})")
        return session

    def create_term(self, request: TermCreate) -> Term:
        """Create a term; marking it current un-marks the session's other terms."""
        self.get_session(request.session_id)
        duplicate = self.db.execute(
            select(Term).where(Term.session_id == request.session_id, Term.name == request.name)
        ).scalar_one_or_none()
        if duplicate:
            raise ValidationError(f"Term {request.name} already exists in this session")

        if request.is_current:
            self.db.execute(
                update(Term).where(Term.session_id == request.session_id).values(is_current=False)
            )

        term = Term(**request.model_dump())
        self.db.add(term)
        self.db.flush()
        return term

    # ==========================================
    # Class levels
    # ==========================================

    def get_class_level(self, class_level_id: int) -> ClassLevel:
        class_level = self.db.get(ClassLevel, class_level_id)
        if not class_level:
            raise NotFoundError("Class level", str(class_level_id))
        return class_level

    def get_class_level_by_name(self, name: str) -> ClassLevel | None:
        result = self.db.execute(select(ClassLevel).where(ClassLevel.name == name.upper()))
        return result.scalar_one_or_none()

    def list_class_levels(self) -> list[ClassLevel]:
        result = self.db.execute(select(ClassLevel).order_by(ClassLevel.order))
        return list(result.scalars().all())

    def setup_class_levels(self) -> tuple[list[ClassLevel], int]:
        """Create any missing default class levels. Returns (all levels, created count)."""
        existing = {c.name for c in self.list_class_levels()}
        created = 0
        for name, order in DEFAULT_CLASS_LEVELS:
            if name in existing:
                continue
            self.db.add(ClassLevel(name=name, order=order))
            created += 1
        self.db.flush()
        return self.list_class_levels(), created

    @staticmethod
    def next_class_name(class_name: str) -> str | None:
        return CLASS_PROGRESSION.get(class_name.upper())

    # ==========================================
    # Subjects
    # ==========================================

    def get_subject(self, subject_id: int) -> Subject:
        subject = self.db.get(Subject, subject_id)
        if not subject:
            raise NotFoundError("Subject", str(subject_id))
        return subject

    def subjects_by_name(self) -> dict[str, Subject]:
        """Active subjects keyed by their exact (case-sensitive) name."""
        result = self.db.execute(select(Subject).where(Subject.is_active.is_(True)))
        return {s.name: s for s in result.scalars().all()}

    def list_subjects(self) -> list[Subject]:
        result = self.db.execute(select(Subject).order_by(Subject.name))
        return list(result.scalars().all())

    def create_subject(self, request: SubjectCreate) -> Subject:
        if request.name in self.subjects_by_name():
            raise ValidationError(f"Subject {request.name} already exists")
        subject = Subject(
            name=request.name,
            code=request.code or request.name[:3].upper() + "101",
        )
        self.db.add(subject)
        self.db.flush()
        return subject

    # ==========================================
    # Students
    # ==========================================

    def get_student(self, student_id: int) -> Student:
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFoundError("Student", str(student_id))
        return student

    def active_students_by_admission(self, admission_numbers: Iterable[str]) -> dict[str, Student]:
        """Active students keyed by normalised admission number."""
        wanted = {normalize_admission_number(n) for n in admission_numbers}
        wanted.discard("")
        if not wanted:
            return {}
        result = self.db.execute(
            select(Student).where(
                Student.admission_number.in_(wanted),
                Student.is_active.is_(True),
            )
        )
        return {s.admission_number: s for s in result.scalars().all()}

    def list_active_students(self, class_level_id: int) -> list[Student]:
        result = self.db.execute(
            select(Student)
            .where(
                Student.class_level_id == class_level_id,
                Student.is_active.is_(True),
            )
            .order_by(Student.admission_number)
        )
        return list(result.scalars().all())

    def create_student(self, request: StudentCreate) -> Student:
        admission_number = normalize_admission_number(request.admission_number)
        existing = self.db.execute(
            select(Student).where(Student.admission_number == admission_number)
        ).scalar_one_or_none()
        if existing:
            raise ValidationError(f"Student {admission_number} already exists")
        if request.class_level_id is not None:
            self.get_class_level(request.class_level_id)
        if request.enrollment_session_id is not None:
            self.get_session(request.enrollment_session_id)

        student = Student(
            admission_number=admission_number,
            full_name=request.full_name,
            class_level_id=request.class_level_id,
            enrollment_session_id=request.enrollment_session_id,
        )
        self.db.add(student)
        self.db.flush()
        return student
