"""Academic setup endpoints: sessions, terms, class levels, subjects, students."""

from fastapi import APIRouter, Request, status

from academic_records.core.database import DbSession
from academic_records.models.audit import AuditAction
from academic_records.schemas.academics import (
    AcademicSessionCreate,
    AcademicSessionResponse,
    ClassLevelResponse,
    StudentCreate,
    StudentResponse,
    SubjectCreate,
    SubjectResponse,
    TermCreate,
    TermResponse,
)
from academic_records.services.audit import AuditService
from academic_records.services.directory import DirectoryService

router = APIRouter()


# ==========================================
# Sessions and terms
# ==========================================

@router.get("/sessions", response_model=list[AcademicSessionResponse])
def list_sessions(db: DbSession):
    return DirectoryService(db).list_sessions()


@router.post("/sessions", response_model=AcademicSessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(request: AcademicSessionCreate, db: DbSession, http_request: Request):
    """Create an academic session. Marking it current un-marks the others."""
    session = DirectoryService(db).create_session(request)
    AuditService(db).log(
        action=AuditAction.SETUP_UPDATED,
        resource_type="academic_session",
        resource_id=str(session.id),
        description=f"Session {session.name} created",
        ip_address=http_request.client.host if http_request.client else None,
    )
    return session


@router.get("/sessions/current", response_model=AcademicSessionResponse | None)
def get_current_session(db: DbSession):
    return DirectoryService(db).get_current_session()


@router.get("/sessions/{session_id}/terms", response_model=list[TermResponse])
def list_terms(session_id: int, db: DbSession):
    service = DirectoryService(db)
    service.get_session(session_id)
    return service.list_terms(session_id)


@router.post("/terms", response_model=TermResponse, status_code=status.HTTP_201_CREATED)
def create_term(request: TermCreate, db: DbSession):
    return DirectoryService(db).create_term(request)


# ==========================================
# Class levels
# ==========================================

@router.get("/class-levels", response_model=list[ClassLevelResponse])
def list_class_levels(db: DbSession):
    return DirectoryService(db).list_class_levels()


@router.post("/class-levels/setup", response_model=list[ClassLevelResponse])
def setup_class_levels(db: DbSession, http_request: Request):
    """Create the default JSS1-SS3 class levels if missing."""
    levels, created = DirectoryService(db).setup_class_levels()
    if created:
        AuditService(db).log(
            action=AuditAction.SETUP_UPDATED,
            resource_type="class_level",
            description=f"{created} default class levels created",
            ip_address=http_request.client.host if http_request.client else None,
        )
    return levels


# ==========================================
# Subjects and students
# ==========================================

@router.get("/subjects", response_model=list[SubjectResponse])
def list_subjects(db: DbSession):
    return DirectoryService(db).list_subjects()


@router.post("/subjects", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
def create_subject(request: SubjectCreate, db: DbSession):
    return DirectoryService(db).create_subject(request)


@router.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
def create_student(request: StudentCreate, db: DbSession):
    return DirectoryService(db).create_student(request)


@router.get("/students/{student_id}", response_model=StudentResponse)
def get_student(student_id: int, db: DbSession):
    return DirectoryService(db).get_student(student_id)

