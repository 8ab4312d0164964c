"""Score import, ranking and exam result endpoints."""

from typing import Annotated

from fastapi import APIRouter, File, Form, Query, Request, Response, UploadFile, status

from academic_records.core.config import settings
from academic_records.core.database import DbSession
from academic_records.core.exceptions import UploadError
from academic_records.models.audit import AuditAction
from academic_records.models.upload import UploadStatus, UploadType
from academic_records.schemas.common import MessageResponse, PaginatedResponse
from academic_records.schemas.exam_result import (
    ExamResultCreate,
    ExamResultFilter,
    ExamResultResponse,
    RankingSummary,
    RecalculatePositionsRequest,
    ScorePatch,
)
from academic_records.schemas.upload import BatchReport
from academic_records.services.audit import AuditService
from academic_records.services.exam_result import ExamResultService
from academic_records.services.ranking import RankingService
from academic_records.services.score_import import ScoreImportService
from academic_records.services.template import TemplateService

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _read_upload(file: UploadFile) -> bytes:
    if not file.filename:
        raise UploadError("No file provided")

    if not file.filename.lower().endswith(tuple(settings.ALLOWED_EXTENSIONS)):
        raise UploadError(f"Only {', '.join(settings.ALLOWED_EXTENSIONS)} files are allowed")

    content = file.file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise UploadError(f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit")
    return content


def _import(
    db: DbSession,
    http_request: Request,
    upload_type: UploadType,
    file: UploadFile,
    session_id: int,
    term_id: int,
) -> BatchReport:
    content = _read_upload(file)
    report = ScoreImportService(db).import_file(
        upload_type=upload_type,
        file_content=content,
        file_name=file.filename,
        session_id=session_id,
        term_id=term_id,
    )

    action = (
        AuditAction.UPLOAD_FAILED if report.status == UploadStatus.FAILED
        else AuditAction.UPLOAD_COMPLETED
    )
    AuditService(db).log(
        action=action,
        resource_type="score_upload",
        resource_id=str(report.upload_id),
        description=(
            f"{upload_type.value} upload: {report.created + report.updated}/{report.total_rows} "
            "rows successful"
        ),
        metadata={
            "file_name": file.filename,
            "status": report.status.value,
            "created": report.created,
            "updated": report.updated,
            "failed": report.failed,
        },
        ip_address=_client_ip(http_request),
    )
    return report


# ==========================================
# Imports
# ==========================================

@router.post("/imports/ca-theory", response_model=BatchReport)
def import_ca_theory(
    db: DbSession,
    http_request: Request,
    session_id: Annotated[int, Form()],
    term_id: Annotated[int, Form()],
    file: UploadFile = File(...),
):
    """
    Upload CA + Theory scores from a CSV or Excel file.

    - Rows are independent: invalid rows are reported, valid rows are merged
    - Re-uploading a row overwrites only the CA and Theory components

    Expected columns: admission_number, subject, ca_score, theory_score
    """
    return _import(db, http_request, UploadType.CA_THEORY, file, session_id, term_id)


@router.post("/imports/exam", response_model=BatchReport)
def import_exam(
    db: DbSession,
    http_request: Request,
    session_id: Annotated[int, Form()],
    term_id: Annotated[int, Form()],
    file: UploadFile = File(...),
):
    """
    Upload CBT exam scores from a CSV or Excel file.

    Results still lacking CA/Theory are listed in ``missing_ca_scores``.

    Expected columns: admission_number, subject_name, exam_score
    """
    return _import(db, http_request, UploadType.EXAM, file, session_id, term_id)


@router.get("/templates/{upload_type}")
def download_template(
    db: DbSession,
    upload_type: UploadType,
    class_level_id: int | None = None,
    file_format: Annotated[str, Query(alias="format", pattern="^(csv|xlsx)$")] = "csv",
):
    """Download an upload template, pre-filled with a class's students when given."""
    service = TemplateService(db)
    file_name = f"{upload_type.value}_template.{file_format}"
    if file_format == "xlsx":
        content = service.generate_excel(upload_type, class_level_id)
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    else:
        content = service.generate_csv(upload_type, class_level_id)
        media_type = "text/csv"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


# ==========================================
# Ranking
# ==========================================

@router.post("/recalculate-positions", response_model=RankingSummary)
def recalculate_positions(
    request: RecalculatePositionsRequest,
    db: DbSession,
    http_request: Request,
):
    """Recompute class positions and cohort statistics for a session/term."""
    summary = RankingService(db).recalculate_positions(
        session_id=request.session_id,
        term_id=request.term_id,
        class_level_id=request.class_level_id,
    )

    AuditService(db).log(
        action=AuditAction.POSITIONS_RECALCULATED,
        resource_type="exam_result",
        description=f"Positions recalculated for {summary.subjects_processed} subjects",
        metadata=request.model_dump(),
        ip_address=_client_ip(http_request),
    )
    return summary


# ==========================================
# Results
# ==========================================

@router.get("", response_model=PaginatedResponse[ExamResultResponse])
def list_results(
    db: DbSession,
    session_id: int | None = None,
    term_id: int | None = None,
    class_level_id: int | None = None,
    subject_id: int | None = None,
    student_id: int | None = None,
    complete: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
):
    """List exam results with filtering and pagination."""
    filters = ExamResultFilter(
        session_id=session_id,
        term_id=term_id,
        class_level_id=class_level_id,
        subject_id=subject_id,
        student_id=student_id,
        complete=complete,
    )
    items, total = ExamResultService(db).list_results(filters, page, page_size)
    return PaginatedResponse.build(items, total, page, page_size)


@router.post("", response_model=ExamResultResponse)
def create_result(
    request: ExamResultCreate,
    db: DbSession,
    http_request: Request,
    response: Response,
):
    """Record scores for one student and subject; merges into an existing result."""
    result, created = ExamResultService(db).create_result(request)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK

    AuditService(db).log(
        action=AuditAction.RESULT_CREATED if created else AuditAction.RESULT_UPDATED,
        resource_type="exam_result",
        resource_id=str(result.id),
        description=f"Scores recorded for {result.admission_number} in {result.subject_name}",
        metadata=request.to_patch().model_dump(mode="json", exclude_unset=True),
        ip_address=_client_ip(http_request),
    )
    return result


@router.get("/{result_id}", response_model=ExamResultResponse)
def get_result(result_id: int, db: DbSession):
    """Get one exam result."""
    service = ExamResultService(db)
    return service.to_response(service.get_result(result_id))


@router.patch("/{result_id}", response_model=ExamResultResponse)
def update_result(
    result_id: int,
    patch: ScorePatch,
    db: DbSession,
    http_request: Request,
):
    """Overwrite only the score components supplied in the body."""
    result = ExamResultService(db).update_result(result_id, patch)

    AuditService(db).log(
        action=AuditAction.RESULT_UPDATED,
        resource_type="exam_result",
        resource_id=str(result_id),
        description=f"Scores updated for {result.admission_number} in {result.subject_name}",
        metadata=patch.model_dump(mode="json", exclude_unset=True),
        ip_address=_client_ip(http_request),
    )
    return result


@router.delete("/{result_id}", response_model=MessageResponse)
def delete_result(result_id: int, db: DbSession, http_request: Request):
    """Delete an exam result. Re-run ranking afterwards to refresh positions."""
    identity = ExamResultService(db).delete_result(result_id)

    AuditService(db).log(
        action=AuditAction.RESULT_DELETED,
        resource_type="exam_result",
        resource_id=str(result_id),
        metadata=identity._asdict(),
        ip_address=_client_ip(http_request),
    )
    return MessageResponse(message="Exam result deleted")
