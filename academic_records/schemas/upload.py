"""Score upload schemas."""

from datetime import datetime

from academic_records.models.upload import UploadStatus, UploadType
from academic_records.schemas.common import BaseSchema


class RowError(BaseSchema):
    """A rejected import row."""

    row: int
    admission_number: str | None = None
    error_type: str
    error: str


class MissingCAScore(BaseSchema):
    """Exam score stored for a result that still lacks CA/Theory."""

    admission_number: str
    subject: str


class BatchReport(BaseSchema):
    """Result of a score import batch."""

    upload_id: int
    upload_type: UploadType
    status: UploadStatus
    total_rows: int
    created: int
    updated: int
    failed: int
    errors: list[RowError] = []
    missing_ca_scores: list[MissingCAScore] = []
    message: str


class ScoreUploadResponse(BaseSchema):
    """Upload record response schema."""

    id: int
    upload_type: UploadType
    file_name: str | None
    session_id: int
    term_id: int
    status: UploadStatus
    total_rows: int
    created_rows: int
    updated_rows: int
    failed_rows: int
    error_message: str | None
    processing_started_at: datetime | None
    processing_completed_at: datetime | None
    created_at: datetime
