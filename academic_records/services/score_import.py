"""Score import service for CA/Theory and Exam batches."""

import csv
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from sqlalchemy.orm import Session

from academic_records.core.config import settings
from academic_records.core.exceptions import (
    AppException,
    InvalidValueError,
    UnknownStudentError,
    UnknownSubjectError,
    UploadError,
)
from academic_records.models.academics import Subject
from academic_records.models.student import Student
from academic_records.models.upload import ScoreUpload, ScoreUploadError, UploadStatus, UploadType
from academic_records.schemas.exam_result import ResultIdentity, ScorePatch
from academic_records.schemas.upload import BatchReport, MissingCAScore, RowError
from academic_records.services.directory import DirectoryService, normalize_admission_number
from academic_records.services.score_merge import ScoreLimits, ScoreMergeStore

logger = logging.getLogger(__name__)

# Required columns per pipeline (header match is case-insensitive)
CA_THEORY_COLUMNS = ("admission_number", "subject", "ca_score", "theory_score")
EXAM_COLUMNS = ("admission_number", "subject_name", "exam_score")

REQUIRED_COLUMNS = {
    UploadType.CA_THEORY: CA_THEORY_COLUMNS,
    UploadType.EXAM: EXAM_COLUMNS,
}
SUBJECT_COLUMN = {
    UploadType.CA_THEORY: "subject",
    UploadType.EXAM: "subject_name",
}
SCORE_COLUMNS = {
    UploadType.CA_THEORY: ("ca_score", "theory_score"),
    UploadType.EXAM: ("exam_score",),
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_skippable(row: Mapping[str, Any]) -> bool:
    """Blank rows and template comment rows (first cell starting with '#')."""
    values = list(row.values())
    if all(_is_blank(v) for v in values):
        return True
    first = next((v for v in values if not _is_blank(v)), None)
    return isinstance(first, str) and first.strip().startswith("#")


def _rows_from_table(table: Sequence[Sequence[Any]]) -> list[dict[str, Any]]:
    """Map a header row plus data rows into dictionaries keyed by header."""
    if not table:
        raise UploadError("File is empty")

    headers = [str(h).strip().lower() if h is not None else "" for h in table[0]]
    data = []
    for row in table[1:]:
        row_dict = {}
        for i, value in enumerate(row):
            if i < len(headers) and headers[i]:
                row_dict[headers[i]] = value
        for header in headers:
            if header:
                row_dict.setdefault(header, None)
        data.append(row_dict)
    return data


class ScoreImportService:
    """Row-independent score imports feeding the merge store."""

    def __init__(self, db: Session, limits: ScoreLimits | None = None):
        self.db = db
        self.limits = limits or ScoreLimits.from_settings()
        self.directory = DirectoryService(db)
        self.merge_store = ScoreMergeStore(db, self.limits)

    def import_ca_theory(
        self,
        rows: Sequence[Mapping[str, Any]],
        session_id: int,
        term_id: int,
        file_name: str | None = None,
    ) -> BatchReport:
        """Import CA + Theory scores (columns: admission_number, subject, ca_score, theory_score)."""
        return self._run_batch(UploadType.CA_THEORY, rows, session_id, term_id, file_name)

    def import_exam(
        self,
        rows: Sequence[Mapping[str, Any]],
        session_id: int,
        term_id: int,
        file_name: str | None = None,
    ) -> BatchReport:
        """Import CBT exam scores (columns: admission_number, subject_name, exam_score)."""
        return self._run_batch(UploadType.EXAM, rows, session_id, term_id, file_name)

    def import_file(
        self,
        upload_type: UploadType,
        file_content: bytes,
        file_name: str,
        session_id: int,
        term_id: int,
    ) -> BatchReport:
        """Parse a CSV or XLSX upload and import it."""
        self.directory.get_term_in_session(session_id, term_id)

        suffix = Path(file_name).suffix.lower()
        if suffix not in settings.ALLOWED_EXTENSIONS:
            raise UploadError(
                f"Only {', '.join(settings.ALLOWED_EXTENSIONS)} files are allowed",
                details={"file_name": file_name},
            )
        if suffix == ".xlsx":
            rows = self.parse_excel(file_content)
        else:
            rows = self.parse_csv(file_content)

        return self._run_batch(upload_type, rows, session_id, term_id, file_name)

    # ==========================================
    # Parsing
    # ==========================================

    def parse_csv(self, file_content: bytes | str) -> list[dict[str, Any]]:
        """Parse CSV content into row dictionaries (blank rows kept for numbering)."""
        if isinstance(file_content, bytes):
            try:
                text = file_content.decode("utf-8-sig")
            except UnicodeDecodeError:
                raise UploadError("Invalid file encoding. Please save CSV as UTF-8.")
        else:
            text = file_content.lstrip("﻿")

        try:
            table = list(csv.reader(StringIO(text)))
        except csv.Error as e:
            raise UploadError(f"Failed to parse CSV file: {str(e)}")

        rows = _rows_from_table(table)
        logger.debug(f"[CSV PARSE] {len(rows)} rows after header")
        return rows

    def parse_excel(self, file_content: bytes) -> list[dict[str, Any]]:
        """Parse the active sheet of an XLSX workbook into row dictionaries."""
        try:
            workbook = load_workbook(filename=BytesIO(file_content), read_only=True, data_only=True)
            sheet = workbook.active
            if sheet is None:
                raise UploadError("Excel file has no active sheet")
            table = list(sheet.iter_rows(values_only=True))
            workbook.close()
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Failed to parse Excel file: {str(e)}")

        rows = _rows_from_table(table)
        logger.debug(f"[EXCEL PARSE] {len(rows)} rows after header")
        return rows

    # ==========================================
    # Batch processing
    # ==========================================

    def _run_batch(
        self,
        upload_type: UploadType,
        rows: Sequence[Mapping[str, Any]],
        session_id: int,
        term_id: int,
        file_name: str | None,
    ) -> BatchReport:
        # Batch-level checks happen before any write
        self.directory.get_term_in_session(session_id, term_id)
        numbered = self._normalise(upload_type, rows)

        logger.info(
            f"[SCORE IMPORT] Starting {upload_type.value} import: {len(numbered)} rows, "
            f"session={session_id}, term={term_id}, file={file_name}"
        )

        upload = ScoreUpload(
            upload_type=upload_type,
            file_name=file_name,
            session_id=session_id,
            term_id=term_id,
            status=UploadStatus.PROCESSING,
            total_rows=len(numbered),
            processing_started_at=datetime.now(timezone.utc),
        )
        self.db.add(upload)
        self.db.flush()

        students = self.directory.active_students_by_admission(
            row.get("admission_number") for _, row in numbered
        )
        subjects = self.directory.subjects_by_name()

        created = 0
        updated = 0
        errors: list[RowError] = []
        missing_ca: list[MissingCAScore] = []

        for row_num, row in numbered:
            admission_number = normalize_admission_number(row.get("admission_number"))
            try:
                student, subject, patch = self._validate_row(
                    upload_type, row, students, subjects
                )
                identity = ResultIdentity(student.id, subject.id, session_id, term_id)
                with self.db.begin_nested():
                    outcome = self.merge_store.merge(identity, patch, upload_id=upload.id)
            except AppException as e:
                logger.warning(f"[SCORE IMPORT] Row {row_num} FAILED - {e.code}: {e.message}")
                errors.append(
                    RowError(
                        row=row_num,
                        admission_number=admission_number or None,
                        error_type=e.code,
                        error=e.message,
                    )
                )
                self.db.add(
                    ScoreUploadError(
                        upload_id=upload.id,
                        row_number=row_num,
                        admission_number=admission_number or None,
                        error_type=e.code,
                        error_message=e.message,
                    )
                )
                continue

            if outcome.created:
                created += 1
            else:
                updated += 1

            result = outcome.result
            if upload_type == UploadType.EXAM and (
                result.ca_score is None or result.theory_score is None
            ):
                missing_ca.append(
                    MissingCAScore(admission_number=student.admission_number, subject=subject.name)
                )
            logger.debug(
                f"[SCORE IMPORT] Row {row_num} {'CREATED' if outcome.created else 'UPDATED'} - "
                f"{student.admission_number}/{subject.name} total={result.total_score}"
            )

        successful = created + updated
        upload.created_rows = created
        upload.updated_rows = updated
        upload.failed_rows = len(errors)
        upload.status = (
            UploadStatus.SUCCESS if not errors
            else UploadStatus.PARTIAL if successful > 0
            else UploadStatus.FAILED
        )
        upload.processing_completed_at = datetime.now(timezone.utc)
        self.db.flush()

        logger.info(
            f"[SCORE IMPORT] Upload complete - Status: {upload.status.value}, Created: {created}, "
            f"Updated: {updated}, Failed: {len(errors)}, Missing CA: {len(missing_ca)}"
        )

        return BatchReport(
            upload_id=upload.id,
            upload_type=upload_type,
            status=upload.status,
            total_rows=upload.total_rows,
            created=created,
            updated=updated,
            failed=len(errors),
            errors=errors[: settings.IMPORT_ERROR_LIMIT],
            missing_ca_scores=missing_ca,
            message=self._get_result_message(upload),
        )

    def _normalise(
        self,
        upload_type: UploadType,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[tuple[int, dict[str, Any]]]:
        """Lower-case headers, check required columns and number the data rows."""
        if not rows:
            raise UploadError("File must have a header row and at least one data row")

        headers = {str(k).strip().lower() for k in rows[0].keys()}
        missing = [c for c in REQUIRED_COLUMNS[upload_type] if c not in headers]
        if missing:
            raise UploadError(
                f"Missing required columns: {', '.join(missing)}",
                details={
                    "expected": list(REQUIRED_COLUMNS[upload_type]),
                    "found": sorted(headers),
                },
            )

        numbered = []
        for row_num, row in enumerate(rows, start=2):  # Start at 2 (header is 1)
            normalised = {str(k).strip().lower(): v for k, v in row.items()}
            if _is_skippable(normalised):
                continue
            numbered.append((row_num, normalised))

        if not numbered:
            raise UploadError("File must have a header row and at least one data row")
        return numbered

    def _validate_row(
        self,
        upload_type: UploadType,
        row: Mapping[str, Any],
        students: Mapping[str, Student],
        subjects: Mapping[str, Subject],
    ) -> tuple[Student, Subject, ScorePatch]:
        """Resolve student and subject, then parse the score cells into a patch."""
        admission_number = normalize_admission_number(row.get("admission_number"))
        student = students.get(admission_number)
        if student is None:
            raise UnknownStudentError(admission_number)

        raw_subject = row.get(SUBJECT_COLUMN[upload_type])
        subject_name = str(raw_subject).strip() if raw_subject is not None else ""
        subject = subjects.get(subject_name)
        if subject is None:
            raise UnknownSubjectError(subject_name)

        scores = {}
        for column in SCORE_COLUMNS[upload_type]:
            value = self._parse_score(column, row.get(column))
            if value is not None:
                scores[column] = value

        if not scores:
            columns = " or ".join(SCORE_COLUMNS[upload_type])
            raise InvalidValueError(SCORE_COLUMNS[upload_type][0], "", f"{columns} is required")

        return student, subject, ScorePatch(**scores)

    def _parse_score(self, column: str, raw: Any) -> Decimal | None:
        """Blank cells are absent, never zero."""
        if _is_blank(raw):
            return None
        if isinstance(raw, bool):
            raise InvalidValueError(column, raw, "must be a number")
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            raise InvalidValueError(column, raw, "must be a number")
        return self.limits.check(column, value)

    def _get_result_message(self, upload: ScoreUpload) -> str:
        """Generate result message for upload."""
        if upload.status == UploadStatus.SUCCESS:
            return (
                f"Successfully imported {upload.successful_rows} rows "
                f"({upload.created_rows} created, {upload.updated_rows} updated)."
            )
        elif upload.status == UploadStatus.PARTIAL:
            return (
                f"Partially imported: {upload.successful_rows} successful, "
                f"{upload.failed_rows} failed out of {upload.total_rows} rows."
            )
        else:
            return f"Upload failed: all {upload.total_rows} rows were rejected."
