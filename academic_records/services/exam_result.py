"""Exam result service for manual entry and administration."""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from academic_records.core.exceptions import NotFoundError
from academic_records.models.exam_result import ExamResult
from academic_records.schemas.exam_result import (
    ExamResultCreate,
    ExamResultFilter,
    ExamResultResponse,
    ResultIdentity,
    ScorePatch,
)
from academic_records.services.directory import DirectoryService
from academic_records.services.score_merge import ScoreLimits, ScoreMergeStore

logger = logging.getLogger(__name__)


class ExamResultService:
    """Exam result management service.

    Every score write goes through the merge store, so manual edits obey
    the same per-field and combined ceilings as imported scores.
    """

    def __init__(self, db: Session, limits: ScoreLimits | None = None):
        self.db = db
        self.directory = DirectoryService(db)
        self.merge_store = ScoreMergeStore(db, limits)

    def _record_to_response(self, record: ExamResult) -> dict:
        """Convert ExamResult to response dict."""
        return {
            "id": record.id,
            "student_id": record.student_id,
            "admission_number": record.student.admission_number if record.student else "",
            "student_name": record.student.full_name if record.student else "",
            "subject_id": record.subject_id,
            "subject_name": record.subject.name if record.subject else "",
            "session_id": record.session_id,
            "term_id": record.term_id,
            "class_level_id": record.class_level_id,
            "ca_score": record.ca_score,
            "theory_score": record.theory_score,
            "exam_score": record.exam_score,
            "total_score": record.total_score,
            "grade": record.grade,
            "position": record.position,
            "total_students": record.total_students,
            "class_average": record.class_average,
            "highest_score": record.highest_score,
            "lowest_score": record.lowest_score,
            "is_complete": record.is_complete,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }

    def to_response(self, record: ExamResult) -> ExamResultResponse:
        return ExamResultResponse.model_validate(self._record_to_response(record))

    def create_result(self, request: ExamResultCreate) -> tuple[ExamResultResponse, bool]:
        """Record scores for one identity. Returns (result, created)."""
        self.directory.get_term_in_session(request.session_id, request.term_id)
        self.directory.get_student(request.student_id)
        self.directory.get_subject(request.subject_id)

        identity = ResultIdentity(
            request.student_id, request.subject_id, request.session_id, request.term_id
        )
        outcome = self.merge_store.merge(identity, request.to_patch())
        self.db.refresh(outcome.result)
        return self.to_response(outcome.result), outcome.created

    def get_result(self, result_id: int) -> ExamResult:
        """Get exam result by ID."""
        result = self.db.get(ExamResult, result_id)
        if not result:
            raise NotFoundError("Exam result", str(result_id))
        return result

    def list_results(
        self,
        filters: ExamResultFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[ExamResultResponse], int]:
        """List exam results with filtering."""
        query = select(ExamResult)

        if filters:
            if filters.session_id:
                query = query.where(ExamResult.session_id == filters.session_id)
            if filters.term_id:
                query = query.where(ExamResult.term_id == filters.term_id)
            if filters.class_level_id:
                query = query.where(ExamResult.class_level_id == filters.class_level_id)
            if filters.subject_id:
                query = query.where(ExamResult.subject_id == filters.subject_id)
            if filters.student_id:
                query = query.where(ExamResult.student_id == filters.student_id)
            if filters.complete is not None:
                complete = (
                    ExamResult.ca_score.is_not(None)
                    & ExamResult.theory_score.is_not(None)
                    & ExamResult.exam_score.is_not(None)
                )
                query = query.where(complete if filters.complete else ~complete)

        # Count total
        count_result = self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = (
            query
            .order_by(
                ExamResult.subject_id,
                ExamResult.position.is_(None),
                ExamResult.position,
                ExamResult.id,
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        records = self.db.execute(query).scalars().all()

        return [self.to_response(r) for r in records], total

    def update_result(self, result_id: int, patch: ScorePatch) -> ExamResultResponse:
        """Merge new component scores into an existing result."""
        record = self.get_result(result_id)
        identity = ResultIdentity(
            record.student_id, record.subject_id, record.session_id, record.term_id
        )
        outcome = self.merge_store.merge(identity, patch)
        self.db.refresh(outcome.result)
        return self.to_response(outcome.result)

    def delete_result(self, result_id: int) -> ResultIdentity:
        """Delete an exam result."""
        record = self.get_result(result_id)
        identity = ResultIdentity(
            record.student_id, record.subject_id, record.session_id, record.term_id
        )
        self.db.delete(record)
        self.db.flush()
        logger.info(f"Deleted exam result {result_id} {identity}")
        return identity
