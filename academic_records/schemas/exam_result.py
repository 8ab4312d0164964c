"""Exam result schemas."""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from pydantic import Field, model_validator

from academic_records.schemas.common import BaseSchema

SCORE_FIELDS = ("ca_score", "theory_score", "exam_score")


class ResultIdentity(NamedTuple):
    """The four-part key of an ExamResult."""

    student_id: int
    subject_id: int
    session_id: int
    term_id: int


# ==========================================
# Merge patches
# ==========================================

class ScorePatch(BaseSchema):
    """Partial score update.

    Only fields explicitly set are written; an unset field is left
    untouched on the stored record. ``0`` is a real score, so presence is
    tracked with ``model_fields_set`` rather than ``None`` checks.
    """

    ca_score: Decimal | None = None
    theory_score: Decimal | None = None
    exam_score: Decimal | None = None

    @model_validator(mode="after")
    def check_present_fields(self) -> "ScorePatch":
        supplied = self.model_fields_set & set(SCORE_FIELDS)
        if not supplied:
            raise ValueError("At least one of ca_score, theory_score, exam_score is required")
        blank = [name for name in supplied if getattr(self, name) is None]
        if blank:
            raise ValueError(f"Scores cannot be cleared through a merge: {', '.join(sorted(blank))}")
        return self

    def present(self) -> dict[str, Decimal]:
        """Fields supplied by the caller, in column order."""
        return {
            name: getattr(self, name)
            for name in SCORE_FIELDS
            if name in self.model_fields_set
        }


# ==========================================
# Result administration
# ==========================================

class ExamResultCreate(BaseSchema):
    """Manual result entry. Scores left out stay empty."""

    student_id: int
    subject_id: int
    session_id: int
    term_id: int
    ca_score: Decimal | None = None
    theory_score: Decimal | None = None
    exam_score: Decimal | None = None

    @model_validator(mode="after")
    def check_scores(self) -> "ExamResultCreate":
        if not any(getattr(self, name) is not None for name in SCORE_FIELDS):
            raise ValueError("At least one of ca_score, theory_score, exam_score is required")
        return self

    def to_patch(self) -> ScorePatch:
        return ScorePatch(**self.model_dump(include=set(SCORE_FIELDS), exclude_none=True))


class ExamResultResponse(BaseSchema):
    """Exam result response schema."""

    id: int
    student_id: int
    admission_number: str
    student_name: str
    subject_id: int
    subject_name: str
    session_id: int
    term_id: int
    class_level_id: int | None
    ca_score: Decimal | None
    theory_score: Decimal | None
    exam_score: Decimal | None
    total_score: Decimal | None
    grade: str | None
    position: int | None
    total_students: int | None
    class_average: Decimal | None
    highest_score: Decimal | None
    lowest_score: Decimal | None
    is_complete: bool
    created_at: datetime
    updated_at: datetime


class ExamResultFilter(BaseSchema):
    """Exam result filtering options."""

    session_id: int | None = None
    term_id: int | None = None
    class_level_id: int | None = None
    subject_id: int | None = None
    student_id: int | None = None
    complete: bool | None = None


# ==========================================
# Ranking
# ==========================================

class RecalculatePositionsRequest(BaseSchema):
    """Ranking run request."""

    session_id: int
    term_id: int
    class_level_id: int | None = None


class RankingSummary(BaseSchema):
    """Result of a ranking run."""

    subjects_processed: int
    results_ranked: int = 0
    results_skipped: int = Field(0, description="Incomplete results left unranked")
