"""Score merge store: field-level upserts into ExamResult."""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academic_records.core.config import Settings, settings
from academic_records.core.exceptions import (
    InvalidValueError,
    NotFoundError,
    ScoreCeilingExceededError,
)
from academic_records.models.academics import Subject
from academic_records.models.exam_result import ExamResult
from academic_records.models.student import Student
from academic_records.schemas.exam_result import SCORE_FIELDS, ResultIdentity, ScorePatch
from academic_records.services.grading import compute_total, grade_for

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class ScoreLimits:
    """Per-component ceilings plus the combined theory + exam ceiling."""

    ca: Decimal = Decimal("30")
    theory: Decimal = Decimal("40")
    exam: Decimal = Decimal("30")
    written: Decimal = Decimal("70")

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ScoreLimits":
        return cls(
            ca=Decimal(config.CA_MAX_SCORE),
            theory=Decimal(config.THEORY_MAX_SCORE),
            exam=Decimal(config.EXAM_MAX_SCORE),
            written=Decimal(config.WRITTEN_MAX_SCORE),
        )

    def ceiling(self, field: str) -> Decimal:
        return {
            "ca_score": self.ca,
            "theory_score": self.theory,
            "exam_score": self.exam,
        }[field]

    def check(self, field: str, value: Decimal) -> Decimal:
        """Validate a single component and round it to the stored 2 dp scale."""
        if not value.is_finite():
            raise InvalidValueError(field, value, "must be a number")
        if value < 0:
            raise InvalidValueError(field, value, "cannot be negative")
        value = value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        ceiling = self.ceiling(field)
        if value > ceiling:
            raise InvalidValueError(field, value, f"exceeds maximum of {ceiling}")
        return value


class MergeOutcome(NamedTuple):
    result: ExamResult
    created: bool


class ScoreMergeStore:
    """
    Upserts partial scores into one ExamResult per identity.

    Each merge overwrites only the components present in the patch (last
    write wins per field). The merged state is validated before anything
    is assigned, so a rejected merge leaves the stored record untouched.
    """

    def __init__(self, db: Session, limits: ScoreLimits | None = None):
        self.db = db
        self.limits = limits or ScoreLimits.from_settings()

    def merge(
        self,
        identity: ResultIdentity,
        patch: ScorePatch,
        upload_id: int | None = None,
    ) -> MergeOutcome:
        incoming = {
            field: self.limits.check(field, Decimal(value))
            for field, value in patch.present().items()
        }

        result = self._get_for_update(identity)
        if result is None:
            student, subject = self._resolve(identity)
            self._check_written_ceiling(incoming, incoming, student, subject)
            try:
                with self.db.begin_nested():
                    result = ExamResult(
                        student_id=identity.student_id,
                        subject_id=identity.subject_id,
                        session_id=identity.session_id,
                        term_id=identity.term_id,
                        class_level_id=student.class_level_id,
                        upload_id=upload_id,
                    )
                    self._apply(result, incoming)
                    self.db.add(result)
                    self.db.flush()
                logger.debug(f"[MERGE] created result {identity} with {sorted(incoming)}")
                return MergeOutcome(result, True)
            except IntegrityError:
                # A concurrent merge inserted the same identity first
                logger.info(f"[MERGE] insert race on {identity}, merging into existing row")
                result = self._get_for_update(identity)
                if result is None:
                    raise

        merged = {field: getattr(result, field) for field in SCORE_FIELDS}
        merged.update(incoming)
        self._check_written_ceiling(merged, incoming, result.student, result.subject)

        self._apply(result, incoming)
        if upload_id is not None:
            result.upload_id = upload_id
        self.db.flush()
        logger.debug(f"[MERGE] updated result {identity} fields {sorted(incoming)}")
        return MergeOutcome(result, False)

    def _get_for_update(self, identity: ResultIdentity) -> ExamResult | None:
        query = (
            select(ExamResult)
            .where(
                ExamResult.student_id == identity.student_id,
                ExamResult.subject_id == identity.subject_id,
                ExamResult.session_id == identity.session_id,
                ExamResult.term_id == identity.term_id,
            )
            .with_for_update()
        )
        return self.db.execute(query).scalar_one_or_none()

    def _resolve(self, identity: ResultIdentity) -> tuple[Student, Subject]:
        student = self.db.get(Student, identity.student_id)
        if not student:
            raise NotFoundError("Student", str(identity.student_id))
        subject = self.db.get(Subject, identity.subject_id)
        if not subject:
            raise NotFoundError("Subject", str(identity.subject_id))
        return student, subject

    def _check_written_ceiling(
        self,
        merged: dict[str, Decimal | None],
        incoming: dict[str, Decimal],
        student: Student | None,
        subject: Subject | None,
    ) -> None:
        """Theory + exam must stay within the written ceiling on the merged state."""
        theory = merged.get("theory_score")
        exam = merged.get("exam_score")
        combined = (theory or Decimal("0")) + (exam or Decimal("0"))
        if combined <= self.limits.written:
            return

        fields = [f for f in ("theory_score", "exam_score") if f in incoming]
        admission_number = student.admission_number if student else None
        subject_name = subject.name if subject else None
        logger.warning(
            f"[MERGE] rejected {fields} for {admission_number}/{subject_name}: "
            f"theory {theory} + exam {exam} > {self.limits.written}"
        )
        raise ScoreCeilingExceededError(
            f"theory_score + exam_score ({combined}) exceeds maximum of {self.limits.written} "
            f"for {admission_number} in {subject_name}",
            details={
                "admission_number": admission_number,
                "subject": subject_name,
                "fields": fields,
                "theory_score": str(theory) if theory is not None else None,
                "exam_score": str(exam) if exam is not None else None,
                "limit": str(self.limits.written),
            },
        )

    @staticmethod
    def _apply(result: ExamResult, incoming: dict[str, Decimal]) -> None:
        """Assign components and recompute total and grade."""
        for field, value in incoming.items():
            setattr(result, field, value)
        total = compute_total(result.ca_score, result.theory_score, result.exam_score)
        result.total_score = total
        result.grade = grade_for(total) if total is not None else None
