"""Promotion schemas."""

import enum
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, Field, model_validator

from academic_records.schemas.common import BaseSchema

# Sequential class progression; SS3 leaves the school
GRADUATED = "GRADUATED"
CLASS_PROGRESSION = {
    "JSS1": "JSS2",
    "JSS2": "JSS3",
    "JSS3": "SS1",
    "SS1": "SS2",
    "SS2": "SS3",
    "SS3": GRADUATED,
}


class PromotionStatus(str, enum.Enum):
    """Outcome of a promotion evaluation for one student."""

    PROMOTED = "Promoted"
    PROMOTED_WITH_CARRYOVER = "PromotedWithCarryover"
    NOT_PROMOTED = "NotPromoted"
    NO_DATA = "NoData"


class PromotionRuleSet(BaseSchema):
    """Promotion policy for one evaluation run.

    Immutable and passed explicitly to every evaluation, so a run can be
    reproduced from its rule set alone. ``mode`` does not influence the
    computed statuses; ``"recommend"`` tells the caller the results are
    advisory and must not be auto-applied.
    """

    model_config = ConfigDict(frozen=True)

    pass_mark: Decimal = Field(..., ge=0, le=100)
    compulsory_subjects: frozenset[str] = frozenset()
    minimum_additional: int = Field(..., ge=0)
    total_minimum: int = Field(..., ge=0)
    allow_carryover: bool = False
    max_carryover: int = Field(0, ge=0)
    mode: Literal["auto", "recommend"] = "auto"

    @property
    def is_advisory(self) -> bool:
        return self.mode == "recommend"


class SubjectOutcome(BaseSchema):
    """Pass/fail detail for one subject."""

    subject: str
    score: Decimal
    passed: bool
    compulsory: bool


class PromotionDecision(BaseSchema):
    """Computed promotion status for one student."""

    student_id: int
    admission_number: str
    student_name: str
    cumulative_average: Decimal | None
    subjects_passed: int
    subjects_required: int
    status: PromotionStatus
    carryover_subjects: list[str] = []
    compulsory_failed: list[str] = []
    missing_compulsory: list[str] = []
    subjects: list[SubjectOutcome] = []
    remarks: str


# ==========================================
# Requests / responses
# ==========================================

class PromotionEvaluateRequest(BaseSchema):
    """Evaluate a class against a rule set."""

    class_level_id: int
    session_id: int
    term_id: int | None = None
    rules: PromotionRuleSet | None = None


class PromotionEvaluation(BaseSchema):
    """Evaluation response with the caller-side application hints."""

    class_level_id: int
    session_id: int
    term_id: int | None
    mode: Literal["auto", "recommend"]
    advisory: bool
    decisions: list[PromotionDecision]
    counts: dict[PromotionStatus, int]
    auto_apply_student_ids: list[int]


class PromotionApplyRequest(BaseSchema):
    """Bulk class change for selected students."""

    student_ids: list[int] = Field(..., min_length=1)
    from_class: str
    to_class: str
    session_id: int

    @model_validator(mode="after")
    def normalise_class_names(self) -> "PromotionApplyRequest":
        self.from_class = self.from_class.upper()
        self.to_class = self.to_class.upper()
        return self


class PromotionApplyResult(BaseSchema):
    """Outcome of a promotion application."""

    promoted: int
    graduated: int
    promoted_ids: list[int]
    failed_ids: list[int]
    failures: dict[int, str] = {}
