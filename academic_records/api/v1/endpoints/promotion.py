"""Promotion endpoints."""

from fastapi import APIRouter, Request

from academic_records.core.database import DbSession
from academic_records.models.audit import AuditAction
from academic_records.schemas.promotion import (
    PromotionApplyRequest,
    PromotionApplyResult,
    PromotionEvaluateRequest,
    PromotionEvaluation,
)
from academic_records.services.audit import AuditService
from academic_records.services.promotion import PromotionService

router = APIRouter()


@router.post("/evaluate", response_model=PromotionEvaluation)
def evaluate_promotion(request: PromotionEvaluateRequest, db: DbSession):
    """
    Evaluate every active student in a class against a rule set.

    Read-only. In ``recommend`` mode the decisions are identical but
    ``auto_apply_student_ids`` is empty; applying is always a separate call.
    """
    return PromotionService(db).evaluate_class(
        class_level_id=request.class_level_id,
        session_id=request.session_id,
        rules=request.rules,
        term_id=request.term_id,
    )


@router.post("/apply", response_model=PromotionApplyResult)
def apply_promotion(
    request: PromotionApplyRequest,
    db: DbSession,
    http_request: Request,
):
    """
    Move the selected students to the next class (or graduate SS3).

    Students that cannot be moved are listed in ``failed_ids`` with a reason.
    """
    result = PromotionService(db).apply_promotion(
        student_ids=request.student_ids,
        from_class=request.from_class,
        to_class=request.to_class,
        session_id=request.session_id,
    )

    AuditService(db).log(
        action=AuditAction.STUDENTS_PROMOTED,
        resource_type="student",
        description=(
            f"{request.from_class} -> {request.to_class}: {result.promoted} promoted, "
            f"{result.graduated} graduated, {len(result.failed_ids)} failed"
        ),
        metadata={
            "session_id": request.session_id,
            "promoted_ids": result.promoted_ids,
            "failed_ids": result.failed_ids,
        },
        ip_address=http_request.client.host if http_request.client else None,
    )
    return result
