"""Audit log endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query

from academic_records.core.database import DbSession
from academic_records.models.audit import AuditAction
from academic_records.schemas.audit import AuditLogFilter, AuditLogResponse
from academic_records.schemas.common import PaginatedResponse
from academic_records.services.audit import AuditService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[AuditLogResponse])
def list_audit_logs(
    db: DbSession,
    action: AuditAction | None = None,
    resource_type: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
):
    """List audit log entries, newest first."""
    filters = AuditLogFilter(
        action=action,
        resource_type=resource_type,
        date_from=date_from,
        date_to=date_to,
    )
    items, total = AuditService(db).list_logs(filters, page, page_size)
    return PaginatedResponse.build(items, total, page, page_size)
