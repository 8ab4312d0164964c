"""Audit logging service."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from academic_records.models.audit import AuditAction, AuditLog
from academic_records.schemas.audit import AuditLogFilter, AuditLogResponse


class AuditService:
    """Audit logging service - append-only."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        log = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            extra_data=metadata,
            ip_address=ip_address,
        )
        self.db.add(log)
        self.db.flush()
        return log

    def list_logs(
        self,
        filters: AuditLogFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[AuditLogResponse], int]:
        """List audit logs with filtering."""
        query = select(AuditLog)

        if filters:
            if filters.action:
                query = query.where(AuditLog.action == filters.action)
            if filters.resource_type:
                query = query.where(AuditLog.resource_type == filters.resource_type)
            if filters.date_from:
                query = query.where(AuditLog.created_at >= filters.date_from)
            if filters.date_to:
                query = query.where(AuditLog.created_at <= filters.date_to)

        # Count total
        count_result = self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = (
            query
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        logs = self.db.execute(query).scalars().all()

        return [AuditLogResponse.model_validate(log) for log in logs], total
