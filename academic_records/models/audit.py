"""Audit log model."""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from academic_records.core.database import Base
from academic_records.models.base import IDMixin


class AuditAction(str, enum.Enum):
    """Audit action types."""

    # Score imports
    UPLOAD_COMPLETED = "UPLOAD_COMPLETED"
    UPLOAD_FAILED = "UPLOAD_FAILED"

    # Results
    POSITIONS_RECALCULATED = "POSITIONS_RECALCULATED"
    RESULT_CREATED = "RESULT_CREATED"
    RESULT_UPDATED = "RESULT_UPDATED"
    RESULT_DELETED = "RESULT_DELETED"

    # Promotion
    STUDENTS_PROMOTED = "STUDENTS_PROMOTED"

    # Academic setup
    SETUP_UPDATED = "SETUP_UPDATED"


class AuditLog(Base, IDMixin):
    """Append-only audit log model."""

    __tablename__ = "audit_logs"

    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction),
        nullable=False,
        index=True,
    )
    resource_type: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Additional context (JSON)
    extra_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Timestamp (append-only, no updated_at)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action})>"
