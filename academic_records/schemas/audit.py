"""Audit log schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field

from academic_records.models.audit import AuditAction
from academic_records.schemas.common import BaseSchema


class AuditLogResponse(BaseSchema):
    """Audit log response schema."""

    id: int
    action: AuditAction
    resource_type: str
    resource_id: str | None
    description: str | None
    extra_data: dict[str, Any] | None = Field(None, serialization_alias="metadata")
    ip_address: str | None
    created_at: datetime


class AuditLogFilter(BaseSchema):
    """Audit log filtering options."""

    action: AuditAction | None = None
    resource_type: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
