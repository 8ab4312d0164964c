"""Common schema utilities and base classes."""

import math
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


T = TypeVar("T")


class PaginatedResponse(BaseSchema, Generic[T]):
    """Paginated response wrapper."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: list[T], total: int, page: int, page_size: int) -> "PaginatedResponse[T]":
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )


class ErrorDetail(BaseSchema):
    """Error detail structure."""

    code: str
    message: str
    details: dict[str, Any] = {}


class ErrorResponse(BaseSchema):
    """Standard error body: ``{"success": false, "error": {...}}``."""

    success: bool = False
    error: ErrorDetail

    @classmethod
    def of(cls, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
        return cls(error=ErrorDetail(code=code, message=message, details=details or {})).model_dump()


class MessageResponse(BaseSchema):
    """Simple message response."""

    message: str
