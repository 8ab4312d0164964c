"""Custom exception classes and error handling."""

from typing import Any

from fastapi import HTTPException, status

from academic_records.schemas.common import ErrorResponse


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail=ErrorResponse.of(code, message, self.details),
        )


class ValidationError(AppException):
    """Data validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class UploadError(AppException):
    """File upload failed before any row was processed."""

    def __init__(
        self,
        message: str = "Upload failed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="UPLOAD_FAILED",
            message=message,
            details=details,
        )


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(
        self,
        resource: str = "Resource",
        identifier: str | None = None,
    ):
        details = {}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            message=f"{resource} not found",
            details=details,
        )


# ==========================================
# Score pipeline errors
# ==========================================

class UnknownStudentError(AppException):
    """Admission number does not resolve to an active student."""

    def __init__(self, admission_number: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="UNKNOWN_STUDENT",
            message=f"Student {admission_number} not found or inactive",
            details={"admission_number": admission_number},
        )


class UnknownSubjectError(AppException):
    """Subject name does not match any subject exactly."""

    def __init__(self, subject_name: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="UNKNOWN_SUBJECT",
            message=f"Subject '{subject_name}' not found",
            details={"subject": subject_name},
        )


class InvalidValueError(AppException):
    """Score is non-numeric, negative or above its own ceiling."""

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="INVALID_VALUE",
            message=f"Invalid {field} '{value}': {reason}",
            details={"field": field, "value": str(value)},
        )


class ScoreCeilingExceededError(AppException):
    """Merged theory + exam scores exceed the written-paper ceiling."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="SCORE_CEILING_EXCEEDED",
            message=message,
            details=details,
        )


class NoRuleSetError(AppException):
    """Promotion evaluation requested without a rule set."""

    def __init__(self, message: str = "A promotion rule set is required"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="NO_RULE_SET",
            message=message,
        )
