"""Academic setup schemas."""

from datetime import date

from pydantic import Field, model_validator

from academic_records.schemas.common import BaseSchema


class AcademicSessionCreate(BaseSchema):
    """Session creation schema."""

    name: str = Field(..., min_length=1, max_length=50)
    start_date: date | None = None
    end_date: date | None = None
    is_current: bool = False

    @model_validator(mode="after")
    def check_dates(self) -> "AcademicSessionCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AcademicSessionResponse(BaseSchema):
    id: int
    name: str
    start_date: date | None
    end_date: date | None
    is_current: bool


class TermCreate(BaseSchema):
    """Term creation schema."""

    session_id: int
    name: str = Field(..., min_length=1, max_length=50)
    order: int = Field(1, ge=1, le=3)
    start_date: date | None = None
    end_date: date | None = None
    is_current: bool = False


class TermResponse(BaseSchema):
    id: int
    session_id: int
    name: str
    order: int
    is_current: bool


class ClassLevelResponse(BaseSchema):
    id: int
    name: str
    order: int


class SubjectCreate(BaseSchema):
    """Subject creation schema."""

    name: str = Field(..., min_length=1, max_length=100)
    code: str | None = Field(None, max_length=20)


class SubjectResponse(BaseSchema):
    id: int
    name: str
    code: str | None
    is_active: bool


class StudentCreate(BaseSchema):
    """Student directory entry."""

    admission_number: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)
    class_level_id: int | None = None
    enrollment_session_id: int | None = None


class StudentResponse(BaseSchema):
    id: int
    admission_number: str
    full_name: str
    class_level_id: int | None
    enrollment_session_id: int | None
    is_active: bool
    is_graduated: bool
