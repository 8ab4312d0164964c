"""Score upload tracking models."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academic_records.core.database import Base
from academic_records.models.base import IDMixin, TimestampMixin


class UploadStatus(str, enum.Enum):
    """Upload status enumeration."""

    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"
    PROCESSING = "processing"


class UploadType(str, enum.Enum):
    """Score pipeline the batch belongs to."""

    CA_THEORY = "ca_theory"
    EXAM = "exam"


class ScoreUpload(Base, IDMixin, TimestampMixin):
    """One imported score batch."""

    __tablename__ = "score_uploads"

    upload_type: Mapped[UploadType] = mapped_column(
        Enum(UploadType),
        nullable=False,
    )
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    session_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    term_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("terms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[UploadStatus] = mapped_column(
        Enum(UploadStatus),
        default=UploadStatus.PROCESSING,
        nullable=False,
    )
    total_rows: Mapped[int] = mapped_column(Integer, default=0)
    created_rows: Mapped[int] = mapped_column(Integer, default=0)
    updated_rows: Mapped[int] = mapped_column(Integer, default=0)
    failed_rows: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Processing timestamps
    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    processing_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    errors: Mapped[list["ScoreUploadError"]] = relationship(
        "ScoreUploadError",
        back_populates="upload",
        lazy="selectin",
    )

    @property
    def successful_rows(self) -> int:
        return (self.created_rows or 0) + (self.updated_rows or 0)

    def __repr__(self) -> str:
        return f"<ScoreUpload(id={self.id}, type={self.upload_type}, status={self.status})>"


class ScoreUploadError(Base, IDMixin):
    """Row-level upload error model."""

    __tablename__ = "score_upload_errors"

    upload_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("score_uploads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    admission_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_type: Mapped[str] = mapped_column(String(100), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    upload: Mapped["ScoreUpload"] = relationship("ScoreUpload", back_populates="errors")

    def __repr__(self) -> str:
        return f"<ScoreUploadError(upload_id={self.upload_id}, row={self.row_number})>"
