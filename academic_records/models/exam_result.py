"""Aggregated exam result model."""

from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academic_records.core.database import Base
from academic_records.models.base import IDMixin, TimestampMixin


class ExamResult(Base, IDMixin, TimestampMixin):
    """One authoritative result per student, subject, session and term.

    Score components arrive from two independent pipelines (CA/Theory and
    Exam) and are merged field by field. ``total_score`` and ``grade`` are
    only set once all three components are known.
    """

    __tablename__ = "exam_results"

    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
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
    # Class the student was in when the result was first recorded
    class_level_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("class_levels.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Components
    ca_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)
    theory_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)
    exam_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)

    # Derived on merge
    total_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 1), nullable=True)
    grade: Mapped[str | None] = mapped_column(String(2), nullable=True)

    # Derived on ranking
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_students: Mapped[int | None] = mapped_column(Integer, nullable=True)
    class_average: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)
    highest_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 1), nullable=True)
    lowest_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 1), nullable=True)

    # Upload tracking
    upload_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("score_uploads.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student", lazy="selectin")
    subject: Mapped["Subject"] = relationship("Subject", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", "session_id", "term_id",
            name="uq_exam_result_identity",
        ),
    )

    @property
    def is_complete(self) -> bool:
        """All three components have been supplied."""
        return (
            self.ca_score is not None
            and self.theory_score is not None
            and self.exam_score is not None
        )

    def __repr__(self) -> str:
        return (
            f"<ExamResult(student_id={self.student_id}, subject_id={self.subject_id}, "
            f"session_id={self.session_id}, term_id={self.term_id}, total={self.total_score})>"
        )


# Import to avoid circular imports
from academic_records.models.academics import Subject
from academic_records.models.student import Student
