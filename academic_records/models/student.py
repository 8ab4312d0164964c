"""Student model."""

from sqlalchemy import BigInteger, Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academic_records.core.database import Base
from academic_records.models.base import IDMixin, TimestampMixin


class Student(Base, IDMixin, TimestampMixin):
    """Student directory entry as seen by the results engine."""

    __tablename__ = "students"

    admission_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    class_level_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("class_levels.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    enrollment_session_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("academic_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_graduated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    class_level: Mapped["ClassLevel | None"] = relationship("ClassLevel", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, admission_number={self.admission_number})>"


# Import to avoid circular imports
from academic_records.models.academics import ClassLevel
