"""Academic calendar and curriculum models."""

from datetime import date

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academic_records.core.database import Base
from academic_records.models.base import IDMixin, TimestampMixin


class AcademicSession(Base, IDMixin, TimestampMixin):
    """Academic session (school year), e.g. 2025/2026."""

    __tablename__ = "academic_sessions"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    terms: Mapped[list["Term"]] = relationship(
        "Term",
        back_populates="session",
        lazy="selectin",
        order_by="Term.order",
    )

    def __repr__(self) -> str:
        return f"<AcademicSession(id={self.id}, name={self.name})>"


class Term(Base, IDMixin, TimestampMixin):
    """Term within an academic session."""

    __tablename__ = "terms"

    session_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    session: Mapped["AcademicSession"] = relationship(
        "AcademicSession",
        back_populates="terms",
    )

    __table_args__ = (
        UniqueConstraint("session_id", "name", name="uq_term_session_name"),
    )

    def __repr__(self) -> str:
        return f"<Term(id={self.id}, session_id={self.session_id}, name={self.name})>"


class ClassLevel(Base, IDMixin, TimestampMixin):
    """Class level (JSS1 ... SS3), ordered for promotion."""

    __tablename__ = "class_levels"

    name: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<ClassLevel(id={self.id}, name={self.name})>"


class Subject(Base, IDMixin, TimestampMixin):
    """Subject, matched by exact name during score imports."""

    __tablename__ = "subjects"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Subject(id={self.id}, name={self.name})>"
