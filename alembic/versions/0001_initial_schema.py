"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

Creates the academic directory, exam results, score upload tracking and
audit tables, and seeds the JSS1-SS3 class levels.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CLASS_LEVELS = [
    ("JSS1", 1),
    ("JSS2", 2),
    ("JSS3", 3),
    ("SS1", 4),
    ("SS2", 5),
    ("SS3", 6),
]

upload_type = sa.Enum("CA_THEORY", "EXAM", name="uploadtype")
upload_status = sa.Enum("SUCCESS", "FAILED", "PARTIAL", "PROCESSING", name="uploadstatus")
audit_action = sa.Enum(
    "UPLOAD_COMPLETED",
    "UPLOAD_FAILED",
    "POSITIONS_RECALCULATED",
    "RESULT_CREATED",
    "RESULT_UPDATED",
    "RESULT_DELETED",
    "STUDENTS_PROMOTED",
    "SETUP_UPDATED",
    name="auditaction",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "academic_sessions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "terms",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "session_id",
            sa.BigInteger(),
            sa.ForeignKey("academic_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "name", name="uq_term_session_name"),
    )
    op.create_index("ix_terms_session_id", "terms", ["session_id"])

    class_levels = op.create_table(
        "class_levels",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("name", sa.String(20), nullable=False, unique=True),
        sa.Column("order", sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "subjects",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("code", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("admission_number", sa.String(50), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "class_level_id",
            sa.BigInteger(),
            sa.ForeignKey("class_levels.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "enrollment_session_id",
            sa.BigInteger(),
            sa.ForeignKey("academic_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_graduated", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_students_admission_number", "students", ["admission_number"], unique=True)
    op.create_index("ix_students_class_level_id", "students", ["class_level_id"])

    op.create_table(
        "score_uploads",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("upload_type", upload_type, nullable=False),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column(
            "session_id",
            sa.BigInteger(),
            sa.ForeignKey("academic_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "term_id",
            sa.BigInteger(),
            sa.ForeignKey("terms.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", upload_status, nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=True),
        sa.Column("created_rows", sa.Integer(), nullable=True),
        sa.Column("updated_rows", sa.Integer(), nullable=True),
        sa.Column("failed_rows", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_score_uploads_session_id", "score_uploads", ["session_id"])
    op.create_index("ix_score_uploads_term_id", "score_uploads", ["term_id"])

    op.create_table(
        "score_upload_errors",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "upload_id",
            sa.BigInteger(),
            sa.ForeignKey("score_uploads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("admission_number", sa.String(50), nullable=True),
        sa.Column("error_type", sa.String(100), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=False),
    )
    op.create_index("ix_score_upload_errors_upload_id", "score_upload_errors", ["upload_id"])

    op.create_table(
        "exam_results",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "student_id",
            sa.BigInteger(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subject_id",
            sa.BigInteger(),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "session_id",
            sa.BigInteger(),
            sa.ForeignKey("academic_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "term_id",
            sa.BigInteger(),
            sa.ForeignKey("terms.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "class_level_id",
            sa.BigInteger(),
            sa.ForeignKey("class_levels.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("ca_score", sa.DECIMAL(5, 2), nullable=True),
        sa.Column("theory_score", sa.DECIMAL(5, 2), nullable=True),
        sa.Column("exam_score", sa.DECIMAL(5, 2), nullable=True),
        sa.Column("total_score", sa.DECIMAL(5, 1), nullable=True),
        sa.Column("grade", sa.String(2), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("total_students", sa.Integer(), nullable=True),
        sa.Column("class_average", sa.DECIMAL(5, 2), nullable=True),
        sa.Column("highest_score", sa.DECIMAL(5, 1), nullable=True),
        sa.Column("lowest_score", sa.DECIMAL(5, 1), nullable=True),
        sa.Column(
            "upload_id",
            sa.BigInteger(),
            sa.ForeignKey("score_uploads.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "student_id", "subject_id", "session_id", "term_id",
            name="uq_exam_result_identity",
        ),
    )
    for column in ("student_id", "subject_id", "session_id", "term_id", "class_level_id", "upload_id"):
        op.create_index(f"ix_exam_results_{column}", "exam_results", [column])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("action", audit_action, nullable=False),
        sa.Column("resource_type", sa.String(100), nullable=False),
        sa.Column("resource_id", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("extra_data", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.bulk_insert(
        class_levels,
        [{"name": name, "order": order} for name, order in CLASS_LEVELS],
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("exam_results")
    op.drop_table("score_upload_errors")
    op.drop_table("score_uploads")
    op.drop_table("students")
    op.drop_table("subjects")
    op.drop_table("class_levels")
    op.drop_table("terms")
    op.drop_table("academic_sessions")

    bind = op.get_bind()
    for enum_type in (audit_action, upload_status, upload_type):
        enum_type.drop(bind, checkfirst=True)
