"""Database models package."""

from academic_records.models.academics import AcademicSession, ClassLevel, Subject, Term
from academic_records.models.audit import AuditAction, AuditLog
from academic_records.models.exam_result import ExamResult
from academic_records.models.student import Student
from academic_records.models.upload import ScoreUpload, ScoreUploadError, UploadStatus, UploadType

__all__ = [
    # Academics
    "AcademicSession",
    "Term",
    "ClassLevel",
    "Subject",
    # Student
    "Student",
    # Results
    "ExamResult",
    # Upload
    "ScoreUpload",
    "ScoreUploadError",
    "UploadStatus",
    "UploadType",
    # Audit
    "AuditLog",
    "AuditAction",
]
