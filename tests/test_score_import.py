"""Tests for CA/Theory and Exam score imports."""

from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook
from sqlalchemy import select

from academic_records.core.exceptions import UploadError, ValidationError
from academic_records.models.academics import AcademicSession, Term
from academic_records.models.exam_result import ExamResult
from academic_records.models.upload import ScoreUpload, ScoreUploadError, UploadStatus, UploadType
from academic_records.services.score_import import ScoreImportService


@pytest.fixture
def students(make_student):
    return {
        "ada": make_student("JSS1/001", "Ada Obi"),
        "bayo": make_student("JSS1/002", "Bayo Ade"),
    }


@pytest.fixture
def service(db, students, subjects):
    return ScoreImportService(db)


def ca_row(admission, subject, ca, theory):
    return {"admission_number": admission, "subject": subject, "ca_score": ca, "theory_score": theory}


def exam_row(admission, subject, exam):
    return {"admission_number": admission, "subject_name": subject, "exam_score": exam}


def get_result(db, student, subject):
    return db.execute(
        select(ExamResult).where(ExamResult.student_id == student.id, ExamResult.subject_id == subject.id)
    ).scalar_one()


class TestCATheoryImport:
    def test_creates_results(self, db, service, students, subjects, academic_session, first_term):
        report = service.import_ca_theory(
            [
                ca_row("JSS1/001", "Mathematics", "25", "35"),
                ca_row("JSS1/002", "Mathematics", 20, 30.5),
            ],
            academic_session.id,
            first_term.id,
        )

        assert (report.created, report.updated, report.failed) == (2, 0, 0)
        assert report.status == UploadStatus.SUCCESS
        assert report.upload_type == UploadType.CA_THEORY

        result = get_result(db, students["bayo"], subjects["Mathematics"])
        assert result.theory_score == Decimal("30.5")
        assert result.exam_score is None
        assert result.total_score is None

    def test_resubmission_updates_without_change(self, db, service, students, subjects, academic_session, first_term):
        rows = [ca_row("JSS1/001", "English", "22", "31")]
        service.import_exam([exam_row("JSS1/001", "English", "24")], academic_session.id, first_term.id)
        service.import_ca_theory(rows, academic_session.id, first_term.id)
        total = get_result(db, students["ada"], subjects["English"]).total_score

        report = service.import_ca_theory(rows, academic_session.id, first_term.id)
        assert (report.created, report.updated) == (0, 1)
        assert get_result(db, students["ada"], subjects["English"]).total_score == total == Decimal("77.0")

    def test_blank_cell_leaves_field_untouched(self, db, service, students, subjects, academic_session, first_term):
        service.import_ca_theory([ca_row("JSS1/001", "Physics", "25", "35")], academic_session.id, first_term.id)
        report = service.import_ca_theory([ca_row("JSS1/001", "Physics", "", "30")], academic_session.id, first_term.id)

        assert report.updated == 1
        result = get_result(db, students["ada"], subjects["Physics"])
        assert result.ca_score == Decimal("25")
        assert result.theory_score == Decimal("30")

    def test_admission_number_normalised(self, service, academic_session, first_term):
        report = service.import_ca_theory(
            [ca_row("  jss1/001 ", "Mathematics", "10", "10")], academic_session.id, first_term.id
        )
        assert report.created == 1


class TestRowErrors:
    def test_bad_rows_reported_and_good_rows_kept(self, db, service, academic_session, first_term):
        report = service.import_ca_theory(
            [
                ca_row("JSS1/001", "Mathematics", "25", "35"),
                ca_row("JSS1/999", "Mathematics", "25", "35"),
                ca_row("JSS1/002", "mathematics", "25", "35"),
                ca_row("JSS1/002", "English", "abc", "35"),
                ca_row("JSS1/002", "Physics", "31", "35"),
                ca_row("JSS1/002", "Biology", "10", "-2"),
                ca_row("JSS1/002", "Chemistry", "", ""),
            ],
            academic_session.id,
            first_term.id,
        )

        assert report.status == UploadStatus.PARTIAL
        assert (report.created, report.updated, report.failed) == (1, 0, 6)
        assert [(e.row, e.error_type) for e in report.errors] == [
            (3, "UNKNOWN_STUDENT"),
            (4, "UNKNOWN_SUBJECT"),
            (5, "INVALID_VALUE"),
            (6, "INVALID_VALUE"),
            (7, "INVALID_VALUE"),
            (8, "INVALID_VALUE"),
        ]
        assert report.errors[0].admission_number == "JSS1/999"

        stored = db.execute(
            select(ScoreUploadError).where(ScoreUploadError.upload_id == report.upload_id)
        ).scalars().all()
        assert len(stored) == 6
        assert len(db.execute(select(ExamResult)).scalars().all()) == 1

    def test_inactive_student_is_unknown(self, make_student, service, academic_session, first_term):
        make_student("JSS1/050", "Left School", is_active=False)
        report = service.import_exam([exam_row("JSS1/050", "Mathematics", "20")], academic_session.id, first_term.id)

        assert report.status == UploadStatus.FAILED
        assert report.errors[0].error_type == "UNKNOWN_STUDENT"

    def test_exam_above_limit_rejected(self, service, academic_session, first_term):
        report = service.import_exam([exam_row("JSS1/001", "Mathematics", "30.5")], academic_session.id, first_term.id)
        assert report.failed == 1
        assert report.errors[0].error_type == "INVALID_VALUE"


class TestExamImport:
    def test_exam_completes_results(self, db, service, students, subjects, academic_session, first_term):
        service.import_ca_theory(
            [ca_row("JSS1/001", "Mathematics", "25", "35"), ca_row("JSS1/002", "Mathematics", "10", "15")],
            academic_session.id,
            first_term.id,
        )
        report = service.import_exam(
            [exam_row("JSS1/001", "Mathematics", "28"), exam_row("JSS1/002", "Mathematics", "12")],
            academic_session.id,
            first_term.id,
        )

        assert (report.created, report.updated) == (0, 2)
        assert report.missing_ca_scores == []
        ada = get_result(db, students["ada"], subjects["Mathematics"])
        bayo = get_result(db, students["bayo"], subjects["Mathematics"])
        assert (ada.total_score, ada.grade) == (Decimal("88.0"), "A")
        assert (bayo.total_score, bayo.grade) == (Decimal("37.0"), "F")

    def test_exam_before_ca_reports_missing(self, service, academic_session, first_term):
        report = service.import_exam([exam_row("JSS1/001", "Biology", "20")], academic_session.id, first_term.id)

        assert report.created == 1
        assert [(m.admission_number, m.subject) for m in report.missing_ca_scores] == [("JSS1/001", "Biology")]

    def test_no_ranking_during_import(self, db, service, students, subjects, academic_session, first_term):
        service.import_ca_theory([ca_row("JSS1/001", "English", "20", "30")], academic_session.id, first_term.id)
        service.import_exam([exam_row("JSS1/001", "English", "20")], academic_session.id, first_term.id)
        assert get_result(db, students["ada"], subjects["English"]).position is None


class TestBatchErrors:
    def test_missing_columns_abort_before_writes(self, db, service, academic_session, first_term):
        with pytest.raises(UploadError) as exc_info:
            service.import_exam(
                [{"admission_number": "JSS1/001", "subject": "Mathematics", "exam_score": "20"}],
                academic_session.id,
                first_term.id,
            )
        assert "subject_name" in exc_info.value.message
        assert db.execute(select(ScoreUpload)).scalars().all() == []

    def test_empty_batch_rejected(self, service, academic_session, first_term):
        with pytest.raises(UploadError):
            service.import_ca_theory([], academic_session.id, first_term.id)

    def test_term_from_other_session(self, db, service, academic_session):
        other = AcademicSession(name="2024/2025")
        db.add(other)
        db.flush()
        term = Term(session_id=other.id, name="First Term", order=1)
        db.add(term)
        db.flush()

        with pytest.raises(ValidationError):
            service.import_exam([exam_row("JSS1/001", "Mathematics", "20")], academic_session.id, term.id)

    def test_unexpected_error_is_not_reported_as_upload_error(self, service, academic_session, first_term, monkeypatch):
        def broken_merge(*args, **kwargs):
            raise RuntimeError("connection lost")

        monkeypatch.setattr(service.merge_store, "merge", broken_merge)
        with pytest.raises(RuntimeError, match="connection lost"):
            service.import_ca_theory(
                [ca_row("JSS1/001", "Mathematics", "25", "35")],
                academic_session.id,
                first_term.id,
            )


class TestFileImport:
    def test_csv_with_bom_comments_and_blank_lines(self, service, academic_session, first_term):
        content = (
            "\ufeffAdmission_Number,Subject,CA_Score,Theory_Score,Student_Name\n"
            "# ca_score max 30\n"
            "\n"
            "JSS1/001,Mathematics,25,35,Ada Obi\n"
            "JSS1/999,Mathematics,25,35,Nobody\n"
        ).encode("utf-8")

        report = service.import_file(
            UploadType.CA_THEORY, content, "scores.csv", academic_session.id, first_term.id
        )

        assert report.total_rows == 2
        assert report.created == 1
        assert report.errors[0].row == 5

    def test_excel_upload(self, db, service, students, subjects, academic_session, first_term):
        wb = Workbook()
        ws = wb.active
        ws.append(["admission_number", "student_name", "subject_name", "exam_score"])
        ws.append(["JSS1/001", "Ada Obi", "Geography", 27.5])
        ws.append([None, None, None, None])
        ws.append(["JSS1/002", "Bayo Ade", "Geography", 18])
        buffer = BytesIO()
        wb.save(buffer)

        report = service.import_file(
            UploadType.EXAM, buffer.getvalue(), "exam.xlsx", academic_session.id, first_term.id
        )

        assert (report.created, report.failed) == (2, 0)
        assert get_result(db, students["ada"], subjects["Geography"]).exam_score == Decimal("27.5")

    def test_unsupported_extension(self, service, academic_session, first_term):
        with pytest.raises(UploadError):
            service.import_file(UploadType.EXAM, b"data", "scores.pdf", academic_session.id, first_term.id)

    def test_invalid_encoding(self, service, academic_session, first_term):
        with pytest.raises(UploadError):
            service.import_file(
                UploadType.EXAM, "é".encode("latin-1"), "scores.csv", academic_session.id, first_term.id
            )
