"""Score upload templates (CSV and Excel)."""

import csv
from io import BytesIO, StringIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from sqlalchemy.orm import Session

from academic_records.core.config import settings
from academic_records.models.upload import UploadType
from academic_records.services.directory import DirectoryService

# Header row for each pipeline; student_name is informational and ignored on import
TEMPLATE_HEADERS = {
    UploadType.CA_THEORY: ["admission_number", "student_name", "subject", "ca_score", "theory_score"],
    UploadType.EXAM: ["admission_number", "student_name", "subject_name", "exam_score"],
}


class TemplateService:
    """Builds upload templates pre-filled with a class's students and subjects."""

    def __init__(self, db: Session):
        self.db = db
        self.directory = DirectoryService(db)

    def _rows(self, upload_type: UploadType, class_level_id: int | None) -> list[list[str]]:
        if class_level_id is None:
            return []
        self.directory.get_class_level(class_level_id)
        students = self.directory.list_active_students(class_level_id)
        subjects = sorted(self.directory.subjects_by_name())
        blanks = [""] * (len(TEMPLATE_HEADERS[upload_type]) - 3)
        return [
            [student.admission_number, student.full_name, subject, *blanks]
            for student in students
            for subject in subjects
        ]

    def _limits_note(self, upload_type: UploadType) -> str:
        if upload_type == UploadType.CA_THEORY:
            return (
                f"# ca_score max {settings.CA_MAX_SCORE}, theory_score max {settings.THEORY_MAX_SCORE}. "
                "Leave a cell blank to keep the stored score."
            )
        return (
            f"# exam_score max {settings.EXAM_MAX_SCORE}; theory + exam max "
            f"{settings.WRITTEN_MAX_SCORE}. Upload CA/Theory scores first."
        )

    def generate_csv(self, upload_type: UploadType, class_level_id: int | None = None) -> bytes:
        """CSV template; the comment row is skipped on import."""
        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(TEMPLATE_HEADERS[upload_type])
        writer.writerow([self._limits_note(upload_type)])
        writer.writerows(self._rows(upload_type, class_level_id))
        return output.getvalue().encode("utf-8")

    def generate_excel(self, upload_type: UploadType, class_level_id: int | None = None) -> bytes:
        """Excel template with the header in row 1 and an instructions sheet."""
        wb = Workbook()
        ws = wb.active
        ws.title = "Scores"

        # Styles
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )
        center_align = Alignment(horizontal="center", vertical="center")

        headers = TEMPLATE_HEADERS[upload_type]
        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = center_align
            ws.column_dimensions[cell.column_letter].width = 25 if header == "student_name" else 16

        for row_idx, row in enumerate(self._rows(upload_type, class_level_id), start=2):
            for col_idx, value in enumerate(row, start=1):
                ws.cell(row=row_idx, column=col_idx, value=value or None).border = thin_border

        instructions_ws = wb.create_sheet("Instructions")
        instructions_ws.column_dimensions["A"].width = 20
        instructions_ws.column_dimensions["B"].width = 70
        instructions = [
            ("SCORE TEMPLATE INSTRUCTIONS", ""),
            ("", ""),
            ("admission_number", "Must match an active student (case-insensitive)"),
            ("student_name", "For reference only; ignored on import"),
            (headers[2], "Subject name, exactly as set up in the system"),
            ("", ""),
            ("LIMITS:", self._limits_note(upload_type).lstrip("# ")),
        ]
        for row_idx, (col1, col2) in enumerate(instructions, start=1):
            cell1 = instructions_ws.cell(row=row_idx, column=1, value=col1)
            instructions_ws.cell(row=row_idx, column=2, value=col2)
            if row_idx == 1:
                cell1.font = Font(bold=True, size=14)
            elif col1.endswith(":"):
                cell1.font = Font(bold=True)

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output.getvalue()
