"""Grade service: grade records, bulk upserts, GPA/GPAX and grade sheets."""

import logging
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.core.exceptions import AppException, ConflictError, NotFoundError, UploadError, ValidationError
from gradebook.models.grade import Grade
from gradebook.models.subject import SubjectInstance
from gradebook.schemas.grade import (
    BulkGradeResponse,
    BulkGradeRow,
    BulkGradeRowResult,
    GpaGradeEntry,
    GpaResponse,
    GpaxResponse,
    GradeCreate,
    GradeSheetUploadError,
    GradeSheetUploadResult,
    GradeUpdate,
    SemesterGpa,
)
from gradebook.services.calendar import AcademicCalendarService
from gradebook.services.enrollment import EnrollmentService
from gradebook.services.grading import calculate_total, round_half_up, to_decimal, weighted_grade_point_average

logger = logging.getLogger(__name__)

COMPONENT_FIELDS = ("classwork_score", "midterm_score", "final_score", "behavior_score")
COMPONENT_MAX = Decimal("100")

# Grade sheet columns: (header, row field)
SHEET_COLUMNS = [
    ("Student Code", "student_code"),
    ("Student Name", None),
    ("Classwork", "classwork_score"),
    ("Midterm", "midterm_score"),
    ("Final", "final_score"),
    ("Behavior", "behavior_score"),
    ("Remarks", "remarks"),
    ("Total (Auto)", None),
    ("Grade (Auto)", None),
]


class GradeService:
    """Grade record management and GPA aggregation."""

    def __init__(self, db: Session):
        self.db = db
        self.calendar = AcademicCalendarService(db)
        self.enrollment = EnrollmentService(db)

    # ==========================================
    # Grade Records
    # ==========================================

    def get_grade(self, grade_id: int) -> Grade:
        """Get grade record by ID."""
        grade = self.db.get(Grade, grade_id)
        if not grade:
            raise NotFoundError("Grade", str(grade_id))
        return grade

    def create_grade(self, request: GradeCreate) -> Grade:
        """Create a grade record with its derived fields."""
        self._validate_references(request.student_id, request.subject_instance_id, request.grading_period_id)

        existing = self._get_existing_grade(
            request.student_id, request.subject_instance_id, request.grading_period_id
        )
        if existing:
            raise ConflictError(
                "Grade record already exists for this student, subject and grading period",
                details={"grade_id": existing.id},
            )

        grade = Grade(**request.model_dump())
        self._apply_derived(grade)
        self.db.add(grade)
        self.db.flush()
        self.db.refresh(grade)
        return grade

    def update_grade(self, grade_id: int, request: GradeUpdate) -> Grade:
        """Merge a partial update into the stored row and re-derive."""
        grade = self.get_grade(grade_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(grade, field, value)
        self._apply_derived(grade)
        self.db.flush()
        self.db.refresh(grade)
        return grade

    def bulk_upsert(self, rows: list[BulkGradeRow]) -> BulkGradeResponse:
        """Create or update grade records row by row.

        Each row runs in its own savepoint: a failing row is reported and
        rolled back while the others are kept.
        """
        results: list[BulkGradeRowResult] = []
        successful = 0
        failed = 0

        for index, row in enumerate(rows):
            try:
                with self.db.begin_nested():
                    grade, created = self._upsert_row(row)
            except AppException as e:
                results.append(self._failed_row(index, row, e.message))
                failed += 1
                continue
            except SQLAlchemyError as e:
                logger.warning(f"[GRADE BULK] Row {index} rejected by the database: {e}")
                results.append(self._failed_row(index, row, "Could not save grade record"))
                failed += 1
                continue

            results.append(BulkGradeRowResult(
                index=index,
                student_id=row.student_id,
                subject_instance_id=row.subject_instance_id,
                grading_period_id=row.grading_period_id,
                status="created" if created else "updated",
                grade_id=grade.id,
                grade_label=grade.grade_label,
            ))
            successful += 1

        logger.info(f"[GRADE BULK] Completed: {successful} OK, {failed} failed")

        return BulkGradeResponse(
            total_records=len(rows),
            successful=successful,
            failed=failed,
            results=results,
            message=f"Saved {successful} of {len(rows)} grade records.",
        )

    def list_student_grades(self, student_id: int, semester_id: int | None = None) -> list[Grade]:
        """A student's grade records, optionally for one semester."""
        self.enrollment.get_student(student_id)
        query = select(Grade).where(Grade.student_id == student_id)
        if semester_id is not None:
            query = query.join(SubjectInstance, Grade.subject_instance_id == SubjectInstance.id).where(
                SubjectInstance.semester_id == semester_id,
            )
        result = self.db.execute(query.order_by(Grade.subject_instance_id, Grade.id))
        return list(result.scalars().all())

    def list_subject_instance_grades(
        self,
        subject_instance_id: int,
        grading_period_id: int | None = None,
    ) -> list[Grade]:
        self.calendar.get_subject_instance(subject_instance_id)
        query = select(Grade).where(Grade.subject_instance_id == subject_instance_id)
        if grading_period_id is not None:
            query = query.where(Grade.grading_period_id == grading_period_id)
        result = self.db.execute(query.order_by(Grade.student_id, Grade.id))
        return list(result.scalars().all())

    def recompute_all(self) -> int:
        """Re-derive every stored grade row. Returns the number of rows touched."""
        count = 0
        for grade in self.db.execute(select(Grade).order_by(Grade.id)).scalars():
            self._apply_derived(grade)
            count += 1
        self.db.flush()
        logger.info(f"[GRADE] Recomputed derived fields for {count} grade records")
        return count

    # ==========================================
    # GPA / GPAX
    # ==========================================

    def calculate_gpa(self, student_id: int, semester_id: int) -> GpaResponse:
        """Credit-weighted GPA of one semester."""
        self.enrollment.get_student(student_id)
        self.calendar.get_semester(semester_id)

        grades = self._graded_rows(student_id, semester_id)
        gpa, total_credits = weighted_grade_point_average(
            (g.grade_point, self.calendar.credits_of(g.subject_instance_id)) for g in grades
        )

        return GpaResponse(
            student_id=student_id,
            semester_id=semester_id,
            gpa=gpa,
            total_credits=total_credits,
            grades=[self._gpa_entry(g) for g in grades],
        )

    def calculate_gpax(self, student_id: int) -> GpaxResponse:
        """Cumulative GPA over every semester with a per-semester breakdown.

        Every graded row counts, so a subject instance graded both per period
        and in aggregate is counted more than once.
        """
        self.enrollment.get_student(student_id)

        grades = self._graded_rows(student_id)
        gpax, total_credits = weighted_grade_point_average(
            (g.grade_point, self.calendar.credits_of(g.subject_instance_id)) for g in grades
        )

        by_semester: dict[int, list[Grade]] = defaultdict(list)
        for g in grades:
            by_semester[g.subject_instance.semester_id].append(g)

        semesters = []
        for semester_id, semester_grades in by_semester.items():
            semester = self.calendar.get_semester(semester_id)
            gpa, credits = weighted_grade_point_average(
                (g.grade_point, self.calendar.credits_of(g.subject_instance_id)) for g in semester_grades
            )
            semesters.append(SemesterGpa(
                semester_id=semester.id,
                academic_year=semester.academic_year.year,
                semester_number=semester.number,
                gpa=gpa,
                total_credits=credits,
            ))
        semesters.sort(key=lambda s: (s.academic_year, s.semester_number))

        return GpaxResponse(
            student_id=student_id,
            gpax=gpax,
            total_credits=total_credits,
            semesters=semesters,
        )

    # ==========================================
    # Grade Sheet Template
    # ==========================================

    def generate_template(
        self,
        subject_instance_id: int,
        grading_period_id: int | None = None,
    ) -> bytes:
        """Generate the Excel grade sheet for a subject instance.

        Rows are pre-filled with the enrolled students and any scores already
        recorded for the grading period.
        """
        instance = self.calendar.get_subject_instance(subject_instance_id)
        period = None
        if grading_period_id is not None:
            period = self.calendar.get_grading_period(grading_period_id)

        wb = Workbook()
        ws = wb.active
        ws.title = "Grades"

        # Styles
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        auto_fill = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )
        center_align = Alignment(horizontal="center", vertical="center")

        for col_idx, (header, _) in enumerate(SHEET_COLUMNS, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = center_align

        existing = {
            g.student_id: g
            for g in self.list_subject_instance_grades(subject_instance_id)
            if g.grading_period_id == grading_period_id
        }

        students = self.enrollment.students_in_subject_instance(subject_instance_id)
        for row_idx, student in enumerate(students, start=2):
            grade = existing.get(student.id)
            values = [
                student.student_code,
                student.full_name,
                grade.classwork_score if grade else None,
                grade.midterm_score if grade else None,
                grade.final_score if grade else None,
                grade.behavior_score if grade else None,
                grade.remarks if grade else None,
                grade.total_score if grade else None,
                grade.grade_label if grade else None,
            ]
            for col_idx, value in enumerate(values, start=1):
                if isinstance(value, Decimal):
                    value = float(value)
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = thin_border
                if SHEET_COLUMNS[col_idx - 1][1] is None and col_idx > 2:
                    cell.fill = auto_fill

        column_widths = {"A": 15, "B": 30, "C": 12, "D": 12, "E": 12, "F": 12, "G": 30, "H": 14, "I": 14}
        for col, width in column_widths.items():
            ws.column_dimensions[col].width = width

        # Instructions sheet
        instructions_ws = wb.create_sheet("Instructions")
        instructions_ws.column_dimensions["A"].width = 25
        instructions_ws.column_dimensions["B"].width = 60

        subject = instance.subject
        instructions = [
            ("GRADE SHEET INSTRUCTIONS", ""),
            ("", ""),
            ("Subject", f"{subject.code} - {subject.name}"),
            ("Subject instance ID", str(instance.id)),
            ("Grading period", period.name if period else "Whole subject (no grading period)"),
            ("", ""),
            ("COLUMNS:", ""),
            ("Student Code", "Required. Must match an enrolled student"),
            ("Classwork", "0-100, weighted 30%"),
            ("Midterm", "0-100, weighted 20%"),
            ("Final", "0-100, weighted 50%"),
            ("Behavior", "0-100, recorded only, not part of the total"),
            ("Remarks", "Optional"),
            ("Total (Auto) / Grade (Auto)", "Ignored on upload, recalculated by the system"),
            ("", ""),
            ("Empty score cells keep the value already stored.", ""),
        ]
        for row_idx, (col1, col2) in enumerate(instructions, start=1):
            cell1 = instructions_ws.cell(row=row_idx, column=1, value=col1)
            instructions_ws.cell(row=row_idx, column=2, value=col2)
            if row_idx == 1:
                cell1.font = Font(bold=True, size=14)
            elif col1 and col1.endswith(":"):
                cell1.font = Font(bold=True)

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output.getvalue()

    # ==========================================
    # Grade Sheet Upload
    # ==========================================

    def process_excel_upload(
        self,
        subject_instance_id: int,
        file_content: bytes,
        grading_period_id: int | None = None,
    ) -> GradeSheetUploadResult:
        """Read a filled-in grade sheet and feed it through the bulk upsert."""
        logger.info(
            f"[GRADE UPLOAD] Starting - subject_instance_id={subject_instance_id}, "
            f"grading_period_id={grading_period_id}, file_size={len(file_content)} bytes"
        )
        self.calendar.get_subject_instance(subject_instance_id)
        if grading_period_id is not None:
            self.calendar.get_grading_period(grading_period_id)

        try:
            wb = load_workbook(BytesIO(file_content), data_only=True)
            ws = wb.active
        except Exception as e:
            logger.error(f"[GRADE UPLOAD] Failed to load Excel: {str(e)}")
            raise UploadError(f"Invalid Excel file: {str(e)}")

        headers = [str(cell.value).strip().lower() if cell.value else "" for cell in ws[1]]
        col_map = self._map_columns(headers)
        logger.info(f"[GRADE UPLOAD] Column mapping: {col_map}")

        if col_map["student_code"] is None:
            raise UploadError("Missing required column: Student Code")

        students_by_code = {
            s.student_code.strip().lower(): s
            for s in self.enrollment.students_in_subject_instance(subject_instance_id)
        }

        errors: list[GradeSheetUploadError] = []
        failed_rows = 0
        skipped_rows = 0
        parsed: list[tuple[int, str, BulkGradeRow]] = []

        for row_num, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
            if not any(v not in (None, "") for v in row):
                skipped_rows += 1
                continue

            code = self._cell(row, col_map["student_code"])
            if code is None:
                skipped_rows += 1
                continue
            code = str(code).strip()

            student = students_by_code.get(code.lower())
            if not student:
                errors.append(GradeSheetUploadError(
                    row=row_num,
                    student_code=code,
                    column="Student Code",
                    message=f"Student '{code}' is not enrolled in this subject",
                ))
                failed_rows += 1
                continue

            values: dict[str, Any] = {}
            row_error = None
            for field in COMPONENT_FIELDS:
                raw = self._cell(row, col_map[field])
                if raw is None:
                    continue
                try:
                    values[field] = to_decimal(raw)
                    if not values[field].is_finite():
                        raise InvalidOperation(raw)
                except InvalidOperation:
                    row_error = GradeSheetUploadError(
                        row=row_num,
                        student_code=code,
                        column=self._header_of(field),
                        message=f"Invalid score value: '{raw}'",
                    )
                    break

            if row_error:
                errors.append(row_error)
                failed_rows += 1
                continue

            remarks = self._cell(row, col_map["remarks"])
            if remarks is not None:
                values["remarks"] = str(remarks).strip()

            parsed.append((row_num, code, BulkGradeRow(
                student_id=student.id,
                subject_instance_id=subject_instance_id,
                grading_period_id=grading_period_id,
                **values,
            )))

        successful_rows = 0
        if parsed:
            response = self.bulk_upsert([row for _, _, row in parsed])
            successful_rows = response.successful
            for result in response.results:
                if result.status == "failed":
                    row_num, code, _ = parsed[result.index]
                    errors.append(GradeSheetUploadError(
                        row=row_num,
                        student_code=code,
                        message=result.error or "Could not save grade record",
                    ))
                    failed_rows += 1

        errors.sort(key=lambda e: e.row)
        total = successful_rows + failed_rows + skipped_rows
        logger.info(f"[GRADE UPLOAD] Completed: {successful_rows} OK, {failed_rows} failed, {skipped_rows} skipped")

        return GradeSheetUploadResult(
            total_rows=total,
            successful_rows=successful_rows,
            failed_rows=failed_rows,
            skipped_rows=skipped_rows,
            errors=errors,
            message=f"Processed {successful_rows} grade records successfully.",
        )

    # ==========================================
    # Helper Methods
    # ==========================================

    def _apply_derived(self, grade: Grade) -> None:
        """Rewrite the derived fields from the raw components."""
        derived = calculate_total(grade.classwork_score, grade.midterm_score, grade.final_score)
        grade.total_score = derived["total_score"]
        grade.percentage = derived["percentage"]
        grade.grade_label = derived["grade_label"]
        grade.grade_point = derived["grade_point"]

    def _upsert_row(self, row: BulkGradeRow) -> tuple[Grade, bool]:
        """Apply one bulk row. Returns (grade, created)."""
        # Components are stored as DECIMAL(5,2); derive from the stored value
        scores: dict[str, Decimal | None] = {}
        for field in COMPONENT_FIELDS:
            value = getattr(row, field)
            if value is not None and value.is_finite():
                value = round_half_up(value)
            if value is not None and not (value.is_finite() and Decimal("0") <= value <= COMPONENT_MAX):
                raise ValidationError(f"{field} must be between 0 and 100", details={field: str(getattr(row, field))})
            scores[field] = value

        self._validate_references(row.student_id, row.subject_instance_id, row.grading_period_id)

        grade = self._get_existing_grade(row.student_id, row.subject_instance_id, row.grading_period_id)
        created = grade is None
        if created:
            grade = Grade(
                student_id=row.student_id,
                subject_instance_id=row.subject_instance_id,
                grading_period_id=row.grading_period_id,
            )
            self.db.add(grade)

        # Only fields present in the row overwrite stored values
        for field in COMPONENT_FIELDS:
            if field in row.model_fields_set:
                setattr(grade, field, scores[field])
        if "remarks" in row.model_fields_set:
            grade.remarks = row.remarks

        self._apply_derived(grade)
        self.db.flush()
        return grade, created

    def _validate_references(
        self,
        student_id: int,
        subject_instance_id: int,
        grading_period_id: int | None,
    ) -> None:
        self.enrollment.get_student(student_id)
        instance = self.calendar.get_subject_instance(subject_instance_id)
        if grading_period_id is not None:
            period = self.calendar.get_grading_period(grading_period_id)
            if period.semester_id != instance.semester_id:
                raise ValidationError(
                    "Grading period does not belong to the subject instance's semester",
                    details={"grading_period_id": grading_period_id},
                )

    def _get_existing_grade(
        self,
        student_id: int,
        subject_instance_id: int,
        grading_period_id: int | None,
    ) -> Grade | None:
        query = select(Grade).where(
            Grade.student_id == student_id,
            Grade.subject_instance_id == subject_instance_id,
        )
        if grading_period_id is None:
            query = query.where(Grade.grading_period_id.is_(None))
        else:
            query = query.where(Grade.grading_period_id == grading_period_id)
        return self.db.execute(query).scalar_one_or_none()

    def _graded_rows(self, student_id: int, semester_id: int | None = None) -> list[Grade]:
        query = (
            select(Grade)
            .join(SubjectInstance, Grade.subject_instance_id == SubjectInstance.id)
            .where(
                Grade.student_id == student_id,
                Grade.grade_point.is_not(None),
            )
        )
        if semester_id is not None:
            query = query.where(SubjectInstance.semester_id == semester_id)
        result = self.db.execute(query.order_by(Grade.subject_instance_id, Grade.id))
        return list(result.scalars().all())

    def _gpa_entry(self, grade: Grade) -> GpaGradeEntry:
        subject = grade.subject_instance.subject
        return GpaGradeEntry(
            grade_id=grade.id,
            subject_instance_id=grade.subject_instance_id,
            grading_period_id=grade.grading_period_id,
            subject_code=subject.code,
            subject_name=subject.name,
            credits=subject.credits,
            grade_label=grade.grade_label,
            grade_point=grade.grade_point,
        )

    def _failed_row(self, index: int, row: BulkGradeRow, message: str) -> BulkGradeRowResult:
        return BulkGradeRowResult(
            index=index,
            student_id=row.student_id,
            subject_instance_id=row.subject_instance_id,
            grading_period_id=row.grading_period_id,
            status="failed",
            error=message,
        )

    def _map_columns(self, headers: list[str]) -> dict[str, int | None]:
        """Map header names to column indices."""
        col_map: dict[str, int | None] = {
            "student_code": None,
            "classwork_score": None,
            "midterm_score": None,
            "final_score": None,
            "behavior_score": None,
            "remarks": None,
        }
        for idx, header in enumerate(headers):
            if "auto" in header:
                continue
            if "code" in header:
                col_map["student_code"] = idx
            elif "classwork" in header:
                col_map["classwork_score"] = idx
            elif "midterm" in header:
                col_map["midterm_score"] = idx
            elif "final" in header:
                col_map["final_score"] = idx
            elif "behavior" in header or "behaviour" in header:
                col_map["behavior_score"] = idx
            elif "remark" in header:
                col_map["remarks"] = idx
        return col_map

    def _cell(self, row: tuple, idx: int | None) -> Any:
        """Cell value, with blanks and the literal 'none' read as missing."""
        if idx is None or idx >= len(row):
            return None
        value = row[idx]
        if value is None:
            return None
        if isinstance(value, str) and value.strip().lower() in ("", "none"):
            return None
        return value

    def _header_of(self, field: str) -> str:
        return next(header for header, name in SHEET_COLUMNS if name == field)
