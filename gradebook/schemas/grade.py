"""Grade record, GPA and grade sheet schemas."""

from decimal import Decimal

from pydantic import Field

from gradebook.schemas.common import BaseSchema, TimestampSchema


# ==========================================
# Grade Records
# ==========================================

class GradeCreate(BaseSchema):
    """Grade record creation schema. Components are on a 0-100 scale."""

    student_id: int
    subject_instance_id: int
    grading_period_id: int | None = None
    classwork_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    midterm_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    final_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    behavior_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    remarks: str | None = None


class GradeUpdate(BaseSchema):
    """Partial grade update. Omitted fields keep their stored value, null clears."""

    classwork_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    midterm_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    final_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    behavior_score: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    remarks: str | None = None


class GradeResponse(TimestampSchema):
    """Grade record response schema."""

    id: int
    student_id: int
    subject_instance_id: int
    grading_period_id: int | None
    classwork_score: Decimal | None
    midterm_score: Decimal | None
    final_score: Decimal | None
    behavior_score: Decimal | None
    total_score: Decimal | None
    percentage: Decimal | None
    grade_label: str | None
    grade_point: Decimal | None
    remarks: str | None


# ==========================================
# Bulk Upsert
# ==========================================

class BulkGradeRow(BaseSchema):
    """One row of a bulk upsert.

    Ranges are checked per row by the service so that one bad row does not
    reject the whole batch.
    """

    student_id: int
    subject_instance_id: int
    grading_period_id: int | None = None
    classwork_score: Decimal | None = None
    midterm_score: Decimal | None = None
    final_score: Decimal | None = None
    behavior_score: Decimal | None = None
    remarks: str | None = None


class BulkGradeCreate(BaseSchema):
    """Bulk grade upsert request."""

    grades: list[BulkGradeRow] = Field(..., min_length=1)


class BulkGradeRowResult(BaseSchema):
    """Outcome of one bulk row."""

    index: int
    student_id: int
    subject_instance_id: int
    grading_period_id: int | None = None
    status: str  # created / updated / failed
    grade_id: int | None = None
    grade_label: str | None = None
    error: str | None = None


class BulkGradeResponse(BaseSchema):
    """Response for bulk grade operations."""

    total_records: int
    successful: int
    failed: int
    results: list[BulkGradeRowResult] = []
    message: str


# ==========================================
# GPA / GPAX
# ==========================================

class GpaGradeEntry(BaseSchema):
    """Grade row that contributed to a GPA."""

    grade_id: int
    subject_instance_id: int
    grading_period_id: int | None
    subject_code: str
    subject_name: str
    credits: Decimal
    grade_label: str | None
    grade_point: Decimal


class GpaResponse(BaseSchema):
    """Semester GPA."""

    student_id: int
    semester_id: int
    gpa: Decimal
    total_credits: Decimal
    grades: list[GpaGradeEntry] = []


class SemesterGpa(BaseSchema):
    """One semester in a GPAX breakdown."""

    semester_id: int
    academic_year: int
    semester_number: int
    gpa: Decimal
    total_credits: Decimal


class GpaxResponse(BaseSchema):
    """Cumulative GPA across all semesters."""

    student_id: int
    gpax: Decimal
    total_credits: Decimal
    semesters: list[SemesterGpa] = []


# ==========================================
# Grade Sheet Upload
# ==========================================

class GradeSheetUploadError(BaseSchema):
    """Error detail for grade sheet upload."""

    row: int
    student_code: str | None = None
    column: str | None = None
    message: str


class GradeSheetUploadResult(BaseSchema):
    """Result of grade sheet Excel upload processing."""

    total_rows: int
    successful_rows: int
    failed_rows: int
    skipped_rows: int = 0
    errors: list[GradeSheetUploadError] = []
    message: str
