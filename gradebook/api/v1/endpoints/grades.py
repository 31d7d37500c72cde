"""Grade record, GPA and grade sheet endpoints."""

from io import BytesIO

from fastapi import APIRouter, File, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from gradebook.core.config import settings
from gradebook.core.database import DbSession
from gradebook.core.dependencies import CurrentUser, StaffUser, require_self_or_staff
from gradebook.core.exceptions import UploadError
from gradebook.models.audit import AuditAction
from gradebook.schemas.grade import (
    BulkGradeCreate,
    BulkGradeResponse,
    GpaResponse,
    GpaxResponse,
    GradeCreate,
    GradeResponse,
    GradeSheetUploadResult,
    GradeUpdate,
)
from gradebook.services.audit import AuditService
from gradebook.services.grade import GradeService

router = APIRouter()


@router.post("", response_model=GradeResponse)
def create_grade(
    request: GradeCreate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Create a grade record. Total, letter grade and grade point are derived.
    Requires teacher role.
    """
    service = GradeService(db)
    grade = service.create_grade(request)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.GRADE_CREATED,
        resource_type="grade",
        resource_id=str(grade.id),
        user_id=context.user_id,
        description=f"Grade {grade.grade_label} recorded for student {grade.student_id}",
        ip_address=http_request.client.host if http_request.client else None,
    )

    return grade


@router.post("/bulk", response_model=BulkGradeResponse)
def bulk_upsert_grades(
    request: BulkGradeCreate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Create or update grade records in bulk.
    Rows are applied independently; failures are reported per row.
    Requires teacher role.
    """
    service = GradeService(db)
    result = service.bulk_upsert(request.grades)

    # Audit log
    if result.successful > 0:
        audit = AuditService(db)
        audit.log(
            action=AuditAction.GRADES_BULK_UPSERTED,
            resource_type="grade_bulk",
            user_id=context.user_id,
            description=f"Bulk grades: {result.successful}/{result.total_records} rows saved",
            extra_data={"successful": result.successful, "failed": result.failed},
            ip_address=http_request.client.host if http_request.client else None,
        )

    return result


@router.get("/template")
def download_grade_template(
    context: StaffUser,
    db: DbSession,
    subject_instance_id: int = Query(..., description="Subject instance to grade"),
    grading_period_id: int | None = Query(None, description="Grading period. Empty for the whole subject."),
):
    """
    Download the Excel grade sheet pre-filled with the enrolled students.
    Requires teacher role.
    """
    service = GradeService(db)
    content = service.generate_template(subject_instance_id, grading_period_id)

    filename = f"grade_sheet_{subject_instance_id}"
    if grading_period_id is not None:
        filename += f"_period_{grading_period_id}"
    filename += ".xlsx"

    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/upload", response_model=GradeSheetUploadResult)
def upload_grade_sheet(
    context: StaffUser,
    db: DbSession,
    http_request: Request,
    subject_instance_id: int = Query(...),
    grading_period_id: int | None = Query(None),
    file: UploadFile = File(...),
):
    """
    Upload a filled-in grade sheet.
    Download the template first to see the expected format.
    Requires teacher role.
    """
    # Validate file
    if not file.filename:
        raise UploadError("No file provided")

    if not any(file.filename.endswith(ext) for ext in settings.ALLOWED_EXTENSIONS):
        raise UploadError(f"Only {', '.join(settings.ALLOWED_EXTENSIONS)} files are allowed")

    content = file.file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise UploadError(f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit")

    service = GradeService(db)
    result = service.process_excel_upload(
        subject_instance_id=subject_instance_id,
        file_content=content,
        grading_period_id=grading_period_id,
    )

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.UPLOAD_COMPLETED,
        resource_type="grade_upload",
        resource_id=str(subject_instance_id),
        user_id=context.user_id,
        description=f"Grade sheet upload: {result.successful_rows}/{result.total_rows} rows",
        extra_data={
            "file_name": file.filename,
            "successful_rows": result.successful_rows,
            "failed_rows": result.failed_rows,
            "skipped_rows": result.skipped_rows,
        },
        ip_address=http_request.client.host if http_request.client else None,
    )

    return result


@router.get("/student/{student_id}", response_model=list[GradeResponse])
def list_student_grades(
    student_id: int,
    context: CurrentUser,
    db: DbSession,
    semester_id: int | None = None,
):
    """List a student's grade records. Students may only list their own."""
    require_self_or_staff(student_id, context)
    service = GradeService(db)
    return service.list_student_grades(student_id, semester_id)


@router.get("/subject-instance/{subject_instance_id}", response_model=list[GradeResponse])
def list_subject_instance_grades(
    subject_instance_id: int,
    context: StaffUser,
    db: DbSession,
    grading_period_id: int | None = None,
):
    """
    List grade records of a subject instance.
    Requires teacher role.
    """
    service = GradeService(db)
    return service.list_subject_instance_grades(subject_instance_id, grading_period_id)


@router.get("/gpa/student/{student_id}/semester/{semester_id}", response_model=GpaResponse)
def get_semester_gpa(
    student_id: int,
    semester_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """Credit-weighted GPA for one semester."""
    require_self_or_staff(student_id, context)
    service = GradeService(db)
    return service.calculate_gpa(student_id, semester_id)


@router.get("/gpax/student/{student_id}", response_model=GpaxResponse)
def get_gpax(
    student_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """Cumulative GPA across all semesters with a per-semester breakdown."""
    require_self_or_staff(student_id, context)
    service = GradeService(db)
    return service.calculate_gpax(student_id)


@router.put("/{grade_id}", response_model=GradeResponse)
def update_grade(
    grade_id: int,
    request: GradeUpdate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Update a grade record. Omitted fields are kept, null clears a component.
    Requires teacher role.
    """
    service = GradeService(db)
    grade = service.update_grade(grade_id, request)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.GRADE_UPDATED,
        resource_type="grade",
        resource_id=str(grade_id),
        user_id=context.user_id,
        description=f"Grade {grade_id} updated",
        extra_data=request.model_dump(mode="json", exclude_unset=True),
        ip_address=http_request.client.host if http_request.client else None,
    )

    return grade
