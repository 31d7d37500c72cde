"""Academic calendar endpoints."""

from fastapi import APIRouter, Request

from gradebook.core.database import DbSession
from gradebook.core.dependencies import CurrentUser, StaffUser
from gradebook.models.audit import AuditAction
from gradebook.schemas.calendar import (
    AcademicYearCreate,
    AcademicYearResponse,
    GradingPeriodCreate,
    GradingPeriodResponse,
    SemesterCreate,
    SemesterResponse,
)
from gradebook.services.audit import AuditService
from gradebook.services.calendar import AcademicCalendarService

router = APIRouter()


@router.post("/years", response_model=AcademicYearResponse)
def create_academic_year(
    request: AcademicYearCreate,
    context: StaffUser,
    db: DbSession,
):
    """Create an academic year. Requires teacher role."""
    service = AcademicCalendarService(db)
    return service.create_academic_year(request)


@router.put("/years/{academic_year_id}/current", response_model=AcademicYearResponse)
def set_current_academic_year(
    academic_year_id: int,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Make an academic year current.
    The current semester flag is cleared as well; set it again afterwards.
    Requires teacher role.
    """
    service = AcademicCalendarService(db)
    academic_year = service.set_current_academic_year(academic_year_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.CALENDAR_UPDATED,
        resource_type="academic_year",
        resource_id=str(academic_year_id),
        user_id=context.user_id,
        description=f"Academic year {academic_year.year} set as current",
        ip_address=http_request.client.host if http_request.client else None,
    )

    return academic_year


@router.post("/semesters", response_model=SemesterResponse)
def create_semester(
    request: SemesterCreate,
    context: StaffUser,
    db: DbSession,
):
    """Create a semester. Requires teacher role."""
    service = AcademicCalendarService(db)
    return service.create_semester(request)


@router.get("/current-semester", response_model=SemesterResponse)
def get_current_semester(
    context: CurrentUser,
    db: DbSession,
):
    """Get the current semester."""
    service = AcademicCalendarService(db)
    return service.get_current_semester()


@router.put("/semesters/{semester_id}/current", response_model=SemesterResponse)
def set_current_semester(
    semester_id: int,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """Make a semester current. Requires teacher role."""
    service = AcademicCalendarService(db)
    semester = service.set_current_semester(semester_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.CALENDAR_UPDATED,
        resource_type="semester",
        resource_id=str(semester_id),
        user_id=context.user_id,
        description=f"Semester {semester_id} set as current",
        ip_address=http_request.client.host if http_request.client else None,
    )

    return semester


@router.post("/grading-periods", response_model=GradingPeriodResponse)
def create_grading_period(
    request: GradingPeriodCreate,
    context: StaffUser,
    db: DbSession,
):
    """Create a grading period inside a semester. Requires teacher role."""
    service = AcademicCalendarService(db)
    return service.create_grading_period(request)


@router.get("/semesters/{semester_id}/grading-periods", response_model=list[GradingPeriodResponse])
def list_grading_periods(
    semester_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """List the grading periods of a semester."""
    service = AcademicCalendarService(db)
    return service.grading_periods_of(semester_id)
