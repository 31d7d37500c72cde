"""Academic calendar service.

Owns the "current" academic year / semester flags. Exactly one year and one
semester may be current; switching is done in a single savepoint that first
clears every flag in scope and then sets the new one.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from gradebook.core.exceptions import ConflictError, NotFoundError, ValidationError
from gradebook.models.calendar import AcademicYear, GradingPeriod, Semester
from gradebook.models.subject import SubjectInstance
from gradebook.schemas.calendar import AcademicYearCreate, GradingPeriodCreate, SemesterCreate

logger = logging.getLogger(__name__)


class AcademicCalendarService:
    """Academic years, semesters, grading periods and subject credits."""

    def __init__(self, db: Session):
        self.db = db

    # ==========================================
    # Academic Years
    # ==========================================

    def get_academic_year(self, academic_year_id: int) -> AcademicYear:
        academic_year = self.db.get(AcademicYear, academic_year_id)
        if not academic_year:
            raise NotFoundError("Academic year", str(academic_year_id))
        return academic_year

    def create_academic_year(self, request: AcademicYearCreate) -> AcademicYear:
        """Create an academic year, optionally making it the current one."""
        existing = self.db.execute(
            select(AcademicYear).where(AcademicYear.year == request.year)
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Academic year {request.year} already exists")

        with self.db.begin_nested():
            if request.is_current:
                self._clear_current_years()
            academic_year = AcademicYear(
                year=request.year,
                name=request.name,
                start_date=request.start_date,
                end_date=request.end_date,
                is_current=request.is_current,
            )
            self.db.add(academic_year)

        self.db.refresh(academic_year)
        return academic_year

    def set_current_academic_year(self, academic_year_id: int) -> AcademicYear:
        """Make one academic year current; the current semester is cleared too."""
        academic_year = self.get_academic_year(academic_year_id)

        with self.db.begin_nested():
            self._clear_current_years()
            self._clear_current_semesters()
            academic_year.is_current = True

        logger.info(f"[CALENDAR] Academic year {academic_year.year} set as current")
        return academic_year

    def get_current_academic_year(self) -> AcademicYear:
        result = self.db.execute(
            select(AcademicYear).where(AcademicYear.is_current.is_(True))
        )
        academic_year = result.scalar_one_or_none()
        if not academic_year:
            raise NotFoundError("Current academic year")
        return academic_year

    # ==========================================
    # Semesters
    # ==========================================

    def get_semester(self, semester_id: int) -> Semester:
        semester = self.db.get(Semester, semester_id)
        if not semester:
            raise NotFoundError("Semester", str(semester_id))
        return semester

    def create_semester(self, request: SemesterCreate) -> Semester:
        """Create a semester in an academic year."""
        self.get_academic_year(request.academic_year_id)

        existing = self.db.execute(
            select(Semester).where(
                Semester.academic_year_id == request.academic_year_id,
                Semester.number == request.number,
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Semester {request.number} already exists for this academic year")

        with self.db.begin_nested():
            if request.is_current:
                self._clear_current_semesters()
            semester = Semester(
                academic_year_id=request.academic_year_id,
                number=request.number,
                start_date=request.start_date,
                end_date=request.end_date,
                is_current=request.is_current,
            )
            self.db.add(semester)

        self.db.refresh(semester)
        return semester

    def set_current_semester(self, semester_id: int) -> Semester:
        """Make one semester current."""
        semester = self.get_semester(semester_id)

        with self.db.begin_nested():
            self._clear_current_semesters()
            semester.is_current = True

        logger.info(f"[CALENDAR] Semester {semester.id} set as current")
        return semester

    def get_current_semester(self) -> Semester:
        result = self.db.execute(
            select(Semester).where(Semester.is_current.is_(True))
        )
        semester = result.scalar_one_or_none()
        if not semester:
            raise NotFoundError("Current semester")
        return semester

    def current_semester_id(self) -> int:
        return self.get_current_semester().id

    # ==========================================
    # Grading Periods
    # ==========================================

    def create_grading_period(self, request: GradingPeriodCreate) -> GradingPeriod:
        semester = self.get_semester(request.semester_id)
        if request.end_date < request.start_date:
            raise ValidationError("Grading period end_date is before start_date")
        if request.start_date < semester.start_date or request.end_date > semester.end_date:
            raise ValidationError("Grading period must fall within its semester")

        period = GradingPeriod(
            semester_id=request.semester_id,
            name=request.name,
            start_date=request.start_date,
            end_date=request.end_date,
        )
        self.db.add(period)
        self.db.flush()
        self.db.refresh(period)
        return period

    def get_grading_period(self, grading_period_id: int) -> GradingPeriod:
        period = self.db.get(GradingPeriod, grading_period_id)
        if not period:
            raise NotFoundError("Grading period", str(grading_period_id))
        return period

    def grading_periods_of(self, semester_id: int) -> list[GradingPeriod]:
        """Grading periods of a semester ordered by start date."""
        self.get_semester(semester_id)
        result = self.db.execute(
            select(GradingPeriod)
            .where(GradingPeriod.semester_id == semester_id)
            .order_by(GradingPeriod.start_date)
        )
        return list(result.scalars().all())

    # ==========================================
    # Catalog
    # ==========================================

    def get_subject_instance(self, subject_instance_id: int) -> SubjectInstance:
        instance = self.db.get(SubjectInstance, subject_instance_id)
        if not instance:
            raise NotFoundError("Subject instance", str(subject_instance_id))
        return instance

    def credits_of(self, subject_instance_id: int) -> Decimal:
        """Credit weight of the subject behind a subject instance."""
        return self.get_subject_instance(subject_instance_id).subject.credits

    # ==========================================
    # Helper Methods
    # ==========================================

    def _clear_current_years(self) -> None:
        self.db.execute(
            update(AcademicYear)
            .where(AcademicYear.is_current.is_(True))
            .values(is_current=False)
        )

    def _clear_current_semesters(self) -> None:
        self.db.execute(
            update(Semester)
            .where(Semester.is_current.is_(True))
            .values(is_current=False)
        )
