"""Unit tests for AcademicCalendarService."""

from datetime import date
from decimal import Decimal

import pytest

from gradebook.core.exceptions import ConflictError, NotFoundError, ValidationError
from gradebook.schemas.calendar import AcademicYearCreate, GradingPeriodCreate, SemesterCreate
from gradebook.services.calendar import AcademicCalendarService


class TestAcademicYears:
    """Tests for academic years and the current flag."""

    def test_create_current_year_clears_previous(self, db, factory) -> None:
        """Test that only one academic year is current."""
        service = AcademicCalendarService(db)
        old = factory.academic_year(year=2025, is_current=True)

        new = service.create_academic_year(AcademicYearCreate(
            year=2026,
            name="2026",
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
            is_current=True,
        ))

        db.refresh(old)
        assert new.is_current is True
        assert old.is_current is False
        assert service.get_current_academic_year().id == new.id

    def test_duplicate_year_conflicts(self, db, factory) -> None:
        """Test that a year can only be created once."""
        service = AcademicCalendarService(db)
        factory.academic_year(year=2030)

        with pytest.raises(ConflictError):
            service.create_academic_year(AcademicYearCreate(
                year=2030,
                name="again",
                start_date=date(2030, 1, 1),
                end_date=date(2030, 12, 31),
            ))

    def test_set_current_year_clears_current_semester(self, db, factory) -> None:
        """Test that switching years leaves no semester current."""
        service = AcademicCalendarService(db)
        semester = factory.semester(is_current=True)
        next_year = factory.academic_year()

        service.set_current_academic_year(next_year.id)

        db.refresh(semester)
        assert semester.is_current is False
        with pytest.raises(NotFoundError):
            service.get_current_semester()


class TestSemesters:
    """Tests for semesters."""

    def test_set_current_semester(self, db, factory) -> None:
        """Test that a single semester is current after switching."""
        service = AcademicCalendarService(db)
        year = factory.academic_year()
        first = factory.semester(academic_year=year, number=1, is_current=True)
        second = factory.semester(academic_year=year, number=2)

        service.set_current_semester(second.id)

        db.refresh(first)
        assert first.is_current is False
        assert service.current_semester_id() == second.id

    def test_no_current_semester(self, db) -> None:
        """Test that a missing current semester raises NotFoundError."""
        service = AcademicCalendarService(db)

        with pytest.raises(NotFoundError):
            service.get_current_semester()

    def test_duplicate_semester_number_conflicts(self, db, factory) -> None:
        """Test that a semester number is unique within a year."""
        service = AcademicCalendarService(db)
        year = factory.academic_year()
        factory.semester(academic_year=year, number=1)

        with pytest.raises(ConflictError):
            service.create_semester(SemesterCreate(
                academic_year_id=year.id,
                number=1,
                start_date=date(year.year, 1, 1),
                end_date=date(year.year, 6, 30),
            ))


class TestGradingPeriods:
    """Tests for grading periods and credits."""

    def test_period_must_fit_semester(self, db, factory) -> None:
        """Test that a grading period cannot extend past its semester."""
        service = AcademicCalendarService(db)
        semester = factory.semester()

        with pytest.raises(ValidationError):
            service.create_grading_period(GradingPeriodCreate(
                semester_id=semester.id,
                name="Too long",
                start_date=semester.start_date,
                end_date=date(semester.start_date.year + 1, 1, 1),
            ))

    def test_periods_are_ordered_by_start(self, db, factory) -> None:
        """Test that grading periods are listed chronologically."""
        service = AcademicCalendarService(db)
        semester = factory.semester()
        year = semester.start_date.year
        later = service.create_grading_period(GradingPeriodCreate(
            semester_id=semester.id,
            name="Quarter 2",
            start_date=date(year, 4, 1),
            end_date=date(year, 5, 31),
        ))
        earlier = service.create_grading_period(GradingPeriodCreate(
            semester_id=semester.id,
            name="Quarter 1",
            start_date=date(year, 1, 1),
            end_date=date(year, 3, 31),
        ))

        periods = service.grading_periods_of(semester.id)

        assert [p.id for p in periods] == [earlier.id, later.id]

    def test_credits_of_subject_instance(self, db, factory) -> None:
        """Test that credits come from the subject behind the instance."""
        service = AcademicCalendarService(db)
        instance = factory.subject_instance(subject=factory.subject(credits=Decimal("2.5")))

        assert service.credits_of(instance.id) == Decimal("2.5")
