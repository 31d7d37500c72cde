"""Academic calendar schemas."""

from datetime import date

from pydantic import Field, model_validator

from gradebook.schemas.common import BaseSchema


class AcademicYearCreate(BaseSchema):
    """Academic year creation schema."""

    year: int = Field(..., ge=1900, le=3000)
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "AcademicYearCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class SemesterCreate(BaseSchema):
    """Semester creation schema."""

    academic_year_id: int
    number: int = Field(..., ge=1, le=4)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "SemesterCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class GradingPeriodCreate(BaseSchema):
    """Grading period creation schema."""

    semester_id: int
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date


class GradingPeriodResponse(BaseSchema):
    id: int
    semester_id: int
    name: str
    start_date: date
    end_date: date


class SemesterResponse(BaseSchema):
    id: int
    academic_year_id: int
    number: int
    start_date: date
    end_date: date
    is_current: bool


class AcademicYearResponse(BaseSchema):
    id: int
    year: int
    name: str
    start_date: date
    end_date: date
    is_current: bool
    semesters: list[SemesterResponse] = []
