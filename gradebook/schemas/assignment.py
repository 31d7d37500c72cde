"""Assignment and submission schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field

from gradebook.models.assignment import AssignmentType, SubmissionStatus
from gradebook.schemas.common import BaseSchema, TimestampSchema


class AssignmentCreate(BaseSchema):
    """Assignment creation schema."""

    subject_instance_id: int
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    instructions: str | None = None
    type: AssignmentType = AssignmentType.HOMEWORK
    max_score: Decimal = Field(Decimal("100"), gt=0, decimal_places=2)
    weight: Decimal = Field(Decimal("1.0"), ge=0, decimal_places=2)
    due_date: datetime
    allow_late_submission: bool = True
    late_penalty_percent: Decimal = Field(Decimal("10"), ge=0, le=100, decimal_places=2)


class AssignmentUpdate(BaseSchema):
    """Assignment update schema."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    instructions: str | None = None
    max_score: Decimal | None = Field(None, gt=0, decimal_places=2)
    weight: Decimal | None = Field(None, ge=0, decimal_places=2)
    due_date: datetime | None = None
    allow_late_submission: bool | None = None
    late_penalty_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)


class AssignmentResponse(TimestampSchema):
    """Assignment response schema."""

    id: int
    subject_instance_id: int
    title: str
    description: str | None
    instructions: str | None
    type: AssignmentType
    max_score: Decimal
    weight: Decimal
    due_date: datetime
    allow_late_submission: bool
    late_penalty_percent: Decimal
    is_published: bool
    published_at: datetime | None
    created_by_id: int | None


class SubmissionCreate(BaseSchema):
    """Hand in (or re-submit) work for an assignment."""

    content: str | None = None
    files: list[dict[str, Any]] | None = None


class SubmissionGrade(BaseSchema):
    """Teacher grading input. The late penalty is applied by the server."""

    score: Decimal = Field(..., ge=0, decimal_places=2)
    feedback: str | None = None


class SubmissionReturn(BaseSchema):
    """Send a submission back for revision."""

    feedback: str | None = None


class SubmissionResponse(TimestampSchema):
    """Submission response schema."""

    id: int
    assignment_id: int
    student_id: int
    status: SubmissionStatus
    content: str | None
    files: list[dict[str, Any]] | None
    submitted_at: datetime | None
    is_late: bool
    score: Decimal | None
    feedback: str | None
    graded_by_id: int | None
    graded_at: datetime | None


class StudentAssignmentResponse(AssignmentResponse):
    """Assignment as seen by one student, with their own submission if any."""

    submission: SubmissionResponse | None = None
