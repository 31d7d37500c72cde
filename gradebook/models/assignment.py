"""Assignment and submission models."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    DECIMAL,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, JSONType, TimestampMixin


class AssignmentType(str, enum.Enum):
    HOMEWORK = "HOMEWORK"
    PROJECT = "PROJECT"
    REPORT = "REPORT"
    PRESENTATION = "PRESENTATION"
    EXERCISE = "EXERCISE"
    OTHER = "OTHER"


class SubmissionStatus(str, enum.Enum):
    """Submission status.

    PENDING -> SUBMITTED -> GRADED, with RETURNED sending work back for revision.
    """

    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"
    RETURNED = "RETURNED"


class Assignment(Base, IDMixin, TimestampMixin):
    """Freeform work graded by a teacher."""

    __tablename__ = "assignments"

    subject_instance_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subject_instances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[AssignmentType] = mapped_column(Enum(AssignmentType), nullable=False)

    max_score: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), default=Decimal("100"), nullable=False)
    weight: Mapped[Decimal] = mapped_column(DECIMAL(5, 2), default=Decimal("1.0"), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    allow_late_submission: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    late_penalty_percent: Mapped[Decimal] = mapped_column(
        DECIMAL(5, 2),
        default=Decimal("10"),
        nullable=False,
    )

    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    submissions: Mapped[list["Submission"]] = relationship(
        "Submission",
        back_populates="assignment",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Assignment(id={self.id}, title={self.title})>"


class Submission(Base, IDMixin, TimestampMixin):
    """A student's submission for an assignment (one per pair)."""

    __tablename__ = "submissions"

    assignment_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("assignments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )

    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    files: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Fixed when the work is handed in, never recomputed afterwards
    is_late: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    score: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    graded_by_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    assignment: Mapped["Assignment"] = relationship(
        "Assignment",
        back_populates="submissions",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, assignment_id={self.assignment_id}, status={self.status})>"
