"""Grade record model."""

from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class Grade(Base, IDMixin, TimestampMixin):
    """Per-student grade for a subject instance, optionally per grading period.

    total_score, percentage, grade_label and grade_point are derived from the
    raw component scores and rewritten on every save.
    """

    __tablename__ = "grades"

    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_instance_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subject_instances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grading_period_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("grading_periods.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # Raw components, each 0-100
    classwork_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)
    midterm_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)
    final_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)
    # Recorded for reports, not part of the weighted total
    behavior_score: Mapped[Decimal | None] = mapped_column(DECIMAL(5, 2), nullable=True)

    # Derived
    total_score: Mapped[Decimal | None] = mapped_column(DECIMAL(7, 3), nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(DECIMAL(7, 3), nullable=True)
    grade_label: Mapped[str | None] = mapped_column(String(5), nullable=True)
    grade_point: Mapped[Decimal | None] = mapped_column(DECIMAL(3, 1), nullable=True)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    subject_instance: Mapped["SubjectInstance"] = relationship("SubjectInstance", lazy="selectin")
    grading_period: Mapped["GradingPeriod | None"] = relationship("GradingPeriod", lazy="selectin")
    student: Mapped["Student"] = relationship("Student", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_instance_id", "grading_period_id",
            name="uq_grade_student_instance_period",
        ),
        # NULLs are distinct in the constraint above; cover the period-less row separately
        Index(
            "uq_grade_student_instance_no_period",
            "student_id",
            "subject_instance_id",
            unique=True,
            postgresql_where=text("grading_period_id IS NULL"),
            sqlite_where=text("grading_period_id IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Grade(student_id={self.student_id}, subject_instance_id={self.subject_instance_id}, label={self.grade_label})>"


# Import to avoid circular imports
from gradebook.models.calendar import GradingPeriod  # noqa: E402
from gradebook.models.student import Student  # noqa: E402
from gradebook.models.subject import SubjectInstance  # noqa: E402
