"""Subject catalog and enrollment models."""

from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class Subject(Base, IDMixin, TimestampMixin):
    """Catalog subject with its credit weight."""

    __tablename__ = "subjects"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    credits: Mapped[Decimal] = mapped_column(DECIMAL(4, 1), nullable=False, default=Decimal("1.0"))

    def __repr__(self) -> str:
        return f"<Subject(id={self.id}, code={self.code})>"


class SubjectInstance(Base, IDMixin, TimestampMixin):
    """A subject offered in one semester."""

    __tablename__ = "subject_instances"

    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    semester_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("semesters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    subject: Mapped["Subject"] = relationship("Subject", lazy="selectin")
    semester: Mapped["Semester"] = relationship("Semester", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("subject_id", "semester_id", name="uq_subject_instance_semester"),
    )

    def __repr__(self) -> str:
        return f"<SubjectInstance(id={self.id}, subject_id={self.subject_id})>"


class SubjectEnrollment(Base, IDMixin, TimestampMixin):
    """Student enrollment in a subject instance."""

    __tablename__ = "subject_enrollments"

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

    __table_args__ = (
        UniqueConstraint("student_id", "subject_instance_id", name="uq_enrollment_student_instance"),
    )


# Import to avoid circular imports
from gradebook.models.calendar import Semester  # noqa: E402
