"""Academic calendar models: academic years, semesters and grading periods."""

from datetime import date

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class AcademicYear(Base, IDMixin, TimestampMixin):
    """Academic year. At most one is flagged current."""

    __tablename__ = "academic_years"

    year: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    semesters: Mapped[list["Semester"]] = relationship(
        "Semester",
        back_populates="academic_year",
        order_by="Semester.number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AcademicYear(id={self.id}, year={self.year})>"


class Semester(Base, IDMixin, TimestampMixin):
    """Semester within an academic year. At most one is flagged current."""

    __tablename__ = "semesters"

    academic_year_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    academic_year: Mapped["AcademicYear"] = relationship(
        "AcademicYear",
        back_populates="semesters",
        lazy="selectin",
    )
    grading_periods: Mapped[list["GradingPeriod"]] = relationship(
        "GradingPeriod",
        back_populates="semester",
        order_by="GradingPeriod.start_date",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("academic_year_id", "number", name="uq_semester_year_number"),
    )

    def __repr__(self) -> str:
        return f"<Semester(id={self.id}, number={self.number})>"


class GradingPeriod(Base, IDMixin, TimestampMixin):
    """Sub-interval of a semester used to scope grade rows."""

    __tablename__ = "grading_periods"

    semester_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("semesters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    semester: Mapped["Semester"] = relationship(
        "Semester",
        back_populates="grading_periods",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<GradingPeriod(id={self.id}, name={self.name})>"
