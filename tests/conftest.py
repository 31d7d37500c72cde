"""Pytest configuration and shared fixtures.

Every test runs against a fresh in-memory SQLite database built from the
model metadata. pysqlite's own transaction handling is switched off so that
SAVEPOINTs (``Session.begin_nested``) behave the way they do on PostgreSQL.
"""

from collections.abc import Generator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import gradebook.models  # noqa: F401
from gradebook.core.database import Base
from gradebook.models import (
    AcademicYear,
    Assignment,
    AssignmentType,
    Exam,
    ExamQuestion,
    ExamType,
    GradingPeriod,
    Question,
    QuestionBank,
    QuestionType,
    Semester,
    Student,
    Subject,
    SubjectEnrollment,
    SubjectInstance,
)

# Fixed "server time" used by time-dependent tests
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    """Database session, configured like the application's SessionLocal."""
    session = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Data Factory
# =============================================================================


class Factory:
    """Builds calendar, catalog, roster and assessment rows directly."""

    def __init__(self, db: Session):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj: Any) -> Any:
        self.db.add(obj)
        self.db.flush()
        return obj

    def academic_year(self, year: int | None = None, is_current: bool = False) -> AcademicYear:
        # Years are unique, so implicit ones count up from 2100
        year = year or 2100 + self._next()
        return self._save(AcademicYear(
            year=year,
            name=f"Academic Year {year}",
            start_date=date(year, 1, 1),
            end_date=date(year, 12, 31),
            is_current=is_current,
        ))

    def semester(
        self,
        academic_year: AcademicYear | None = None,
        number: int = 1,
        is_current: bool = False,
    ) -> Semester:
        academic_year = academic_year or self.academic_year()
        start_month = 1 if number == 1 else 7
        return self._save(Semester(
            academic_year_id=academic_year.id,
            number=number,
            start_date=date(academic_year.year, start_month, 1),
            end_date=date(academic_year.year, start_month + 5, 28),
            is_current=is_current,
        ))

    def grading_period(self, semester: Semester, name: str = "Quarter 1") -> GradingPeriod:
        return self._save(GradingPeriod(
            semester_id=semester.id,
            name=name,
            start_date=semester.start_date,
            end_date=semester.start_date + timedelta(days=60),
        ))

    def subject(self, credits: Decimal = Decimal("3.0"), name: str | None = None) -> Subject:
        n = self._next()
        return self._save(Subject(code=f"SUB{n:03d}", name=name or f"Subject {n}", credits=credits))

    def subject_instance(
        self,
        subject: Subject | None = None,
        semester: Semester | None = None,
    ) -> SubjectInstance:
        subject = subject or self.subject()
        semester = semester or self.semester()
        return self._save(SubjectInstance(subject_id=subject.id, semester_id=semester.id))

    def student(self, code: str | None = None) -> Student:
        n = self._next()
        return self._save(Student(
            student_code=code or f"S{n:04d}",
            first_name="Student",
            last_name=str(n),
        ))

    def enroll(self, student: Student, instance: SubjectInstance) -> SubjectEnrollment:
        return self._save(SubjectEnrollment(student_id=student.id, subject_instance_id=instance.id))

    def question_bank(self, subject: Subject) -> QuestionBank:
        return self._save(QuestionBank(subject_id=subject.id, name=f"Bank {self._next()}"))

    def choice_question(
        self,
        bank: QuestionBank,
        correct: str = "b",
        points: Decimal = Decimal("1"),
    ) -> Question:
        return self._save(Question(
            question_bank_id=bank.id,
            type=QuestionType.MULTIPLE_CHOICE,
            content="Pick one",
            options=[
                {"id": option_id, "text": option_id.upper(), "is_correct": option_id == correct}
                for option_id in ("a", "b", "c")
            ],
            points=points,
        ))

    def text_question(
        self,
        bank: QuestionBank,
        answer: str = "Paris",
        accepted: list[str] | None = None,
        points: Decimal = Decimal("1"),
    ) -> Question:
        return self._save(Question(
            question_bank_id=bank.id,
            type=QuestionType.FILL_BLANK,
            content="Capital of France?",
            correct_answer=answer,
            accepted_answers=accepted,
            points=points,
        ))

    def exam(
        self,
        instance: SubjectInstance,
        questions: list[Question] | None = None,
        max_attempts: int = 1,
        published: bool = True,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> Exam:
        exam = Exam(
            subject_instance_id=instance.id,
            title=f"Exam {self._next()}",
            type=ExamType.QUIZ,
            max_score=Decimal("10"),
            passing_score=Decimal("1"),
            start_time=start_time or NOW - timedelta(hours=1),
            end_time=end_time or NOW + timedelta(hours=2),
            duration=60,
            max_attempts=max_attempts,
            is_published=published,
        )
        for order, question in enumerate(questions or [], start=1):
            exam.questions.append(ExamQuestion(question_id=question.id, order=order))
        return self._save(exam)

    def assignment(
        self,
        instance: SubjectInstance,
        due_date: datetime | None = None,
        allow_late_submission: bool = True,
        late_penalty_percent: Decimal = Decimal("10"),
        published: bool = True,
    ) -> Assignment:
        return self._save(Assignment(
            subject_instance_id=instance.id,
            title=f"Assignment {self._next()}",
            type=AssignmentType.HOMEWORK,
            max_score=Decimal("100"),
            due_date=due_date or NOW + timedelta(days=1),
            allow_late_submission=allow_late_submission,
            late_penalty_percent=late_penalty_percent,
            is_published=published,
        ))


@pytest.fixture
def now() -> datetime:
    """Fixed server time used by time-dependent tests."""
    return NOW


@pytest.fixture
def factory(db: Session) -> Factory:
    """Row factory bound to the test session."""
    return Factory(db)
