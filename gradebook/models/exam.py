"""Exam, question bank and exam attempt models."""

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
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, attribute_keyed_dict, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, JSONType, TimestampMixin, utcnow


class QuestionType(str, enum.Enum):
    """Question types. Only choice and text types are machine-gradable."""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    FILL_BLANK = "FILL_BLANK"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"
    MATCHING = "MATCHING"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ExamType(str, enum.Enum):
    QUIZ = "QUIZ"
    MIDTERM = "MIDTERM"
    FINAL = "FINAL"
    PRACTICE = "PRACTICE"


class AttemptStatus(str, enum.Enum):
    """Exam attempt status.

    SUBMITTED is never stored: submission and grading happen in one step.
    """

    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"


class QuestionBank(Base, IDMixin, TimestampMixin):
    """Collection of reusable questions for a subject."""

    __tablename__ = "question_banks"

    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="question_bank",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<QuestionBank(id={self.id}, name={self.name})>"


class Question(Base, IDMixin, TimestampMixin):
    """Question with a type-dependent answer key."""

    __tablename__ = "questions"

    question_bank_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("question_banks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[QuestionType] = mapped_column(Enum(QuestionType), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Answer key: [{"id", "text", "is_correct"}] for choice/true-false
    options: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    # Display-only for matching questions
    matching_pairs: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    # Answer key for fill-blank/short-answer
    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    accepted_answers: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)

    difficulty: Mapped[Difficulty] = mapped_column(
        Enum(Difficulty),
        default=Difficulty.MEDIUM,
        nullable=False,
    )
    points: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), default=Decimal("1"), nullable=False)
    tags: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)

    question_bank: Mapped["QuestionBank"] = relationship(
        "QuestionBank",
        back_populates="questions",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, type={self.type})>"


class Exam(Base, IDMixin, TimestampMixin):
    """Timed exam for one subject instance."""

    __tablename__ = "exams"

    subject_instance_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subject_instances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[ExamType] = mapped_column(Enum(ExamType), nullable=False)

    max_score: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    passing_score: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)

    # Window during which attempts may be started
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes

    max_attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    shuffle_questions: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    shuffle_options: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    questions: Mapped[list["ExamQuestion"]] = relationship(
        "ExamQuestion",
        back_populates="exam",
        order_by="ExamQuestion.order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    subject_instance: Mapped["SubjectInstance"] = relationship("SubjectInstance", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Exam(id={self.id}, title={self.title})>"


class ExamQuestion(Base, IDMixin):
    """Question placed in an exam with its pinned points and display order."""

    __tablename__ = "exam_questions"

    exam_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    points: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)

    exam: Mapped["Exam"] = relationship("Exam", back_populates="questions")
    question: Mapped["Question"] = relationship("Question", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("exam_id", "question_id", name="uq_exam_question"),
    )

    @property
    def effective_points(self) -> Decimal:
        """Pinned points, falling back to the question's own points."""
        if self.points is not None:
            return self.points
        return self.question.points

    def __repr__(self) -> str:
        return f"<ExamQuestion(exam_id={self.exam_id}, question_id={self.question_id})>"


class ExamAttempt(Base, IDMixin):
    """One student's attempt at one exam."""

    __tablename__ = "exam_attempts"

    exam_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[AttemptStatus] = mapped_column(
        Enum(AttemptStatus),
        default=AttemptStatus.IN_PROGRESS,
        nullable=False,
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    score: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    correct_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Snapshot of the exam's question count when the attempt started
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)

    # Insertion-ordered mapping question_id -> ExamAnswer
    answers: Mapped[dict[int, "ExamAnswer"]] = relationship(
        "ExamAnswer",
        back_populates="attempt",
        collection_class=attribute_keyed_dict("question_id"),
        order_by="ExamAnswer.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    exam: Mapped["Exam"] = relationship("Exam", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", "attempt_number", name="uq_attempt_number"),
        # At most one in-progress attempt per (exam, student)
        Index(
            "uq_attempt_in_progress",
            "exam_id",
            "student_id",
            unique=True,
            postgresql_where=text("status = 'IN_PROGRESS'"),
            sqlite_where=text("status = 'IN_PROGRESS'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<ExamAttempt(id={self.id}, exam_id={self.exam_id}, status={self.status})>"


class ExamAnswer(Base, IDMixin):
    """Answer recorded for one question of an attempt."""

    __tablename__ = "exam_answers"

    attempt_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("exam_attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    answer: Mapped[Any] = mapped_column(JSONType, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    points: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    attempt: Mapped["ExamAttempt"] = relationship("ExamAttempt", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_answer_question"),
    )


# Import to avoid circular imports
from gradebook.models.subject import SubjectInstance  # noqa: E402
