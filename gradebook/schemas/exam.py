"""Exam schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field, model_validator

from gradebook.models.exam import AttemptStatus, Difficulty, ExamType, QuestionType
from gradebook.schemas.common import BaseSchema, TimestampSchema


# ==========================================
# Question Bank Schemas
# ==========================================

class QuestionBankCreate(BaseSchema):
    """Question bank creation schema."""

    subject_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class QuestionBankResponse(TimestampSchema):
    """Question bank response schema."""

    id: int
    subject_id: int
    name: str
    description: str | None
    question_count: int = 0


class QuestionOption(BaseSchema):
    """Answer option for choice and true/false questions."""

    id: str = Field(..., min_length=1, max_length=50)
    text: str
    is_correct: bool = False


class QuestionCreate(BaseSchema):
    """Question creation schema."""

    question_bank_id: int
    type: QuestionType
    content: str = Field(..., min_length=1)
    explanation: str | None = None
    options: list[QuestionOption] | None = None
    matching_pairs: list[dict[str, Any]] | None = None
    correct_answer: str | None = None
    accepted_answers: list[str] | None = None
    difficulty: Difficulty = Difficulty.MEDIUM
    points: Decimal = Field(Decimal("1"), ge=0, decimal_places=2)
    tags: list[str] = []

    @model_validator(mode="after")
    def validate_answer_key(self) -> "QuestionCreate":
        """Choice questions need options, text questions need a correct answer."""
        if self.type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE) and not self.options:
            raise ValueError(f"{self.type.value} questions require options")
        if self.type in (QuestionType.FILL_BLANK, QuestionType.SHORT_ANSWER) and not self.correct_answer:
            raise ValueError(f"{self.type.value} questions require correct_answer")
        return self


class QuestionResponse(TimestampSchema):
    """Question response schema including the answer key (staff only)."""

    id: int
    question_bank_id: int
    type: QuestionType
    content: str
    explanation: str | None
    options: list[QuestionOption] | None
    matching_pairs: list[dict[str, Any]] | None
    correct_answer: str | None
    accepted_answers: list[str] | None
    difficulty: Difficulty
    points: Decimal
    tags: list[str] | None


# ==========================================
# Exam Schemas
# ==========================================

class ExamCreate(BaseSchema):
    """Exam creation schema."""

    subject_instance_id: int
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    instructions: str | None = None
    type: ExamType
    max_score: Decimal = Field(..., gt=0)
    passing_score: Decimal | None = Field(None, ge=0)
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., gt=0, description="Duration in minutes")
    shuffle_questions: bool = False
    shuffle_options: bool = False
    max_attempts: int = Field(1, ge=1)

    @model_validator(mode="after")
    def validate_window(self) -> "ExamCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.passing_score is not None and self.passing_score > self.max_score:
            raise ValueError("passing_score cannot exceed max_score")
        return self


class ExamUpdate(BaseSchema):
    """Exam update schema."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    instructions: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = Field(None, gt=0)
    max_attempts: int | None = Field(None, ge=1)
    is_published: bool | None = None


class ExamQuestionAdd(BaseSchema):
    """Add a question to an exam."""

    question_id: int
    order: int | None = Field(None, ge=1)
    points: Decimal | None = Field(None, ge=0, decimal_places=2)


class ExamQuestionResponse(BaseSchema):
    """Exam question with pinned points."""

    id: int
    exam_id: int
    question_id: int
    order: int
    points: Decimal
    question: QuestionResponse


class ExamResponse(TimestampSchema):
    """Exam response schema."""

    id: int
    subject_instance_id: int
    title: str
    description: str | None
    instructions: str | None
    type: ExamType
    max_score: Decimal
    passing_score: Decimal | None
    start_time: datetime
    end_time: datetime
    duration: int
    max_attempts: int
    shuffle_questions: bool
    shuffle_options: bool
    is_published: bool
    published_at: datetime | None
    created_by_id: int | None
    question_count: int = 0


class ExamDetailResponse(ExamResponse):
    """Exam with its ordered question set."""

    questions: list[ExamQuestionResponse] = []


# ==========================================
# Attempt Schemas
# ==========================================

class AnswerSubmit(BaseSchema):
    """Autosave one answer during an attempt."""

    question_id: int
    answer: Any = None


class PublicOption(BaseSchema):
    """Option shown to the student, without the correctness flag."""

    id: str
    text: str


class AttemptQuestion(BaseSchema):
    """Question as presented during an attempt."""

    question_id: int
    order: int
    points: Decimal
    type: QuestionType
    content: str
    options: list[PublicOption] | None = None


class ExamAnswerResponse(BaseSchema):
    """Recorded answer with grading annotations once graded."""

    question_id: int
    answer: Any
    is_correct: bool | None = None
    points: Decimal | None = None


class ExamAttemptResponse(BaseSchema):
    """Exam attempt response schema."""

    id: int
    exam_id: int
    student_id: int
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    submitted_at: datetime | None
    score: Decimal | None
    correct_count: int | None
    total_questions: int
    max_score: Decimal | None = None
    passed: bool | None = None
    answers: list[ExamAnswerResponse] = []
    questions: list[AttemptQuestion] = []
