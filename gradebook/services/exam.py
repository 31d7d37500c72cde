"""Exam service: exams, question banks and the exam attempt state machine."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gradebook.core.exceptions import (
    AttemptLimitExceededError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from gradebook.models.base import as_utc, utcnow
from gradebook.models.exam import (
    AttemptStatus,
    Exam,
    ExamAnswer,
    ExamAttempt,
    ExamQuestion,
    Question,
    QuestionBank,
)
from gradebook.models.subject import Subject, SubjectInstance
from gradebook.schemas.exam import (
    AttemptQuestion,
    ExamAnswerResponse,
    ExamAttemptResponse,
    ExamCreate,
    ExamDetailResponse,
    ExamQuestionAdd,
    ExamQuestionResponse,
    ExamResponse,
    ExamUpdate,
    PublicOption,
    QuestionBankCreate,
    QuestionBankResponse,
    QuestionCreate,
    QuestionResponse,
)
from gradebook.services.enrollment import EnrollmentService
from gradebook.services.grading import award_points, is_answer_correct

logger = logging.getLogger(__name__)


class ExamService:
    """Exam management and exam attempt lifecycle."""

    def __init__(self, db: Session):
        self.db = db
        self.enrollment = EnrollmentService(db)

    # ==========================================
    # Response Helpers
    # ==========================================

    def exam_to_response(self, exam: Exam, detailed: bool = False) -> ExamResponse:
        """Convert Exam to response schema."""
        data = {
            "id": exam.id,
            "subject_instance_id": exam.subject_instance_id,
            "title": exam.title,
            "description": exam.description,
            "instructions": exam.instructions,
            "type": exam.type,
            "max_score": exam.max_score,
            "passing_score": exam.passing_score,
            "start_time": exam.start_time,
            "end_time": exam.end_time,
            "duration": exam.duration,
            "max_attempts": exam.max_attempts,
            "shuffle_questions": exam.shuffle_questions,
            "shuffle_options": exam.shuffle_options,
            "is_published": exam.is_published,
            "published_at": exam.published_at,
            "created_by_id": exam.created_by_id,
            "question_count": len(exam.questions),
            "created_at": exam.created_at,
            "updated_at": exam.updated_at,
        }
        if not detailed:
            return ExamResponse.model_validate(data)

        data["questions"] = [self.exam_question_to_response(eq) for eq in exam.questions]
        return ExamDetailResponse.model_validate(data)

    def exam_question_to_response(self, exam_question: ExamQuestion) -> ExamQuestionResponse:
        return ExamQuestionResponse(
            id=exam_question.id,
            exam_id=exam_question.exam_id,
            question_id=exam_question.question_id,
            order=exam_question.order,
            points=exam_question.effective_points,
            question=QuestionResponse.model_validate(exam_question.question),
        )

    def attempt_to_response(self, attempt: ExamAttempt) -> ExamAttemptResponse:
        """Convert ExamAttempt to response, hiding answer keys while in progress."""
        exam = attempt.exam
        passed = None
        if attempt.status == AttemptStatus.GRADED and exam.passing_score is not None:
            passed = (attempt.score or Decimal("0")) >= exam.passing_score

        questions = []
        if attempt.status == AttemptStatus.IN_PROGRESS:
            questions = [
                AttemptQuestion(
                    question_id=eq.question_id,
                    order=eq.order,
                    points=eq.effective_points,
                    type=eq.question.type,
                    content=eq.question.content,
                    options=[
                        PublicOption(id=str(o.get("id")), text=str(o.get("text", "")))
                        for o in eq.question.options
                    ] if eq.question.options else None,
                )
                for eq in exam.questions
            ]

        return ExamAttemptResponse(
            id=attempt.id,
            exam_id=attempt.exam_id,
            student_id=attempt.student_id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            started_at=attempt.started_at,
            submitted_at=attempt.submitted_at,
            score=attempt.score,
            correct_count=attempt.correct_count,
            total_questions=attempt.total_questions,
            max_score=exam.max_score,
            passed=passed,
            answers=[
                ExamAnswerResponse(
                    question_id=a.question_id,
                    answer=a.answer,
                    is_correct=a.is_correct,
                    points=a.points,
                )
                for a in attempt.answers.values()
            ],
            questions=questions,
        )

    # ==========================================
    # Exams
    # ==========================================

    def get_exam(self, exam_id: int) -> Exam:
        """Get exam by ID."""
        exam = self.db.get(Exam, exam_id)
        if not exam:
            raise NotFoundError("Exam", str(exam_id))
        return exam

    def create_exam(self, request: ExamCreate, created_by_id: int | None = None) -> Exam:
        """Create an unpublished exam."""
        if not self.db.get(SubjectInstance, request.subject_instance_id):
            raise NotFoundError("Subject instance", str(request.subject_instance_id))

        exam = Exam(
            subject_instance_id=request.subject_instance_id,
            title=request.title,
            description=request.description,
            instructions=request.instructions,
            type=request.type,
            max_score=request.max_score,
            passing_score=request.passing_score,
            start_time=request.start_time,
            end_time=request.end_time,
            duration=request.duration,
            shuffle_questions=request.shuffle_questions,
            shuffle_options=request.shuffle_options,
            max_attempts=request.max_attempts,
            created_by_id=created_by_id,
        )
        self.db.add(exam)
        self.db.flush()
        self.db.refresh(exam)
        return exam

    def update_exam(
        self,
        exam_id: int,
        request: ExamUpdate,
        now: datetime | None = None,
    ) -> Exam:
        """Update an exam; publishing stamps published_at the first time."""
        exam = self.get_exam(exam_id)
        update_data = request.model_dump(exclude_unset=True)

        start_time = update_data.get("start_time", exam.start_time)
        end_time = update_data.get("end_time", exam.end_time)
        if as_utc(end_time) <= as_utc(start_time):
            raise ValidationError("end_time must be after start_time")

        if update_data.get("is_published") and not exam.is_published:
            exam.published_at = now or utcnow()

        for field, value in update_data.items():
            setattr(exam, field, value)

        self.db.flush()
        self.db.refresh(exam)
        return exam

    def delete_exam(self, exam_id: int) -> None:
        """Delete an exam that nobody has attempted yet."""
        exam = self.get_exam(exam_id)
        attempt_count = self._count_attempts(exam_id)
        if attempt_count > 0:
            raise ConflictError(
                "Cannot delete an exam that already has attempts",
                details={"attempts": attempt_count},
            )
        self.db.delete(exam)
        self.db.flush()

    def add_question(self, exam_id: int, request: ExamQuestionAdd) -> ExamQuestion:
        """Add a question to an exam, appending it after the last one by default."""
        exam = self.get_exam(exam_id)
        question = self.get_question(request.question_id)

        if any(eq.question_id == question.id for eq in exam.questions):
            raise ConflictError(f"Question {question.id} is already part of this exam")

        order = request.order
        if order is None:
            max_order = self.db.execute(
                select(func.max(ExamQuestion.order)).where(ExamQuestion.exam_id == exam_id)
            ).scalar()
            order = (max_order or 0) + 1

        exam_question = ExamQuestion(
            exam_id=exam_id,
            question_id=question.id,
            order=order,
            points=request.points if request.points is not None else question.points,
        )
        exam.questions.append(exam_question)
        self.db.flush()
        self.db.refresh(exam_question)
        return exam_question

    def remove_question(self, exam_id: int, question_id: int) -> None:
        """Remove a question from an exam.

        Attempts already in progress keep their total_questions snapshot.
        """
        exam = self.get_exam(exam_id)
        exam_question = next((eq for eq in exam.questions if eq.question_id == question_id), None)
        if not exam_question:
            raise NotFoundError("Exam question", str(question_id))
        exam.questions.remove(exam_question)
        self.db.flush()

    def list_exams_for_student(self, student_id: int) -> list[Exam]:
        """Published exams of the subject instances a student is enrolled in."""
        self.enrollment.get_student(student_id)
        instance_ids = self.enrollment.enrolled_subject_instances(student_id)
        if not instance_ids:
            return []

        result = self.db.execute(
            select(Exam)
            .where(
                Exam.subject_instance_id.in_(instance_ids),
                Exam.is_published.is_(True),
            )
            .order_by(Exam.start_time)
        )
        return list(result.scalars().all())

    # ==========================================
    # Question Banks
    # ==========================================

    def create_question_bank(self, request: QuestionBankCreate) -> QuestionBankResponse:
        if not self.db.get(Subject, request.subject_id):
            raise NotFoundError("Subject", str(request.subject_id))

        bank = QuestionBank(
            subject_id=request.subject_id,
            name=request.name,
            description=request.description,
        )
        self.db.add(bank)
        self.db.flush()
        self.db.refresh(bank)
        return self._bank_to_response(bank)

    def list_question_banks(self, subject_id: int) -> list[QuestionBankResponse]:
        result = self.db.execute(
            select(QuestionBank)
            .where(QuestionBank.subject_id == subject_id)
            .order_by(QuestionBank.name)
        )
        return [self._bank_to_response(b) for b in result.scalars().all()]

    def create_question(self, request: QuestionCreate) -> Question:
        if not self.db.get(QuestionBank, request.question_bank_id):
            raise NotFoundError("Question bank", str(request.question_bank_id))

        question = Question(
            question_bank_id=request.question_bank_id,
            type=request.type,
            content=request.content,
            explanation=request.explanation,
            options=[o.model_dump() for o in request.options] if request.options else None,
            matching_pairs=request.matching_pairs,
            correct_answer=request.correct_answer,
            accepted_answers=request.accepted_answers,
            difficulty=request.difficulty,
            points=request.points,
            tags=request.tags,
        )
        self.db.add(question)
        self.db.flush()
        self.db.refresh(question)
        return question

    def get_question(self, question_id: int) -> Question:
        question = self.db.get(Question, question_id)
        if not question:
            raise NotFoundError("Question", str(question_id))
        return question

    def list_questions(self, question_bank_id: int) -> list[Question]:
        result = self.db.execute(
            select(Question)
            .where(Question.question_bank_id == question_bank_id)
            .order_by(Question.created_at.desc(), Question.id.desc())
        )
        return list(result.scalars().all())

    # ==========================================
    # Attempts
    # ==========================================

    def start_attempt(
        self,
        exam_id: int,
        student_id: int,
        now: datetime | None = None,
    ) -> ExamAttempt:
        """Start an attempt, or return the student's attempt already in progress.

        The exam window is checked against server time; the client timer is
        never trusted.
        """
        exam = self.get_exam(exam_id)
        self.enrollment.get_student(student_id)
        now = now or utcnow()

        if not exam.is_published:
            raise ValidationError("Exam is not open yet")
        if now < as_utc(exam.start_time):
            raise ValidationError(
                "Exam has not started yet",
                details={"start_time": as_utc(exam.start_time).isoformat()},
            )
        if now > as_utc(exam.end_time):
            raise ValidationError(
                "Exam has already closed",
                details={"end_time": as_utc(exam.end_time).isoformat()},
            )

        # Re-entry after a reconnect returns the same attempt
        in_progress = self._get_in_progress_attempt(exam_id, student_id)
        if in_progress:
            logger.info(f"[EXAM ATTEMPT] Resuming attempt {in_progress.id} exam={exam_id} student={student_id}")
            return in_progress

        attempt_count = self._count_attempts(exam_id, student_id)
        if attempt_count >= exam.max_attempts:
            raise AttemptLimitExceededError(exam.max_attempts)

        attempt = ExamAttempt(
            exam_id=exam_id,
            student_id=student_id,
            attempt_number=attempt_count + 1,
            status=AttemptStatus.IN_PROGRESS,
            started_at=now,
            total_questions=len(exam.questions),
        )
        try:
            with self.db.begin_nested():
                self.db.add(attempt)
        except IntegrityError:
            # A concurrent start won the race; hand back its attempt
            logger.warning(f"[EXAM ATTEMPT] Concurrent start detected exam={exam_id} student={student_id}")
            winner = self._get_in_progress_attempt(exam_id, student_id)
            if winner:
                return winner
            raise ConflictError("Another attempt was started concurrently, please retry")

        self.db.refresh(attempt)
        logger.info(
            f"[EXAM ATTEMPT] Started attempt {attempt.id} (#{attempt.attempt_number}) "
            f"exam={exam_id} student={student_id} questions={attempt.total_questions}"
        )
        return attempt

    def submit_answer(self, attempt_id: int, question_id: int, answer: Any) -> ExamAttempt:
        """Record (or replace) the answer for one question. No grading happens here."""
        attempt = self.get_attempt(attempt_id)
        self._ensure_in_progress(attempt)

        if not any(eq.question_id == question_id for eq in attempt.exam.questions):
            raise NotFoundError("Exam question", str(question_id))

        existing = attempt.answers.get(question_id)
        if existing:
            existing.answer = answer
            self.db.flush()
            return attempt

        try:
            with self.db.begin_nested():
                attempt.answers[question_id] = ExamAnswer(question_id=question_id, answer=answer)
        except IntegrityError:
            # A concurrent autosave inserted the row first; last write wins
            row = self.db.execute(
                select(ExamAnswer).where(
                    ExamAnswer.attempt_id == attempt_id,
                    ExamAnswer.question_id == question_id,
                )
            ).scalar_one()
            row.answer = answer
            self.db.flush()
            self.db.refresh(attempt)

        return attempt

    def submit_exam(self, attempt_id: int, now: datetime | None = None) -> ExamAttempt:
        """Finish an attempt and auto-grade it in one step.

        Accepted whenever the attempt is still in progress, even slightly after
        the exam's end_time, since the attempt began inside the window.
        """
        attempt = self.get_attempt(attempt_id)
        self._ensure_in_progress(attempt)

        score = Decimal("0")
        correct_count = 0

        for exam_question in attempt.exam.questions:
            recorded = attempt.answers.get(exam_question.question_id)
            is_correct = bool(recorded) and is_answer_correct(exam_question.question, recorded.answer)
            points = award_points(exam_question, is_correct)

            if is_correct:
                score += points
                correct_count += 1

            if recorded:
                recorded.is_correct = is_correct
                recorded.points = points

        attempt.score = score
        attempt.correct_count = correct_count
        attempt.status = AttemptStatus.GRADED
        attempt.submitted_at = now or utcnow()

        self.db.flush()
        logger.info(
            f"[EXAM ATTEMPT] Graded attempt {attempt.id} exam={attempt.exam_id} "
            f"student={attempt.student_id} score={score} correct={correct_count}/{len(attempt.exam.questions)}"
        )
        return attempt

    def get_attempt(self, attempt_id: int) -> ExamAttempt:
        """Get exam attempt by ID."""
        attempt = self.db.get(ExamAttempt, attempt_id)
        if not attempt:
            raise NotFoundError("Exam attempt", str(attempt_id))
        return attempt

    def list_student_attempts(self, student_id: int) -> list[ExamAttempt]:
        """A student's attempts, newest first."""
        result = self.db.execute(
            select(ExamAttempt)
            .where(ExamAttempt.student_id == student_id)
            .order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc())
        )
        return list(result.scalars().all())

    # ==========================================
    # Helper Methods
    # ==========================================

    def _bank_to_response(self, bank: QuestionBank) -> QuestionBankResponse:
        return QuestionBankResponse(
            id=bank.id,
            subject_id=bank.subject_id,
            name=bank.name,
            description=bank.description,
            question_count=len(bank.questions),
            created_at=bank.created_at,
            updated_at=bank.updated_at,
        )

    def _ensure_in_progress(self, attempt: ExamAttempt) -> None:
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Exam attempt", attempt.status.value)

    def _get_in_progress_attempt(self, exam_id: int, student_id: int) -> ExamAttempt | None:
        result = self.db.execute(
            select(ExamAttempt).where(
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.student_id == student_id,
                ExamAttempt.status == AttemptStatus.IN_PROGRESS,
            )
        )
        return result.scalar_one_or_none()

    def _count_attempts(self, exam_id: int, student_id: int | None = None) -> int:
        query = select(func.count(ExamAttempt.id)).where(ExamAttempt.exam_id == exam_id)
        if student_id is not None:
            query = query.where(ExamAttempt.student_id == student_id)
        return self.db.execute(query).scalar() or 0
