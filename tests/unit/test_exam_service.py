"""Unit tests for ExamService: exam setup and the attempt lifecycle."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from gradebook.core.exceptions import (
    AttemptLimitExceededError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from gradebook.models.exam import AttemptStatus, ExamAnswer, ExamType
from gradebook.schemas.exam import ExamCreate, ExamQuestionAdd, ExamUpdate
from gradebook.services.exam import ExamService


@pytest.fixture
def setup(factory):
    """An enrolled student and a published two-question exam."""
    instance = factory.subject_instance()
    student = factory.student()
    factory.enroll(student, instance)
    bank = factory.question_bank(instance.subject)
    choice = factory.choice_question(bank, correct="b")
    text = factory.text_question(bank, answer="Paris")
    exam = factory.exam(instance, questions=[choice, text])
    return {
        "instance": instance,
        "student": student,
        "bank": bank,
        "choice": choice,
        "text": text,
        "exam": exam,
    }


class TestStartAttempt:
    """Tests for starting exam attempts."""

    def test_start_creates_attempt_in_progress(self, db, setup, now) -> None:
        """Test that a first start creates attempt number 1."""
        service = ExamService(db)

        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        assert attempt.status == AttemptStatus.IN_PROGRESS
        assert attempt.attempt_number == 1
        assert attempt.total_questions == 2
        assert attempt.score is None

    def test_start_is_idempotent_while_in_progress(self, db, setup, now) -> None:
        """Test that starting again returns the same attempt."""
        service = ExamService(db)

        first = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        second = service.start_attempt(setup["exam"].id, setup["student"].id, now=now + timedelta(minutes=5))

        assert second.id == first.id
        assert service._count_attempts(setup["exam"].id, setup["student"].id) == 1

    def test_single_attempt_exam_rejects_restart_after_submit(self, db, setup, now) -> None:
        """Test that max_attempts=1 blocks a second attempt."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_exam(attempt.id, now=now)

        with pytest.raises(AttemptLimitExceededError) as exc_info:
            service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        assert exc_info.value.code == "ATTEMPT_LIMIT_REACHED"
        assert exc_info.value.status_code == 409

    def test_multiple_attempts_up_to_limit(self, db, factory, setup, now) -> None:
        """Test that three attempts are allowed and the fourth is refused."""
        service = ExamService(db)
        exam = factory.exam(setup["instance"], questions=[setup["choice"]], max_attempts=3)

        numbers = []
        for _ in range(3):
            attempt = service.start_attempt(exam.id, setup["student"].id, now=now)
            numbers.append(attempt.attempt_number)
            service.submit_exam(attempt.id, now=now)

        assert numbers == [1, 2, 3]
        with pytest.raises(AttemptLimitExceededError):
            service.start_attempt(exam.id, setup["student"].id, now=now)

    def test_attempts_are_counted_per_student(self, db, factory, setup, now) -> None:
        """Test that one student's attempt does not use up another's."""
        service = ExamService(db)
        other = factory.student()
        factory.enroll(other, setup["instance"])

        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_exam(attempt.id, now=now)
        other_attempt = service.start_attempt(setup["exam"].id, other.id, now=now)

        assert other_attempt.attempt_number == 1

    def test_start_before_window_is_rejected(self, db, setup, now) -> None:
        """Test that the exam cannot be started before start_time."""
        service = ExamService(db)

        with pytest.raises(ValidationError) as exc_info:
            service.start_attempt(setup["exam"].id, setup["student"].id, now=now - timedelta(hours=2))

        assert "start_time" in exc_info.value.details

    def test_start_after_window_is_rejected(self, db, setup, now) -> None:
        """Test that the exam cannot be started after end_time."""
        service = ExamService(db)

        with pytest.raises(ValidationError) as exc_info:
            service.start_attempt(setup["exam"].id, setup["student"].id, now=now + timedelta(hours=3))

        assert "end_time" in exc_info.value.details

    def test_unpublished_exam_cannot_be_started(self, db, factory, setup, now) -> None:
        """Test that drafts are closed to students."""
        service = ExamService(db)
        draft = factory.exam(setup["instance"], questions=[setup["choice"]], published=False)

        with pytest.raises(ValidationError):
            service.start_attempt(draft.id, setup["student"].id, now=now)

    def test_unknown_exam_and_student(self, db, setup, now) -> None:
        """Test that missing exams and students raise NotFoundError."""
        service = ExamService(db)

        with pytest.raises(NotFoundError):
            service.start_attempt(999_999, setup["student"].id, now=now)
        with pytest.raises(NotFoundError):
            service.start_attempt(setup["exam"].id, 999_999, now=now)


class TestSubmitAnswer:
    """Tests for recording answers."""

    def test_last_answer_wins(self, db, setup, now) -> None:
        """Test that re-answering replaces the stored answer."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        service.submit_answer(attempt.id, setup["choice"].id, "a")
        service.submit_answer(attempt.id, setup["choice"].id, "b")

        rows = db.execute(
            select(func.count(ExamAnswer.id)).where(ExamAnswer.attempt_id == attempt.id)
        ).scalar()
        assert rows == 1
        assert attempt.answers[setup["choice"].id].answer == "b"

    def test_answer_is_not_graded_on_save(self, db, setup, now) -> None:
        """Test that saving an answer leaves it ungraded."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        service.submit_answer(attempt.id, setup["choice"].id, "b")

        assert attempt.answers[setup["choice"].id].is_correct is None

    def test_question_outside_exam_is_rejected(self, db, factory, setup, now) -> None:
        """Test that answers must target a question of the exam."""
        service = ExamService(db)
        stray = factory.choice_question(setup["bank"])
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        with pytest.raises(NotFoundError):
            service.submit_answer(attempt.id, stray.id, "b")

    def test_answer_after_grading_is_rejected(self, db, setup, now) -> None:
        """Test that a graded attempt is read-only."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_exam(attempt.id, now=now)

        with pytest.raises(InvalidStateError) as exc_info:
            service.submit_answer(attempt.id, setup["choice"].id, "b")

        assert exc_info.value.code == "INVALID_STATE"


class TestSubmitExam:
    """Tests for finishing and auto-grading attempts."""

    def test_end_to_end_grading(self, db, setup, now) -> None:
        """Test one correct and one wrong answer give a score of 1."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_answer(attempt.id, setup["choice"].id, "b")
        service.submit_answer(attempt.id, setup["text"].id, "London")

        graded = service.submit_exam(attempt.id, now=now + timedelta(minutes=30))

        assert graded.status == AttemptStatus.GRADED
        assert graded.score == Decimal("1")
        assert graded.correct_count == 1
        assert graded.total_questions == 2
        assert graded.submitted_at is not None
        assert graded.answers[setup["choice"].id].is_correct is True
        assert graded.answers[setup["text"].id].is_correct is False
        assert graded.answers[setup["text"].id].points == Decimal("0")

        with pytest.raises(AttemptLimitExceededError):
            service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

    def test_unanswered_questions_score_nothing(self, db, setup, now) -> None:
        """Test that skipped questions count as incorrect."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_answer(attempt.id, setup["text"].id, " paris ")

        graded = service.submit_exam(attempt.id, now=now)

        assert graded.score == Decimal("1")
        assert graded.correct_count == 1
        assert setup["choice"].id not in graded.answers

    def test_submit_twice_is_rejected(self, db, setup, now) -> None:
        """Test that an attempt is graded exactly once."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_exam(attempt.id, now=now)

        with pytest.raises(InvalidStateError):
            service.submit_exam(attempt.id, now=now)

    def test_submit_after_end_time_is_accepted(self, db, setup, now) -> None:
        """Test that an attempt started in the window can be submitted late."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        graded = service.submit_exam(attempt.id, now=now + timedelta(hours=5))

        assert graded.status == AttemptStatus.GRADED

    def test_pinned_exam_points_are_used(self, db, factory, setup, now) -> None:
        """Test that exam-specific points override question points."""
        service = ExamService(db)
        exam = factory.exam(setup["instance"])
        service.add_question(exam.id, ExamQuestionAdd(question_id=setup["choice"].id, points=Decimal("4")))
        attempt = service.start_attempt(exam.id, setup["student"].id, now=now)
        service.submit_answer(attempt.id, setup["choice"].id, "b")

        graded = service.submit_exam(attempt.id, now=now)

        assert graded.score == Decimal("4")

    def test_grading_is_deterministic(self, db, factory, setup, now) -> None:
        """Test that identical answers on separate attempts score the same."""
        service = ExamService(db)
        exam = factory.exam(setup["instance"], questions=[setup["choice"], setup["text"]], max_attempts=2)

        scores = []
        for _ in range(2):
            attempt = service.start_attempt(exam.id, setup["student"].id, now=now)
            service.submit_answer(attempt.id, setup["choice"].id, "b")
            service.submit_answer(attempt.id, setup["text"].id, "PARIS")
            scores.append(service.submit_exam(attempt.id, now=now).score)

        assert scores == [Decimal("2"), Decimal("2")]

    def test_response_hides_answer_keys_in_progress(self, db, setup, now) -> None:
        """Test that in-progress attempts expose questions without correct flags."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        response = service.attempt_to_response(attempt)

        assert [q.question_id for q in response.questions] == [setup["choice"].id, setup["text"].id]
        dumped = response.model_dump()
        assert all("is_correct" not in option for option in dumped["questions"][0]["options"])
        assert response.passed is None

    def test_graded_response_reports_pass(self, db, setup, now) -> None:
        """Test that passed is computed against the passing score."""
        service = ExamService(db)
        attempt = service.start_attempt(setup["exam"].id, setup["student"].id, now=now)
        service.submit_answer(attempt.id, setup["choice"].id, "b")
        service.submit_exam(attempt.id, now=now)

        response = service.attempt_to_response(attempt)

        assert response.passed is True
        assert response.questions == []


class TestExamManagement:
    """Tests for exam and question setup."""

    def test_create_exam_is_unpublished(self, db, setup, now) -> None:
        """Test that new exams start as drafts."""
        service = ExamService(db)
        request = ExamCreate(
            subject_instance_id=setup["instance"].id,
            title="Midterm",
            type=ExamType.MIDTERM,
            max_score=Decimal("50"),
            start_time=now,
            end_time=now + timedelta(hours=1),
            duration=60,
        )

        exam = service.create_exam(request, created_by_id=7)

        assert exam.is_published is False
        assert exam.max_attempts == 1
        assert exam.created_by_id == 7

    def test_publish_sets_published_at_once(self, db, factory, setup, now) -> None:
        """Test that published_at is stamped on first publish only."""
        service = ExamService(db)
        draft = factory.exam(setup["instance"], published=False)

        service.update_exam(draft.id, ExamUpdate(is_published=True), now=now)
        service.update_exam(draft.id, ExamUpdate(is_published=True), now=now + timedelta(days=1))

        assert draft.is_published is True
        assert draft.published_at.replace(tzinfo=None) == now.replace(tzinfo=None)

    def test_update_rejects_inverted_window(self, db, setup, now) -> None:
        """Test that end_time must stay after start_time."""
        service = ExamService(db)

        with pytest.raises(ValidationError):
            service.update_exam(setup["exam"].id, ExamUpdate(end_time=now - timedelta(days=1)))

    def test_add_question_appends_and_rejects_duplicates(self, db, factory, setup) -> None:
        """Test default ordering and duplicate protection."""
        service = ExamService(db)
        extra = factory.text_question(setup["bank"], points=Decimal("2"))

        exam_question = service.add_question(setup["exam"].id, ExamQuestionAdd(question_id=extra.id))

        assert exam_question.order == 3
        assert exam_question.points == Decimal("2")
        with pytest.raises(ConflictError):
            service.add_question(setup["exam"].id, ExamQuestionAdd(question_id=extra.id))

    def test_remove_question(self, db, setup) -> None:
        """Test that a question can be taken out of an exam."""
        service = ExamService(db)

        service.remove_question(setup["exam"].id, setup["text"].id)

        assert [eq.question_id for eq in setup["exam"].questions] == [setup["choice"].id]
        with pytest.raises(NotFoundError):
            service.remove_question(setup["exam"].id, setup["text"].id)

    def test_delete_exam_with_attempts_is_refused(self, db, factory, setup, now) -> None:
        """Test that attempted exams cannot be deleted."""
        service = ExamService(db)
        service.start_attempt(setup["exam"].id, setup["student"].id, now=now)

        with pytest.raises(ConflictError):
            service.delete_exam(setup["exam"].id)

        empty = factory.exam(setup["instance"])
        service.delete_exam(empty.id)
        with pytest.raises(NotFoundError):
            service.get_exam(empty.id)

    def test_list_exams_for_student(self, db, factory, setup) -> None:
        """Test that only published exams of enrolled subjects are listed."""
        service = ExamService(db)
        factory.exam(setup["instance"], published=False)
        factory.exam(factory.subject_instance())

        exams = service.list_exams_for_student(setup["student"].id)

        assert [e.id for e in exams] == [setup["exam"].id]
