"""Unit tests for the pure grading rules."""

from decimal import Decimal

import pytest

from gradebook.models.exam import ExamQuestion, Question, QuestionType
from gradebook.services.grading import (
    apply_late_penalty,
    award_points,
    calculate_grade,
    calculate_total,
    is_answer_correct,
    round_half_up,
    weighted_grade_point_average,
)


def choice_question(options: list[dict], question_type: QuestionType = QuestionType.MULTIPLE_CHOICE) -> Question:
    return Question(type=question_type, content="?", options=options, points=Decimal("1"))


def text_question(answer: str, accepted: list[str] | None = None) -> Question:
    return Question(
        type=QuestionType.SHORT_ANSWER,
        content="?",
        correct_answer=answer,
        accepted_answers=accepted,
        points=Decimal("1"),
    )


class TestIsAnswerCorrect:
    """Tests for automatic answer checking."""

    def test_choice_answer_matching_correct_option(self) -> None:
        """Test that the id of the correct option is accepted."""
        question = choice_question([
            {"id": "a", "text": "A", "is_correct": False},
            {"id": "b", "text": "B", "is_correct": True},
        ])

        assert is_answer_correct(question, "b") is True
        assert is_answer_correct(question, "a") is False

    def test_true_false_uses_option_ids(self) -> None:
        """Test that true/false questions are graded like choice questions."""
        question = choice_question(
            [
                {"id": "true", "text": "True", "is_correct": False},
                {"id": "false", "text": "False", "is_correct": True},
            ],
            question_type=QuestionType.TRUE_FALSE,
        )

        assert is_answer_correct(question, "false") is True
        assert is_answer_correct(question, "true") is False

    def test_choice_without_correct_option_is_never_correct(self) -> None:
        """Test that a question with no flagged option accepts nothing."""
        question = choice_question([
            {"id": "a", "text": "A", "is_correct": False},
            {"id": "b", "text": "B", "is_correct": False},
        ])

        assert is_answer_correct(question, "a") is False
        assert is_answer_correct(question, None) is False

    def test_choice_with_several_correct_options_uses_first(self) -> None:
        """Test that only the first flagged option counts as the key."""
        question = choice_question([
            {"id": "a", "text": "A", "is_correct": True},
            {"id": "b", "text": "B", "is_correct": True},
        ])

        assert is_answer_correct(question, "a") is True
        assert is_answer_correct(question, "b") is False

    def test_text_answer_is_trimmed_and_case_insensitive(self) -> None:
        """Test that surrounding whitespace and case are ignored."""
        question = text_question("Paris")

        assert is_answer_correct(question, "  paris ") is True
        assert is_answer_correct(question, "PARIS") is True
        assert is_answer_correct(question, "London") is False

    def test_text_answer_accepts_alternatives(self) -> None:
        """Test that accepted alternatives are matched too."""
        question = text_question("colour", accepted=["color", " Colour "])

        assert is_answer_correct(question, "Color") is True
        assert is_answer_correct(question, "colours") is False

    def test_text_answer_must_be_a_string(self) -> None:
        """Test that non-string answers to text questions are incorrect."""
        question = text_question("42")

        assert is_answer_correct(question, 42) is False
        assert is_answer_correct(question, ["42"]) is False

    @pytest.mark.parametrize("question_type", [QuestionType.ESSAY, QuestionType.MATCHING])
    def test_manual_types_are_never_auto_correct(self, question_type: QuestionType) -> None:
        """Test that essay and matching questions are always incorrect automatically."""
        question = Question(type=question_type, content="?", correct_answer="anything", points=Decimal("5"))

        assert is_answer_correct(question, "anything") is False

    def test_grading_is_deterministic(self) -> None:
        """Test that the same inputs always give the same result."""
        question = text_question("Paris", accepted=["Paree"])

        results = {is_answer_correct(question, "paree") for _ in range(5)}

        assert results == {True}


class TestAwardPoints:
    """Tests for points awarded per question."""

    def test_pinned_points_override_question_points(self) -> None:
        """Test that exam-specific points win over the question's own points."""
        question = text_question("x")
        exam_question = ExamQuestion(question=question, order=1, points=Decimal("2.5"))

        assert award_points(exam_question, True) == Decimal("2.5")

    def test_question_points_used_without_override(self) -> None:
        """Test fallback to the question's points."""
        question = text_question("x")
        exam_question = ExamQuestion(question=question, order=1, points=None)

        assert award_points(exam_question, True) == Decimal("1")

    def test_incorrect_answer_earns_nothing(self) -> None:
        """Test that wrong answers are worth zero."""
        exam_question = ExamQuestion(question=text_question("x"), order=1, points=Decimal("3"))

        assert award_points(exam_question, False) == Decimal("0")


class TestLatePenalty:
    """Tests for the assignment late penalty."""

    def test_late_submission_loses_percentage_of_score(self) -> None:
        """Test that 80 with a 10% penalty becomes 72.0."""
        assert apply_late_penalty(Decimal("80"), True, Decimal("10")) == Decimal("72.0")

    def test_on_time_submission_is_unchanged(self) -> None:
        """Test that on-time work keeps its score."""
        assert apply_late_penalty(Decimal("80"), False, Decimal("10")) == Decimal("80")

    def test_penalty_never_goes_below_zero(self) -> None:
        """Test that a penalty above 100% floors at zero."""
        assert apply_late_penalty(Decimal("50"), True, Decimal("150")) == Decimal("0")

    def test_penalty_is_applied_once(self) -> None:
        """Test that the penalty is a single deduction, not compounded."""
        once = apply_late_penalty(Decimal("100"), True, Decimal("20"))

        assert once == Decimal("80")


class TestCalculateGrade:
    """Tests for the letter-grade scale."""

    @pytest.mark.parametrize(
        "percentage,label,point",
        [
            ("100", "A", "4.0"),
            ("80", "A", "4.0"),
            ("79.99", "B+", "3.5"),
            ("75", "B+", "3.5"),
            ("70", "B", "3.0"),
            ("65", "C+", "2.5"),
            ("60", "C", "2.0"),
            ("55", "D+", "1.5"),
            ("50", "D", "1.0"),
            ("49.999", "F", "0.0"),
            ("0", "F", "0.0"),
        ],
    )
    def test_boundaries(self, percentage: str, label: str, point: str) -> None:
        """Test each threshold of the scale."""
        assert calculate_grade(Decimal(percentage)) == (label, Decimal(point))


class TestCalculateTotal:
    """Tests for the weighted component total."""

    def test_weighted_total(self) -> None:
        """Test the 30/20/50 weighting."""
        result = calculate_total(Decimal("100"), Decimal("0"), Decimal("0"))

        assert result["total_score"] == Decimal("30")
        assert result["percentage"] == Decimal("30")
        assert result["grade_label"] == "F"

    def test_final_only(self) -> None:
        """Test that a perfect final alone is worth 50."""
        result = calculate_total(None, None, Decimal("100"))

        assert result["total_score"] == Decimal("50")
        assert result["grade_label"] == "D"
        assert result["grade_point"] == Decimal("1.0")

    def test_all_components_missing(self) -> None:
        """Test that missing components count as zero."""
        result = calculate_total()

        assert result["total_score"] == Decimal("0")
        assert result["grade_label"] == "F"
        assert result["grade_point"] == Decimal("0.0")

    def test_mixed_components(self) -> None:
        """Test a realistic mix of scores."""
        result = calculate_total(Decimal("90"), Decimal("70"), Decimal("80"))

        # 27 + 14 + 40
        assert result["total_score"] == Decimal("81")
        assert result["grade_label"] == "A"


class TestGradePointAverage:
    """Tests for the credit-weighted average."""

    def test_empty_input(self) -> None:
        """Test that no grades give zero."""
        assert weighted_grade_point_average([]) == (Decimal("0"), Decimal("0"))

    def test_weighted_by_credits(self) -> None:
        """Test weighting by credits and half-up rounding."""
        gpa, credits = weighted_grade_point_average([
            (Decimal("4.0"), Decimal("3")),
            (Decimal("2.5"), Decimal("1")),
            (Decimal("3.5"), Decimal("2")),
        ])

        # (12 + 2.5 + 7) / 6 = 3.5833...
        assert gpa == Decimal("3.58")
        assert credits == Decimal("6")

    def test_round_half_up(self) -> None:
        """Test that ties round away from zero."""
        assert round_half_up(Decimal("3.125")) == Decimal("3.13")
        assert round_half_up(Decimal("3.124")) == Decimal("3.12")
