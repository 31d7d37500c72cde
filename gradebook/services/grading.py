"""Grading rules shared by the exam, assignment and grade services.

Everything here is a pure function of its inputs:

* automatic answer checking for exam questions,
* the late-submission penalty for assignments,
* the weighted 30/20/50 component total and the letter-grade scale,
* credit-weighted grade point averages.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from gradebook.models.exam import ExamQuestion, Question, QuestionType

# Component weights for the grade total (classwork / midterm / final)
CLASSWORK_WEIGHT = Decimal("0.30")
MIDTERM_WEIGHT = Decimal("0.20")
FINAL_WEIGHT = Decimal("0.50")

# (minimum percentage, label, grade point), highest threshold first
GRADE_SCALE: list[tuple[Decimal, str, Decimal]] = [
    (Decimal("80"), "A", Decimal("4.0")),
    (Decimal("75"), "B+", Decimal("3.5")),
    (Decimal("70"), "B", Decimal("3.0")),
    (Decimal("65"), "C+", Decimal("2.5")),
    (Decimal("60"), "C", Decimal("2.0")),
    (Decimal("55"), "D+", Decimal("1.5")),
    (Decimal("50"), "D", Decimal("1.0")),
    (Decimal("0"), "F", Decimal("0.0")),
]

CHOICE_TYPES = {QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE}
TEXT_TYPES = {QuestionType.FILL_BLANK, QuestionType.SHORT_ANSWER}

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats and strings to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Decimal, places: int = 2) -> Decimal:
    """Round with ties away from zero (standard school rounding)."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# ==========================================
# Exam auto-grading
# ==========================================

def _normalize_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip().lower()


def correct_option_id(question: Question) -> Any:
    """Return the id of the first option flagged correct, or None."""
    for option in question.options or []:
        if option.get("is_correct"):
            return option.get("id")
    return None


def is_answer_correct(question: Question, answer: Any) -> bool:
    """Decide whether a submitted answer matches the question's answer key.

    Essay and matching questions are never correct here; they need a human.
    """
    if answer is None:
        return False

    if question.type in CHOICE_TYPES:
        key = correct_option_id(question)
        return key is not None and answer == key

    if question.type in TEXT_TYPES:
        submitted = _normalize_text(answer)
        if submitted is None:
            return False
        accepted = [question.correct_answer, *(question.accepted_answers or [])]
        return any(_normalize_text(a) == submitted for a in accepted if a is not None)

    return False


def award_points(exam_question: ExamQuestion, is_correct: bool) -> Decimal:
    """Points earned for one question."""
    if not is_correct:
        return ZERO
    return to_decimal(exam_question.effective_points)


# ==========================================
# Assignment late penalty
# ==========================================

def apply_late_penalty(score: Decimal, is_late: bool, penalty_percent: Decimal) -> Decimal:
    """Deduct a percentage of the score itself, once, for late work."""
    score = to_decimal(score)
    penalty_percent = to_decimal(penalty_percent)
    if not is_late or penalty_percent <= 0:
        return score
    penalty = score * penalty_percent / Decimal("100")
    return max(ZERO, score - penalty)


# ==========================================
# Grade record derivation
# ==========================================

def calculate_grade(percentage: Decimal | float | int) -> tuple[str, Decimal]:
    """Map a percentage to (label, grade point) using the first row it reaches."""
    percentage = to_decimal(percentage)
    for minimum, label, point in GRADE_SCALE:
        if percentage >= minimum:
            return label, point
    return "F", Decimal("0.0")


def calculate_total(
    classwork_score: Decimal | None = None,
    midterm_score: Decimal | None = None,
    final_score: Decimal | None = None,
) -> dict[str, Any]:
    """Weighted total of the raw components; missing components count as 0.

    Components are already on a 0-100 scale, so the total is the percentage.
    """
    classwork = to_decimal(classwork_score) if classwork_score is not None else ZERO
    midterm = to_decimal(midterm_score) if midterm_score is not None else ZERO
    final = to_decimal(final_score) if final_score is not None else ZERO

    total_score = classwork * CLASSWORK_WEIGHT + midterm * MIDTERM_WEIGHT + final * FINAL_WEIGHT
    percentage = total_score
    grade_label, grade_point = calculate_grade(percentage)

    return {
        "total_score": total_score,
        "percentage": percentage,
        "grade_label": grade_label,
        "grade_point": grade_point,
    }


# ==========================================
# GPA
# ==========================================

def weighted_grade_point_average(
    entries: Iterable[tuple[Decimal, Decimal]],
) -> tuple[Decimal, Decimal]:
    """Credit-weighted mean of (grade_point, credits) pairs.

    Returns (average rounded to 2 places, total credits). An empty input or
    zero credits gives an average of 0.
    """
    total_points = ZERO
    total_credits = ZERO
    for grade_point, credits in entries:
        credits = to_decimal(credits)
        total_points += to_decimal(grade_point) * credits
        total_credits += credits

    if total_credits <= 0:
        return ZERO, total_credits
    return round_half_up(total_points / total_credits), total_credits
