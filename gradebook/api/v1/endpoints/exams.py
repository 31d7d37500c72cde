"""Exam, question bank and exam attempt endpoints."""

from fastapi import APIRouter, Request

from gradebook.core.database import DbSession
from gradebook.core.dependencies import (
    CurrentUser,
    CurrentUserContext,
    StaffUser,
    StudentUser,
    require_self_or_staff,
)
from gradebook.core.exceptions import PermissionDeniedError
from gradebook.models.audit import AuditAction
from gradebook.models.exam import ExamAttempt
from gradebook.schemas.common import MessageResponse
from gradebook.schemas.exam import (
    AnswerSubmit,
    ExamAttemptResponse,
    ExamCreate,
    ExamDetailResponse,
    ExamQuestionAdd,
    ExamQuestionResponse,
    ExamResponse,
    ExamUpdate,
    QuestionBankCreate,
    QuestionBankResponse,
    QuestionCreate,
    QuestionResponse,
)
from gradebook.services.audit import AuditService
from gradebook.services.exam import ExamService

router = APIRouter()


def _client_ip(http_request: Request) -> str | None:
    return http_request.client.host if http_request.client else None


def _own_attempt(service: ExamService, attempt_id: int, context: CurrentUserContext) -> ExamAttempt:
    """Load an attempt, refusing students who do not own it."""
    attempt = service.get_attempt(attempt_id)
    if context.is_student() and attempt.student_id != context.student_id:
        raise PermissionDeniedError("Students may only access their own attempts")
    return attempt


# ==========================================
# Question Banks
# ==========================================

@router.post("/question-banks", response_model=QuestionBankResponse)
def create_question_bank(
    request: QuestionBankCreate,
    context: StaffUser,
    db: DbSession,
):
    """
    Create a question bank for a subject.
    Requires teacher role.
    """
    service = ExamService(db)
    return service.create_question_bank(request)


@router.get("/question-banks", response_model=list[QuestionBankResponse])
def list_question_banks(
    subject_id: int,
    context: StaffUser,
    db: DbSession,
):
    """
    List question banks of a subject.
    Requires teacher role.
    """
    service = ExamService(db)
    return service.list_question_banks(subject_id)


@router.post("/questions", response_model=QuestionResponse)
def create_question(
    request: QuestionCreate,
    context: StaffUser,
    db: DbSession,
):
    """
    Add a question to a question bank.
    Requires teacher role.
    """
    service = ExamService(db)
    return service.create_question(request)


@router.get("/question-banks/{question_bank_id}/questions", response_model=list[QuestionResponse])
def list_questions(
    question_bank_id: int,
    context: StaffUser,
    db: DbSession,
):
    """
    List the questions of a question bank, answer keys included.
    Requires teacher role.
    """
    service = ExamService(db)
    return service.list_questions(question_bank_id)


# ==========================================
# Attempts
# ==========================================

@router.get("/my", response_model=list[ExamResponse])
def list_my_exams(
    context: StudentUser,
    db: DbSession,
):
    """
    List published exams of the caller's enrolled subjects.
    Requires student role.
    """
    service = ExamService(db)
    exams = service.list_exams_for_student(context.require_student_id())
    return [service.exam_to_response(e) for e in exams]


@router.get("/student/{student_id}/attempts", response_model=list[ExamAttemptResponse])
def list_student_attempts(
    student_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """
    List a student's exam attempts, newest first.
    Students may only list their own.
    """
    require_self_or_staff(student_id, context)
    service = ExamService(db)
    return [service.attempt_to_response(a) for a in service.list_student_attempts(student_id)]


@router.get("/attempts/{attempt_id}", response_model=ExamAttemptResponse)
def get_attempt(
    attempt_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """Get an exam attempt. Students may only read their own."""
    service = ExamService(db)
    attempt = _own_attempt(service, attempt_id, context)
    return service.attempt_to_response(attempt)


@router.put("/attempts/{attempt_id}/answer", response_model=ExamAttemptResponse)
def submit_answer(
    attempt_id: int,
    request: AnswerSubmit,
    context: StudentUser,
    db: DbSession,
):
    """
    Save (or replace) the answer to one question of an in-progress attempt.
    Requires student role.
    """
    service = ExamService(db)
    _own_attempt(service, attempt_id, context)
    attempt = service.submit_answer(attempt_id, request.question_id, request.answer)
    return service.attempt_to_response(attempt)


@router.post("/attempts/{attempt_id}/submit", response_model=ExamAttemptResponse)
def submit_exam(
    attempt_id: int,
    context: StudentUser,
    db: DbSession,
    http_request: Request,
):
    """
    Submit an attempt; it is graded immediately.
    Requires student role.
    """
    service = ExamService(db)
    _own_attempt(service, attempt_id, context)
    attempt = service.submit_exam(attempt_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_ATTEMPT_GRADED,
        resource_type="exam_attempt",
        resource_id=str(attempt.id),
        user_id=context.user_id,
        description=f"Attempt {attempt.id} for exam {attempt.exam_id} graded: {attempt.score}",
        extra_data={"score": str(attempt.score), "correct_count": attempt.correct_count},
        ip_address=_client_ip(http_request),
    )

    return service.attempt_to_response(attempt)


# ==========================================
# Exams
# ==========================================

@router.post("", response_model=ExamResponse)
def create_exam(
    request: ExamCreate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Create an unpublished exam.
    Requires teacher role.
    """
    service = ExamService(db)
    exam = service.create_exam(request, created_by_id=context.user_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_CREATED,
        resource_type="exam",
        resource_id=str(exam.id),
        user_id=context.user_id,
        description=f"Exam '{exam.title}' created",
        ip_address=_client_ip(http_request),
    )

    return service.exam_to_response(exam)


@router.get("/{exam_id}", response_model=ExamDetailResponse)
def get_exam(
    exam_id: int,
    context: StaffUser,
    db: DbSession,
):
    """
    Get an exam with its questions and answer keys.
    Requires teacher role.
    """
    service = ExamService(db)
    return service.exam_to_response(service.get_exam(exam_id), detailed=True)


@router.patch("/{exam_id}", response_model=ExamResponse)
def update_exam(
    exam_id: int,
    request: ExamUpdate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Update an exam. Setting is_published opens it to students.
    Requires teacher role.
    """
    service = ExamService(db)
    exam = service.update_exam(exam_id, request)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_UPDATED,
        resource_type="exam",
        resource_id=str(exam_id),
        user_id=context.user_id,
        description=f"Exam {exam_id} updated",
        extra_data=request.model_dump(mode="json", exclude_unset=True),
        ip_address=_client_ip(http_request),
    )

    return service.exam_to_response(exam)


@router.delete("/{exam_id}", response_model=MessageResponse)
def delete_exam(
    exam_id: int,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Delete an exam that has no attempts.
    Requires teacher role.
    """
    service = ExamService(db)
    service.delete_exam(exam_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_DELETED,
        resource_type="exam",
        resource_id=str(exam_id),
        user_id=context.user_id,
        ip_address=_client_ip(http_request),
    )

    return MessageResponse(message="Exam deleted successfully")


@router.post("/{exam_id}/questions", response_model=ExamQuestionResponse)
def add_exam_question(
    exam_id: int,
    request: ExamQuestionAdd,
    context: StaffUser,
    db: DbSession,
):
    """
    Add a question to an exam.
    Requires teacher role.
    """
    service = ExamService(db)
    exam_question = service.add_question(exam_id, request)
    return service.exam_question_to_response(exam_question)


@router.delete("/{exam_id}/questions/{question_id}", response_model=MessageResponse)
def remove_exam_question(
    exam_id: int,
    question_id: int,
    context: StaffUser,
    db: DbSession,
):
    """
    Remove a question from an exam.
    Requires teacher role.
    """
    service = ExamService(db)
    service.remove_question(exam_id, question_id)
    return MessageResponse(message="Question removed from exam")


@router.post("/{exam_id}/start", response_model=ExamAttemptResponse)
def start_attempt(
    exam_id: int,
    context: StudentUser,
    db: DbSession,
    http_request: Request,
):
    """
    Start an exam attempt, or resume the one already in progress.
    Requires student role.
    """
    service = ExamService(db)
    attempt = service.start_attempt(exam_id, context.require_student_id())

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.EXAM_ATTEMPT_STARTED,
        resource_type="exam_attempt",
        resource_id=str(attempt.id),
        user_id=context.user_id,
        description=f"Attempt #{attempt.attempt_number} for exam {exam_id}",
        ip_address=_client_ip(http_request),
    )

    return service.attempt_to_response(attempt)
