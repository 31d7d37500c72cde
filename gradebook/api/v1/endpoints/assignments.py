"""Assignment and submission endpoints."""

from fastapi import APIRouter, Request

from gradebook.core.database import DbSession
from gradebook.core.dependencies import CurrentUser, StaffUser, StudentUser, require_self_or_staff
from gradebook.models.audit import AuditAction
from gradebook.schemas.assignment import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    StudentAssignmentResponse,
    SubmissionCreate,
    SubmissionGrade,
    SubmissionResponse,
    SubmissionReturn,
)
from gradebook.schemas.common import MessageResponse
from gradebook.services.assignment import AssignmentService
from gradebook.services.audit import AuditService

router = APIRouter()


@router.post("", response_model=AssignmentResponse)
def create_assignment(
    request: AssignmentCreate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Create an unpublished assignment.
    Requires teacher role.
    """
    service = AssignmentService(db)
    assignment = service.create_assignment(request, created_by_id=context.user_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.ASSIGNMENT_CREATED,
        resource_type="assignment",
        resource_id=str(assignment.id),
        user_id=context.user_id,
        description=f"Assignment '{assignment.title}' created",
        ip_address=http_request.client.host if http_request.client else None,
    )

    return assignment


@router.get("/my", response_model=list[StudentAssignmentResponse])
def list_my_assignments(
    context: StudentUser,
    db: DbSession,
):
    """
    List published assignments of the caller's enrolled subjects with their submission.
    Requires student role.
    """
    service = AssignmentService(db)
    return service.list_assignments_for_student(context.require_student_id())


@router.get("/student/{student_id}/submissions", response_model=list[SubmissionResponse])
def list_student_submissions(
    student_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """List a student's submissions. Students may only list their own."""
    require_self_or_staff(student_id, context)
    service = AssignmentService(db)
    return service.list_student_submissions(student_id)


@router.put("/submissions/{submission_id}/grade", response_model=SubmissionResponse)
def grade_submission(
    submission_id: int,
    request: SubmissionGrade,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Grade a submission. Late work loses the assignment's penalty percentage.
    Requires teacher role.
    """
    service = AssignmentService(db)
    submission = service.grade_submission(
        submission_id,
        score=request.score,
        feedback=request.feedback,
        graded_by_id=context.user_id,
    )

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.SUBMISSION_GRADED,
        resource_type="submission",
        resource_id=str(submission.id),
        user_id=context.user_id,
        description=f"Submission {submission.id} graded: {submission.score}",
        extra_data={
            "raw_score": str(request.score),
            "score": str(submission.score),
            "is_late": submission.is_late,
        },
        ip_address=http_request.client.host if http_request.client else None,
    )

    return submission


@router.put("/submissions/{submission_id}/return", response_model=SubmissionResponse)
def return_submission(
    submission_id: int,
    request: SubmissionReturn,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Return a submission to the student for revision.
    Requires teacher role.
    """
    service = AssignmentService(db)
    submission = service.return_submission(submission_id, feedback=request.feedback)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.SUBMISSION_RETURNED,
        resource_type="submission",
        resource_id=str(submission.id),
        user_id=context.user_id,
        ip_address=http_request.client.host if http_request.client else None,
    )

    return submission


@router.get("/{assignment_id}", response_model=AssignmentResponse)
def get_assignment(
    assignment_id: int,
    context: CurrentUser,
    db: DbSession,
):
    """Get assignment by ID."""
    service = AssignmentService(db)
    return service.get_assignment(assignment_id)


@router.patch("/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: int,
    request: AssignmentUpdate,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Update an assignment.
    Requires teacher role.
    """
    service = AssignmentService(db)
    assignment = service.update_assignment(assignment_id, request)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.ASSIGNMENT_UPDATED,
        resource_type="assignment",
        resource_id=str(assignment_id),
        user_id=context.user_id,
        description=f"Assignment {assignment_id} updated",
        extra_data=request.model_dump(mode="json", exclude_unset=True),
        ip_address=http_request.client.host if http_request.client else None,
    )

    return assignment


@router.delete("/{assignment_id}", response_model=MessageResponse)
def delete_assignment(
    assignment_id: int,
    context: StaffUser,
    db: DbSession,
    http_request: Request,
):
    """
    Delete an assignment without submissions.
    Requires teacher role.
    """
    service = AssignmentService(db)
    service.delete_assignment(assignment_id)

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.ASSIGNMENT_DELETED,
        resource_type="assignment",
        resource_id=str(assignment_id),
        user_id=context.user_id,
        ip_address=http_request.client.host if http_request.client else None,
    )

    return MessageResponse(message="Assignment deleted successfully")


@router.post("/{assignment_id}/publish", response_model=AssignmentResponse)
def publish_assignment(
    assignment_id: int,
    context: StaffUser,
    db: DbSession,
):
    """Open an assignment for submissions. Requires teacher role."""
    service = AssignmentService(db)
    return service.publish_assignment(assignment_id)


@router.post("/{assignment_id}/unpublish", response_model=AssignmentResponse)
def unpublish_assignment(
    assignment_id: int,
    context: StaffUser,
    db: DbSession,
):
    """Close an assignment for submissions. Requires teacher role."""
    service = AssignmentService(db)
    return service.unpublish_assignment(assignment_id)


@router.post("/{assignment_id}/submit", response_model=SubmissionResponse)
def submit_assignment(
    assignment_id: int,
    request: SubmissionCreate,
    context: StudentUser,
    db: DbSession,
    http_request: Request,
):
    """
    Hand in work for an assignment.
    Requires student role.
    """
    service = AssignmentService(db)
    submission = service.submit(
        assignment_id,
        context.require_student_id(),
        content=request.content,
        files=request.files,
    )

    # Audit log
    audit = AuditService(db)
    audit.log(
        action=AuditAction.SUBMISSION_CREATED,
        resource_type="submission",
        resource_id=str(submission.id),
        user_id=context.user_id,
        description=f"Submission for assignment {assignment_id}" + (" (late)" if submission.is_late else ""),
        ip_address=http_request.client.host if http_request.client else None,
    )

    return submission
