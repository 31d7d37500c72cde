"""Assignment service: assignments and the submission lifecycle."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import ConflictError, NotFoundError, ValidationError
from gradebook.models.assignment import Assignment, Submission, SubmissionStatus
from gradebook.models.base import as_utc, utcnow
from gradebook.models.subject import SubjectInstance
from gradebook.schemas.assignment import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    StudentAssignmentResponse,
    SubmissionResponse,
)
from gradebook.services.enrollment import EnrollmentService
from gradebook.services.grading import apply_late_penalty, round_half_up

logger = logging.getLogger(__name__)


class AssignmentService:
    """Assignment management and submission grading."""

    def __init__(self, db: Session):
        self.db = db
        self.enrollment = EnrollmentService(db)

    # ==========================================
    # Assignments
    # ==========================================

    def get_assignment(self, assignment_id: int) -> Assignment:
        """Get assignment by ID."""
        assignment = self.db.get(Assignment, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment", str(assignment_id))
        return assignment

    def create_assignment(self, request: AssignmentCreate, created_by_id: int | None = None) -> Assignment:
        """Create an unpublished assignment."""
        if not self.db.get(SubjectInstance, request.subject_instance_id):
            raise NotFoundError("Subject instance", str(request.subject_instance_id))

        assignment = Assignment(
            **request.model_dump(),
            created_by_id=created_by_id,
        )
        self.db.add(assignment)
        self.db.flush()
        self.db.refresh(assignment)
        return assignment

    def update_assignment(self, assignment_id: int, request: AssignmentUpdate) -> Assignment:
        """Update an assignment. Submissions already handed in keep their is_late flag."""
        assignment = self.get_assignment(assignment_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(assignment, field, value)
        self.db.flush()
        self.db.refresh(assignment)
        return assignment

    def delete_assignment(self, assignment_id: int) -> None:
        """Delete an assignment nobody has submitted to."""
        assignment = self.get_assignment(assignment_id)
        submission_count = self.db.execute(
            select(func.count(Submission.id)).where(Submission.assignment_id == assignment_id)
        ).scalar() or 0
        if submission_count > 0:
            raise ConflictError(
                "Cannot delete an assignment that already has submissions",
                details={"submissions": submission_count},
            )
        self.db.delete(assignment)
        self.db.flush()

    def publish_assignment(self, assignment_id: int, now: datetime | None = None) -> Assignment:
        assignment = self.get_assignment(assignment_id)
        if not assignment.is_published:
            assignment.is_published = True
            assignment.published_at = assignment.published_at or now or utcnow()
            self.db.flush()
        return assignment

    def unpublish_assignment(self, assignment_id: int) -> Assignment:
        assignment = self.get_assignment(assignment_id)
        assignment.is_published = False
        self.db.flush()
        return assignment

    def list_assignments_for_student(self, student_id: int) -> list[StudentAssignmentResponse]:
        """Published assignments of a student's subject instances, with their submission."""
        self.enrollment.get_student(student_id)
        instance_ids = self.enrollment.enrolled_subject_instances(student_id)
        if not instance_ids:
            return []

        assignments = self.db.execute(
            select(Assignment)
            .where(
                Assignment.subject_instance_id.in_(instance_ids),
                Assignment.is_published.is_(True),
            )
            .order_by(Assignment.due_date)
        ).scalars().all()

        submissions = {
            s.assignment_id: s
            for s in self.db.execute(
                select(Submission).where(
                    Submission.student_id == student_id,
                    Submission.assignment_id.in_([a.id for a in assignments]),
                )
            ).scalars().all()
        }

        return [
            StudentAssignmentResponse(
                **AssignmentResponse.model_validate(a).model_dump(),
                submission=(
                    SubmissionResponse.model_validate(submissions[a.id])
                    if a.id in submissions else None
                ),
            )
            for a in assignments
        ]

    # ==========================================
    # Submissions
    # ==========================================

    def get_submission(self, submission_id: int) -> Submission:
        """Get submission by ID."""
        submission = self.db.get(Submission, submission_id)
        if not submission:
            raise NotFoundError("Submission", str(submission_id))
        return submission

    def submit(
        self,
        assignment_id: int,
        student_id: int,
        content: str | None = None,
        files: list[dict[str, Any]] | None = None,
        now: datetime | None = None,
    ) -> Submission:
        """Hand in work for an assignment.

        A PENDING or RETURNED submission is updated in place and its lateness
        is re-evaluated against this call's time. Work that is already
        SUBMITTED or GRADED cannot be handed in again.
        """
        assignment = self.get_assignment(assignment_id)
        self.enrollment.get_student(student_id)
        now = now or utcnow()

        if not assignment.is_published:
            raise ValidationError("Assignment is not open for submissions")

        submission = self.db.execute(
            select(Submission).where(
                Submission.assignment_id == assignment_id,
                Submission.student_id == student_id,
            )
        ).scalar_one_or_none()

        if submission and submission.status in (SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED):
            raise ConflictError(
                "Assignment has already been submitted",
                details={"submission_id": submission.id, "status": submission.status.value},
            )

        is_late = now > as_utc(assignment.due_date)
        if is_late and not assignment.allow_late_submission:
            raise ValidationError(
                "Late submissions are not accepted for this assignment",
                details={"due_date": as_utc(assignment.due_date).isoformat()},
            )

        if submission:
            submission.content = content
            submission.files = files
        else:
            submission = Submission(
                assignment_id=assignment_id,
                student_id=student_id,
                content=content,
                files=files,
            )
            self.db.add(submission)

        submission.status = SubmissionStatus.SUBMITTED
        submission.submitted_at = now
        submission.is_late = is_late

        self.db.flush()
        self.db.refresh(submission)
        logger.info(
            f"[SUBMISSION] Submission {submission.id} assignment={assignment_id} "
            f"student={student_id} late={is_late}"
        )
        return submission

    def grade_submission(
        self,
        submission_id: int,
        score: Decimal,
        feedback: str | None = None,
        graded_by_id: int | None = None,
        now: datetime | None = None,
    ) -> Submission:
        """Grade a submission, deducting the late penalty once."""
        submission = self.get_submission(submission_id)
        assignment = submission.assignment

        if score > assignment.max_score:
            raise ValidationError(
                f"Score ({score}) exceeds max score ({assignment.max_score})",
                details={"max_score": str(assignment.max_score)},
            )

        final_score = round_half_up(
            apply_late_penalty(score, submission.is_late, assignment.late_penalty_percent)
        )

        submission.score = final_score
        submission.feedback = feedback
        submission.status = SubmissionStatus.GRADED
        submission.graded_by_id = graded_by_id
        submission.graded_at = now or utcnow()

        self.db.flush()
        logger.info(
            f"[SUBMISSION] Graded submission {submission.id} raw={score} "
            f"final={final_score} late={submission.is_late}"
        )
        return submission

    def return_submission(self, submission_id: int, feedback: str | None = None) -> Submission:
        """Send a submission back for revision; any score is kept."""
        submission = self.get_submission(submission_id)
        submission.status = SubmissionStatus.RETURNED
        if feedback is not None:
            submission.feedback = feedback
        self.db.flush()
        return submission

    def list_student_submissions(self, student_id: int) -> list[Submission]:
        result = self.db.execute(
            select(Submission)
            .where(Submission.student_id == student_id)
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        )
        return list(result.scalars().all())
