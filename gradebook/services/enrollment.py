"""Roster lookups used to scope exams, assignments and grade sheets."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import NotFoundError
from gradebook.models.student import Student
from gradebook.models.subject import SubjectEnrollment


class EnrollmentService:
    """Read access to students and their subject enrollments."""

    def __init__(self, db: Session):
        self.db = db

    def get_student(self, student_id: int) -> Student:
        """Get student by ID."""
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFoundError("Student", str(student_id))
        return student

    def enrolled_subject_instances(self, student_id: int) -> list[int]:
        """IDs of the subject instances a student is enrolled in."""
        result = self.db.execute(
            select(SubjectEnrollment.subject_instance_id).where(
                SubjectEnrollment.student_id == student_id,
            )
        )
        return list(result.scalars().all())

    def students_in_subject_instance(self, subject_instance_id: int) -> list[Student]:
        """Students enrolled in a subject instance, ordered by student code."""
        result = self.db.execute(
            select(Student)
            .join(SubjectEnrollment, SubjectEnrollment.student_id == Student.id)
            .where(SubjectEnrollment.subject_instance_id == subject_instance_id)
            .order_by(Student.student_code)
        )
        return list(result.scalars().all())
