"""Database models package."""

from gradebook.models.assignment import Assignment, AssignmentType, Submission, SubmissionStatus
from gradebook.models.audit import AuditAction, AuditLog
from gradebook.models.calendar import AcademicYear, GradingPeriod, Semester
from gradebook.models.exam import (
    AttemptStatus,
    Difficulty,
    Exam,
    ExamAnswer,
    ExamAttempt,
    ExamQuestion,
    ExamType,
    Question,
    QuestionBank,
    QuestionType,
)
from gradebook.models.grade import Grade
from gradebook.models.student import Student
from gradebook.models.subject import Subject, SubjectEnrollment, SubjectInstance

__all__ = [
    # Calendar
    "AcademicYear",
    "Semester",
    "GradingPeriod",
    # Catalog & roster
    "Subject",
    "SubjectInstance",
    "SubjectEnrollment",
    "Student",
    # Exam
    "QuestionBank",
    "Question",
    "QuestionType",
    "Difficulty",
    "Exam",
    "ExamType",
    "ExamQuestion",
    "ExamAttempt",
    "ExamAnswer",
    "AttemptStatus",
    # Assignment
    "Assignment",
    "AssignmentType",
    "Submission",
    "SubmissionStatus",
    # Grade
    "Grade",
    # Audit
    "AuditLog",
    "AuditAction",
]
