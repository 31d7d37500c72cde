"""Initial gradebook schema.

Revision ID: 0001_initial_gradebook_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_gradebook_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum types (uppercase values, matching the Python enums)
questiontype = sa.Enum(
    'MULTIPLE_CHOICE', 'TRUE_FALSE', 'FILL_BLANK', 'SHORT_ANSWER', 'ESSAY', 'MATCHING',
    name='questiontype',
)
difficulty = sa.Enum('EASY', 'MEDIUM', 'HARD', name='difficulty')
examtype = sa.Enum('QUIZ', 'MIDTERM', 'FINAL', 'PRACTICE', name='examtype')
attemptstatus = sa.Enum('IN_PROGRESS', 'SUBMITTED', 'GRADED', name='attemptstatus')
assignmenttype = sa.Enum(
    'HOMEWORK', 'PROJECT', 'REPORT', 'PRESENTATION', 'EXERCISE', 'OTHER',
    name='assignmenttype',
)
submissionstatus = sa.Enum('PENDING', 'SUBMITTED', 'GRADED', 'RETURNED', name='submissionstatus')
auditaction = sa.Enum(
    'EXAM_CREATED', 'EXAM_UPDATED', 'EXAM_DELETED', 'EXAM_ATTEMPT_STARTED', 'EXAM_ATTEMPT_GRADED',
    'ASSIGNMENT_CREATED', 'ASSIGNMENT_UPDATED', 'ASSIGNMENT_DELETED',
    'SUBMISSION_CREATED', 'SUBMISSION_GRADED', 'SUBMISSION_RETURNED',
    'GRADE_CREATED', 'GRADE_UPDATED', 'GRADES_BULK_UPSERTED',
    'CALENDAR_UPDATED', 'UPLOAD_COMPLETED',
    name='auditaction',
)

JSONB = postgresql.JSONB(astext_type=sa.Text())


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    ]


def upgrade() -> None:
    """Create calendar, catalog, exam, assignment, grade and audit tables."""
    # Academic calendar
    op.create_table(
        'academic_years',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year'),
    )
    op.create_index('ix_academic_years_is_current', 'academic_years', ['is_current'])

    op.create_table(
        'semesters',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('academic_year_id', sa.BigInteger(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['academic_year_id'], ['academic_years.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('academic_year_id', 'number', name='uq_semester_year_number'),
    )
    op.create_index('ix_semesters_academic_year_id', 'semesters', ['academic_year_id'])
    op.create_index('ix_semesters_is_current', 'semesters', ['is_current'])

    op.create_table(
        'grading_periods',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('semester_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['semester_id'], ['semesters.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_grading_periods_semester_id', 'grading_periods', ['semester_id'])

    # Catalog and roster
    op.create_table(
        'subjects',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('credits', sa.DECIMAL(precision=4, scale=1), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'subject_instances',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('subject_id', sa.BigInteger(), nullable=False),
        sa.Column('semester_id', sa.BigInteger(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['semester_id'], ['semesters.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subject_id', 'semester_id', name='uq_subject_instance_semester'),
    )
    op.create_index('ix_subject_instances_subject_id', 'subject_instances', ['subject_id'])
    op.create_index('ix_subject_instances_semester_id', 'subject_instances', ['semester_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_code', sa.String(length=50), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_code'),
    )

    op.create_table(
        'subject_enrollments',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_instance_id', sa.BigInteger(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subject_instance_id'], ['subject_instances.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'subject_instance_id', name='uq_enrollment_student_instance'),
    )
    op.create_index('ix_subject_enrollments_student_id', 'subject_enrollments', ['student_id'])
    op.create_index('ix_subject_enrollments_subject_instance_id', 'subject_enrollments', ['subject_instance_id'])

    # Question banks and exams
    op.create_table(
        'question_banks',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('subject_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_question_banks_subject_id', 'question_banks', ['subject_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('question_bank_id', sa.BigInteger(), nullable=False),
        sa.Column('type', questiontype, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('options', JSONB, nullable=True),
        sa.Column('matching_pairs', JSONB, nullable=True),
        sa.Column('correct_answer', sa.Text(), nullable=True),
        sa.Column('accepted_answers', JSONB, nullable=True),
        sa.Column('difficulty', difficulty, nullable=False),
        sa.Column('points', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('tags', JSONB, nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['question_bank_id'], ['question_banks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_questions_question_bank_id', 'questions', ['question_bank_id'])

    op.create_table(
        'exams',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('subject_instance_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('type', examtype, nullable=False),
        sa.Column('max_score', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('passing_score', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=False),
        sa.Column('shuffle_options', sa.Boolean(), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_id', sa.BigInteger(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['subject_instance_id'], ['subject_instances.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_exams_subject_instance_id', 'exams', ['subject_instance_id'])

    op.create_table(
        'exam_questions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('question_id', sa.BigInteger(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('points', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'question_id', name='uq_exam_question'),
    )
    op.create_index('ix_exam_questions_exam_id', 'exam_questions', ['exam_id'])
    op.create_index('ix_exam_questions_question_id', 'exam_questions', ['question_id'])

    op.create_table(
        'exam_attempts',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('status', attemptstatus, nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('score', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.Column('correct_count', sa.Integer(), nullable=True),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'student_id', 'attempt_number', name='uq_attempt_number'),
    )
    op.create_index('ix_exam_attempts_exam_id', 'exam_attempts', ['exam_id'])
    op.create_index('ix_exam_attempts_student_id', 'exam_attempts', ['student_id'])
    # At most one in-progress attempt per (exam, student)
    op.create_index(
        'uq_attempt_in_progress',
        'exam_attempts',
        ['exam_id', 'student_id'],
        unique=True,
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
    )

    op.create_table(
        'exam_answers',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('attempt_id', sa.BigInteger(), nullable=False),
        sa.Column('question_id', sa.BigInteger(), nullable=False),
        sa.Column('answer', JSONB, nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('points', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['attempt_id'], ['exam_attempts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_answer_question'),
    )
    op.create_index('ix_exam_answers_attempt_id', 'exam_answers', ['attempt_id'])

    # Assignments
    op.create_table(
        'assignments',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('subject_instance_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('type', assignmenttype, nullable=False),
        sa.Column('max_score', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('weight', sa.DECIMAL(precision=5, scale=2), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('allow_late_submission', sa.Boolean(), nullable=False),
        sa.Column('late_penalty_percent', sa.DECIMAL(precision=5, scale=2), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_id', sa.BigInteger(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['subject_instance_id'], ['subject_instances.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assignments_subject_instance_id', 'assignments', ['subject_instance_id'])
    op.create_index('ix_assignments_due_date', 'assignments', ['due_date'])

    op.create_table(
        'submissions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('assignment_id', sa.BigInteger(), nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('status', submissionstatus, nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('files', JSONB, nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_late', sa.Boolean(), nullable=False),
        sa.Column('score', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('graded_by_id', sa.BigInteger(), nullable=True),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('assignment_id', 'student_id', name='uq_submission_assignment_student'),
    )
    op.create_index('ix_submissions_assignment_id', 'submissions', ['assignment_id'])
    op.create_index('ix_submissions_student_id', 'submissions', ['student_id'])

    # Grades
    op.create_table(
        'grades',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_instance_id', sa.BigInteger(), nullable=False),
        sa.Column('grading_period_id', sa.BigInteger(), nullable=True),
        sa.Column('classwork_score', sa.DECIMAL(precision=5, scale=2), nullable=True),
        sa.Column('midterm_score', sa.DECIMAL(precision=5, scale=2), nullable=True),
        sa.Column('final_score', sa.DECIMAL(precision=5, scale=2), nullable=True),
        sa.Column('behavior_score', sa.DECIMAL(precision=5, scale=2), nullable=True),
        sa.Column('total_score', sa.DECIMAL(precision=7, scale=3), nullable=True),
        sa.Column('percentage', sa.DECIMAL(precision=7, scale=3), nullable=True),
        sa.Column('grade_label', sa.String(length=5), nullable=True),
        sa.Column('grade_point', sa.DECIMAL(precision=3, scale=1), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subject_instance_id'], ['subject_instances.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['grading_period_id'], ['grading_periods.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'student_id', 'subject_instance_id', 'grading_period_id',
            name='uq_grade_student_instance_period',
        ),
    )
    op.create_index('ix_grades_student_id', 'grades', ['student_id'])
    op.create_index('ix_grades_subject_instance_id', 'grades', ['subject_instance_id'])
    op.create_index('ix_grades_grading_period_id', 'grades', ['grading_period_id'])
    # NULLs are distinct in the constraint above; cover the period-less row separately
    op.create_index(
        'uq_grade_student_instance_no_period',
        'grades',
        ['student_id', 'subject_instance_id'],
        unique=True,
        postgresql_where=sa.text('grading_period_id IS NULL'),
    )

    # Audit
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('action', auditaction, nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('resource_id', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('extra_data', JSONB, nullable=True),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    """Drop every gradebook table and enum type."""
    for table in (
        'audit_logs',
        'grades',
        'submissions',
        'assignments',
        'exam_answers',
        'exam_attempts',
        'exam_questions',
        'exams',
        'questions',
        'question_banks',
        'subject_enrollments',
        'students',
        'subject_instances',
        'subjects',
        'grading_periods',
        'semesters',
        'academic_years',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        auditaction,
        submissionstatus,
        assignmenttype,
        attemptstatus,
        examtype,
        difficulty,
        questiontype,
    ):
        enum_type.drop(bind, checkfirst=True)
