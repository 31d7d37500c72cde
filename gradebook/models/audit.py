"""Audit log model."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, JSONType, utcnow


class AuditAction(str, enum.Enum):
    """Audit action types."""

    # Exam actions
    EXAM_CREATED = "EXAM_CREATED"
    EXAM_UPDATED = "EXAM_UPDATED"
    EXAM_DELETED = "EXAM_DELETED"
    EXAM_ATTEMPT_STARTED = "EXAM_ATTEMPT_STARTED"
    EXAM_ATTEMPT_GRADED = "EXAM_ATTEMPT_GRADED"

    # Assignment actions
    ASSIGNMENT_CREATED = "ASSIGNMENT_CREATED"
    ASSIGNMENT_UPDATED = "ASSIGNMENT_UPDATED"
    ASSIGNMENT_DELETED = "ASSIGNMENT_DELETED"
    SUBMISSION_CREATED = "SUBMISSION_CREATED"
    SUBMISSION_GRADED = "SUBMISSION_GRADED"
    SUBMISSION_RETURNED = "SUBMISSION_RETURNED"

    # Grade actions
    GRADE_CREATED = "GRADE_CREATED"
    GRADE_UPDATED = "GRADE_UPDATED"
    GRADES_BULK_UPSERTED = "GRADES_BULK_UPSERTED"

    # Calendar actions
    CALENDAR_UPDATED = "CALENDAR_UPDATED"

    # Upload actions
    UPLOAD_COMPLETED = "UPLOAD_COMPLETED"


class AuditLog(Base, IDMixin):
    """Append-only audit log model."""

    __tablename__ = "audit_logs"

    # Actor
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    # Action details
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction),
        nullable=False,
        index=True,
    )
    resource_type: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Additional context (JSON)
    extra_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Timestamp (append-only, no updated_at)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action})>"
