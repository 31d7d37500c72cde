"""Audit log schemas."""

from datetime import datetime
from typing import Any

from gradebook.models.audit import AuditAction
from gradebook.schemas.common import BaseSchema


class AuditLogResponse(BaseSchema):
    """Audit log response schema."""

    id: int
    user_id: int | None
    action: AuditAction
    resource_type: str
    resource_id: str | None
    description: str | None
    extra_data: dict[str, Any] | None
    ip_address: str | None
    created_at: datetime
