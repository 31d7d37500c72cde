"""Audit log endpoints."""

from fastapi import APIRouter, Query

from gradebook.core.database import DbSession
from gradebook.core.dependencies import StaffUser
from gradebook.models.audit import AuditAction
from gradebook.schemas.audit import AuditLogResponse
from gradebook.services.audit import AuditService

router = APIRouter()


@router.get("", response_model=list[AuditLogResponse])
def list_audit_logs(
    context: StaffUser,
    db: DbSession,
    action: AuditAction | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    limit: int = Query(100, ge=1, le=500),
):
    """
    List the most recent audit entries, newest first.
    Audit logs are append-only and cannot be modified.
    Requires teacher role.
    """
    service = AuditService(db)
    return service.list_logs(
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        limit=limit,
    )


@router.get("/actions", response_model=list[str])
def list_audit_actions(
    context: StaffUser,
):
    """
    List all available audit action types.
    """
    return [action.value for action in AuditAction]
