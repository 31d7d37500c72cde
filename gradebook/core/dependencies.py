"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Header

from gradebook.core.exceptions import AuthenticationError, PermissionDeniedError
from gradebook.core.security import (
    ROLE_ADMIN,
    ROLE_STUDENT,
    ROLE_TEACHER,
    verify_access_token,
)


class CurrentUserContext:
    """Context object describing the authenticated caller."""

    def __init__(
        self,
        user_id: int,
        role: str,
        student_id: int | None = None,
    ):
        self.user_id = user_id
        self.role = role
        self.student_id = student_id

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT

    def require_student_id(self) -> int:
        """Return the caller's student ID or refuse non-student callers."""
        if self.student_id is None:
            raise PermissionDeniedError("Student account required", required_role=ROLE_STUDENT)
        return self.student_id


def get_current_user(
    authorization: str = Header(..., description="Bearer token"),
) -> CurrentUserContext:
    """Extract and validate the current user from JWT token."""
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization[7:]  # Remove "Bearer " prefix
    payload = verify_access_token(token)

    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id_str = payload.get("sub")
    role = payload.get("role")
    if not user_id_str or not role:
        raise AuthenticationError("Invalid token payload")

    try:
        user_id = int(user_id_str)
        student_id = int(payload["student_id"]) if payload.get("student_id") else None
    except ValueError:
        raise AuthenticationError("Invalid user ID in token")

    return CurrentUserContext(user_id=user_id, role=role, student_id=student_id)


def require_role(*roles: str):
    """Dependency factory that requires one of the given roles (admins always pass)."""

    def check_role(
        context: Annotated[CurrentUserContext, Depends(get_current_user)],
    ) -> CurrentUserContext:
        if context.role not in roles and not context.is_admin():
            raise PermissionDeniedError(
                f"Role '{' or '.join(roles)}' required",
                required_role=roles[0],
            )
        return context

    return check_role


def require_self_or_staff(student_id: int, context: CurrentUserContext) -> None:
    """Students may only read their own records."""
    if context.is_student() and context.student_id != student_id:
        raise PermissionDeniedError("Students may only access their own records")


# Type aliases for dependency injection
CurrentUser = Annotated[CurrentUserContext, Depends(get_current_user)]
StaffUser = Annotated[CurrentUserContext, Depends(require_role(ROLE_TEACHER))]
StudentUser = Annotated[CurrentUserContext, Depends(require_role(ROLE_STUDENT))]
