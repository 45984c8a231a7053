"""Role assignment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from .base import PsicoZenBaseModel, UserRef


class RoleAssignmentRequest(PsicoZenBaseModel):
    """Grant or revoke a role. Omit organization_id for the global scope."""

    user_id: UUID
    role_name: str = Field(..., min_length=1, max_length=50)
    organization_id: UUID | None = None


class RoleAssignmentResponse(PsicoZenBaseModel):
    id: UUID
    user_id: UUID
    role_id: UUID
    organization_id: UUID | None = None
    assigned_by: UUID | None = None
    assigned_at: datetime


class UserRolesResponse(PsicoZenBaseModel):
    user: UserRef
    organization_id: UUID | None = None
    roles: list[str]
