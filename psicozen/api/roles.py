"""Role assignment API routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from ..core.dependencies import AdminDep, OrgContextDep, SessionDep
from ..models import SystemRole
from ..schemas.base import UserRef
from ..schemas.roles import (
    RoleAssignmentRequest,
    RoleAssignmentResponse,
    UserRolesResponse,
)
from ..services.roles import RoleDirectory

router = APIRouter(prefix="/roles", tags=["roles"])


def _check_scope(payload: RoleAssignmentRequest, current_user) -> None:
    """Org admins manage their own organization; the global scope is super-admin only."""
    if current_user.is_super_admin:
        return
    if payload.organization_id != current_user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Can only manage roles in the current organization",
        )
    if payload.role_name == SystemRole.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )


@router.post(
    "/assignments",
    response_model=RoleAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_role(
    payload: RoleAssignmentRequest,
    session: SessionDep,
    current_user: AdminDep,
) -> RoleAssignmentResponse:
    """Grant a role. A duplicate grant in the same scope returns 409."""
    _check_scope(payload, current_user)
    assignment = await RoleDirectory(session).grant_role(
        user_id=payload.user_id,
        role_name=payload.role_name,
        organization_id=payload.organization_id,
        assigned_by=current_user.id,
    )
    return RoleAssignmentResponse.model_validate(assignment)


@router.delete("/assignments", status_code=status.HTTP_204_NO_CONTENT)
async def remove_role(
    payload: RoleAssignmentRequest,
    session: SessionDep,
    current_user: AdminDep,
) -> None:
    _check_scope(payload, current_user)
    directory = RoleDirectory(session)
    role = await directory.get_by_name(payload.role_name)
    await directory.remove_role_from_user(
        payload.user_id, role.id, payload.organization_id, removed_by=current_user.id
    )


@router.get("/users/{user_id}", response_model=UserRolesResponse)
async def get_user_roles(
    user_id: UUID,
    session: SessionDep,
    current_user: OrgContextDep,
    organization_id: UUID | None = Query(default=None),
) -> UserRolesResponse:
    """Roles in the organization (defaults to the current one) plus global roles."""
    org_id = organization_id or current_user.organization_id
    if org_id != current_user.organization_id and not current_user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization does not match the current context",
        )
    directory = RoleDirectory(session)
    user = await directory.get_user(user_id)
    roles = await directory.get_roles_by_organization(user_id, org_id)
    return UserRolesResponse(
        user=UserRef.model_validate(user), organization_id=org_id, roles=sorted(roles)
    )
