"""Organization API routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from ..core.dependencies import AdminDep, OrgContextDep, SessionDep, SuperAdminDep
from ..schemas.organizations import (
    OrganizationCreate,
    OrganizationResponse,
    OrganizationSettingsUpdate,
)
from ..services.organizations import OrganizationService

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _ensure_same_org(current_org: UUID | None, organization_id: UUID, is_super_admin: bool) -> None:
    if not is_super_admin and current_org != organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization does not match the current context",
        )


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreate,
    session: SessionDep,
    current_user: SuperAdminDep,
) -> OrganizationResponse:
    """Create an organization, optionally under a parent."""
    service = OrganizationService(session)
    organization = await service.create_organization(
        name=payload.name,
        type=payload.type,
        parent_id=payload.parent_id,
        settings=payload.settings.model_dump(exclude_none=True) if payload.settings else None,
        created_by=current_user.id,
    )
    return OrganizationResponse.model_validate(organization)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: UUID,
    session: SessionDep,
    current_user: OrgContextDep,
) -> OrganizationResponse:
    _ensure_same_org(current_user.organization_id, organization_id, current_user.is_super_admin)
    organization = await OrganizationService(session).get_organization(organization_id)
    return OrganizationResponse.model_validate(organization)


@router.get("/{organization_id}/children", response_model=list[OrganizationResponse])
async def list_children(
    organization_id: UUID,
    session: SessionDep,
    current_user: OrgContextDep,
) -> list[OrganizationResponse]:
    _ensure_same_org(current_user.organization_id, organization_id, current_user.is_super_admin)
    children = await OrganizationService(session).list_children(organization_id)
    return [OrganizationResponse.model_validate(c) for c in children]


@router.patch("/{organization_id}/settings", response_model=OrganizationResponse)
async def update_settings(
    organization_id: UUID,
    payload: OrganizationSettingsUpdate,
    session: SessionDep,
    current_user: AdminDep,
) -> OrganizationResponse:
    """Change threshold, retention, locale and other per-organization settings."""
    _ensure_same_org(current_user.organization_id, organization_id, current_user.is_super_admin)
    organization = await OrganizationService(session).update_settings(
        organization_id,
        updated_by=current_user.id,
        **payload.model_dump(exclude_none=True),
    )
    return OrganizationResponse.model_validate(organization)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: UUID,
    session: SessionDep,
    current_user: SuperAdminDep,
) -> None:
    await OrganizationService(session).delete_organization(
        organization_id, deleted_by=current_user.id
    )
