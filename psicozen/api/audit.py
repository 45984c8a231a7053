"""API routes for the audit log. Admins of the current organization only."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..core.dependencies import AdminDep, SessionDep
from ..models import AuditAction
from ..schemas.audit import AuditLogEntry, AuditLogResponse, ChainVerificationResult
from ..services.audit import AuditService

router = APIRouter(prefix="/audit", tags=["audit"])


def get_audit_service(session: SessionDep) -> AuditService:
    return AuditService(session)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


@router.get("/log", response_model=AuditLogResponse)
async def get_audit_log(
    current_user: AdminDep,
    service: AuditServiceDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    user_id: UUID | None = None,
    action: AuditAction | None = None,
    resource_type: str | None = None,
    resource_id: UUID | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> AuditLogResponse:
    """Newest first, filtered within the current organization's chain."""
    entries, total = await service.get_audit_log(
        organization_id=current_user.organization_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return AuditLogResponse(
        items=[AuditLogEntry.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/verify-chain", response_model=ChainVerificationResult)
async def verify_audit_chain(
    current_user: AdminDep,
    service: AuditServiceDep,
) -> ChainVerificationResult:
    """Recompute the organization's chain and report the first broken entry."""
    result = await service.verify_chain_integrity(current_user.organization_id)
    return ChainVerificationResult(
        is_valid=result.is_valid,
        verified_entries=result.verified_entries,
        broken_at_id=result.broken_at_id,
        verification_timestamp=result.verified_at,
    )
