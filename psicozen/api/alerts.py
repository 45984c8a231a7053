"""
Alert API routes.

Managers (gestor, admin) of the current organization can list, inspect and
resolve alerts. Resolution is final: resolving twice returns 409.
"""

from dataclasses import asdict
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..core.dependencies import ManagerDep, SessionDep
from ..models import AlertSeverity
from ..schemas.emociograma import (
    AlertDashboardResponse,
    AlertListResponse,
    AlertResponse,
    AlertStatisticsResponse,
    BulkResolveRequest,
    BulkResolveResponse,
    ResolveAlertRequest,
)
from ..services.alert_engine import AlertEngine, AlertNotFoundError

router = APIRouter(prefix="/alerts", tags=["alerts"])


def get_alert_engine(session: SessionDep) -> AlertEngine:
    return AlertEngine(session)


AlertEngineDep = Annotated[AlertEngine, Depends(get_alert_engine)]


async def _get_org_alert(engine: AlertEngine, alert_id: UUID, organization_id: UUID):
    alert = await engine.get_by_id(alert_id)
    # Other tenants' alerts look like missing ones
    if alert.organization_id != organization_id:
        raise AlertNotFoundError(f"Alert {alert_id} not found")
    return alert


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    current_user: ManagerDep,
    engine: AlertEngineDep,
    take: Annotated[int, Query(ge=1, le=100)] = 10,
    skip: Annotated[int, Query(ge=0)] = 0,
    include_resolved: bool = False,
    severity: AlertSeverity | None = None,
) -> AlertListResponse:
    """Most urgent first: by severity, then newest."""
    alerts, total = await engine.find_by_organization(
        current_user.organization_id,
        take=take,
        skip=skip,
        include_resolved=include_resolved,
        severity=severity,
    )
    return AlertListResponse(
        items=[AlertResponse.model_validate(a) for a in alerts],
        total=total,
        take=take,
        skip=skip,
    )


@router.get("/dashboard", response_model=AlertDashboardResponse)
async def dashboard(
    current_user: ManagerDep,
    engine: AlertEngineDep,
) -> AlertDashboardResponse:
    data = await engine.get_dashboard(current_user.organization_id)
    return AlertDashboardResponse(
        statistics=AlertStatisticsResponse.model_validate(asdict(data.statistics)),
        recent_alerts=[AlertResponse.model_validate(a) for a in data.recent_alerts],
    )


@router.get("/statistics", response_model=AlertStatisticsResponse)
async def statistics(
    current_user: ManagerDep,
    engine: AlertEngineDep,
) -> AlertStatisticsResponse:
    stats = await engine.get_statistics(current_user.organization_id)
    return AlertStatisticsResponse.model_validate(asdict(stats))


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: UUID,
    current_user: ManagerDep,
    engine: AlertEngineDep,
) -> AlertResponse:
    alert = await _get_org_alert(engine, alert_id, current_user.organization_id)
    return AlertResponse.model_validate(alert)


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: UUID,
    payload: ResolveAlertRequest,
    current_user: ManagerDep,
    engine: AlertEngineDep,
) -> AlertResponse:
    await _get_org_alert(engine, alert_id, current_user.organization_id)
    alert = await engine.resolve_alert(alert_id, current_user.id, payload.notes)
    return AlertResponse.model_validate(alert)


@router.post("/bulk-resolve", response_model=BulkResolveResponse)
async def bulk_resolve(
    payload: BulkResolveRequest,
    current_user: ManagerDep,
    engine: AlertEngineDep,
) -> BulkResolveResponse:
    """Resolve many alerts at once; already-resolved ids are skipped."""
    if len(set(payload.alert_ids)) != len(payload.alert_ids):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Duplicate alert ids",
        )
    count = await engine.bulk_resolve(
        payload.alert_ids,
        resolved_by=current_user.id,
        notes=payload.notes,
        organization_id=current_user.organization_id,
    )
    return BulkResolveResponse(resolved=count)
