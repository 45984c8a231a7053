"""Emociograma API routes: check-ins, categories, reports and export."""

from dataclasses import asdict
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core.config import get_settings
from ..core.dependencies import (
    AdminDep,
    EmailSenderDep,
    ManagerDep,
    OrgContextDep,
    SessionDep,
)
from ..models import MANAGER_TIER_ROLES
from ..schemas.emociograma import (
    AlertResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    SubmissionCreate,
    SubmissionResponse,
    SubmitResponse,
    TeamSubmissionsResponse,
)
from ..schemas.reports import AggregatedReportResponse, AnalyticsResponse
from ..services.alert_engine import AlertEngine
from ..services.export import ExportFormat, generate_export
from ..services.reports import DEFAULT_RANKING_LIMIT, ReportService
from ..services.submissions import (
    EXPORT_COLUMNS,
    SubmissionService,
    SubmitInput,
    mask_identity,
)

router = APIRouter(prefix="/emociograma", tags=["emociograma"])
settings = get_settings()


def get_submission_service(session: SessionDep) -> SubmissionService:
    return SubmissionService(session)


SubmissionServiceDep = Annotated[SubmissionService, Depends(get_submission_service)]


@router.post("", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit(
    payload: SubmissionCreate,
    session: SessionDep,
    current_user: OrgContextDep,
    email_sender: EmailSenderDep,
) -> SubmitResponse:
    """
    Record today's check-in for the current user.

    Levels at or above the organization threshold raise an alert and
    notify the organization's managers before the response is returned.
    """
    engine = AlertEngine(session, email_sender=email_sender, frontend_url=settings.frontend_url)
    result = await SubmissionService(session, alert_engine=engine).submit(
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        data=SubmitInput(**payload.model_dump()),
    )
    return SubmitResponse(
        submission=SubmissionResponse.model_validate(mask_identity(result.submission)),
        alert=AlertResponse.model_validate(result.alert) if result.alert else None,
    )


@router.get("/me", response_model=list[SubmissionResponse])
async def my_submissions(
    current_user: OrgContextDep,
    service: SubmissionServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[SubmissionResponse]:
    submissions = await service.list_for_user(
        current_user.id, current_user.organization_id, limit=limit, offset=offset
    )
    # The author always sees their own id
    return [
        SubmissionResponse.model_validate({**mask_identity(s), "user_id": str(s.user_id)})
        for s in submissions
    ]


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: UUID,
    current_user: OrgContextDep,
    service: SubmissionServiceDep,
) -> SubmissionResponse:
    """Authors see their own check-ins; managers see any, anonymous ones masked."""
    view = await service.view_submission(
        submission_id,
        viewer_id=current_user.id,
        organization_id=current_user.organization_id,
        can_view_team=current_user.has_any_role(*MANAGER_TIER_ROLES),
    )
    return SubmissionResponse.model_validate(view)


@router.get("/team", response_model=TeamSubmissionsResponse)
async def team_submissions(
    current_user: ManagerDep,
    service: SubmissionServiceDep,
    take: Annotated[int, Query(ge=1, le=100)] = 20,
    skip: Annotated[int, Query(ge=0)] = 0,
    department: str | None = None,
    team: str | None = None,
) -> TeamSubmissionsResponse:
    submissions, total = await service.list_team_submissions(
        current_user.organization_id, take=take, skip=skip, department=department, team=team
    )
    return TeamSubmissionsResponse(
        items=[SubmissionResponse.model_validate(mask_identity(s)) for s in submissions],
        total=total,
        take=take,
        skip=skip,
    )


# =============================================================================
# REPORTS
# =============================================================================


@router.get("/reports/aggregated", response_model=AggregatedReportResponse)
async def aggregated_report(
    session: SessionDep,
    current_user: ManagerDep,
    start: Annotated[datetime, Query()],
    end: Annotated[datetime, Query()],
    department: str | None = None,
    team: str | None = None,
    category_id: UUID | None = None,
) -> AggregatedReportResponse:
    report = await ReportService(session).get_aggregated_report(
        current_user.organization_id,
        start,
        end,
        department=department,
        team=team,
        category_id=category_id,
    )
    return AggregatedReportResponse.model_validate(asdict(report))


@router.get("/reports/analytics", response_model=AnalyticsResponse)
async def analytics(
    session: SessionDep,
    current_user: ManagerDep,
    start: Annotated[datetime, Query()],
    end: Annotated[datetime, Query()],
    limit: Annotated[int, Query(ge=1, le=50)] = DEFAULT_RANKING_LIMIT,
) -> AnalyticsResponse:
    data = await ReportService(session).get_analytics(
        current_user.organization_id, start, end, limit=limit
    )
    return AnalyticsResponse.model_validate(asdict(data))


# =============================================================================
# CATEGORIES
# =============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    current_user: OrgContextDep,
    service: SubmissionServiceDep,
) -> list[CategoryResponse]:
    categories = await service.list_categories()
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    payload: CategoryCreate,
    current_user: AdminDep,
    service: SubmissionServiceDep,
) -> CategoryResponse:
    category = await service.create_category(
        payload.name, payload.description, payload.display_order
    )
    return CategoryResponse.model_validate(category)


@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: UUID,
    current_user: OrgContextDep,
    service: SubmissionServiceDep,
) -> CategoryResponse:
    return CategoryResponse.model_validate(await service.get_category(category_id))


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: UUID,
    payload: CategoryUpdate,
    current_user: AdminDep,
    service: SubmissionServiceDep,
) -> CategoryResponse:
    category = await service.update_category(category_id, **payload.model_dump())
    return CategoryResponse.model_validate(category)


@router.delete("/categories/{category_id}", response_model=CategoryResponse)
async def deactivate_category(
    category_id: UUID,
    current_user: AdminDep,
    service: SubmissionServiceDep,
) -> CategoryResponse:
    """Categories are never removed; past check-ins keep their category."""
    category = await service.deactivate_category(category_id)
    return CategoryResponse.model_validate(category)


# =============================================================================
# EXPORT
# =============================================================================


@router.get("/export")
async def export_submissions(
    current_user: AdminDep,
    service: SubmissionServiceDep,
    format: Annotated[ExportFormat, Query()] = ExportFormat.CSV,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
) -> Response:
    """Download the organization's submissions as CSV, Excel or JSON."""
    records = await service.build_export_records(
        current_user.organization_id, start=start, end=end, exported_by=current_user.id
    )
    export = generate_export(records, format, columns=EXPORT_COLUMNS)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
