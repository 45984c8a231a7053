"""Emociograma submission and alert schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import AlertSeverity
from .base import PsicoZenBaseModel


# =============================================================================
# SUBMISSIONS
# =============================================================================


class SubmissionCreate(PsicoZenBaseModel):
    """Schema for a new check-in."""

    emotion_level: int = Field(..., ge=1, le=10, strict=True)
    category_id: UUID
    is_anonymous: bool | None = None
    comment: str | None = Field(default=None, max_length=1000)
    department: str | None = Field(default=None, max_length=100)
    team: str | None = Field(default=None, max_length=100)


class SubmissionResponse(PsicoZenBaseModel):
    """Submission as seen by its author or a manager.

    ``user_id`` is ``"anonymous"`` for anonymous submissions.
    """

    id: UUID
    organization_id: UUID
    user_id: str
    emotion_level: int
    emotion_emoji: str
    category_id: UUID
    is_anonymous: bool
    comment: str | None = None
    comment_flagged: bool
    submitted_at: datetime
    department: str | None = None
    team: str | None = None


class TeamSubmissionsResponse(PsicoZenBaseModel):
    items: list[SubmissionResponse]
    total: int
    take: int
    skip: int


# =============================================================================
# CATEGORIES
# =============================================================================


class CategoryCreate(PsicoZenBaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    display_order: int = Field(default=0, ge=0)


class CategoryUpdate(PsicoZenBaseModel):
    """Partial update; omitted fields keep their current value."""

    name: str | None = Field(default=None, min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    display_order: int | None = Field(default=None, ge=0)


class CategoryResponse(PsicoZenBaseModel):
    id: UUID
    name: str
    description: str | None = None
    display_order: int
    is_active: bool


# =============================================================================
# ALERTS
# =============================================================================


class AlertResponse(PsicoZenBaseModel):
    id: UUID
    organization_id: UUID
    submission_id: UUID
    alert_type: str
    severity: AlertSeverity
    message: str
    is_resolved: bool
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None
    resolution_notes: str | None = None
    notified_users: list[str] = []
    notification_sent_at: datetime | None = None
    notification_status: str | None = None
    created_at: datetime


class SubmitResponse(PsicoZenBaseModel):
    submission: SubmissionResponse
    alert: AlertResponse | None = None


class AlertListResponse(PsicoZenBaseModel):
    items: list[AlertResponse]
    total: int
    take: int
    skip: int


class SeverityCounts(PsicoZenBaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class AlertStatisticsResponse(PsicoZenBaseModel):
    total: int
    by_severity: SeverityCounts
    unresolved: int
    resolved_today: int


class AlertDashboardResponse(PsicoZenBaseModel):
    statistics: AlertStatisticsResponse
    recent_alerts: list[AlertResponse]


class ResolveAlertRequest(PsicoZenBaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class BulkResolveRequest(PsicoZenBaseModel):
    alert_ids: list[UUID] = Field(default_factory=list, max_length=500)
    notes: str | None = Field(default=None, max_length=2000)


class BulkResolveResponse(PsicoZenBaseModel):
    resolved: int
