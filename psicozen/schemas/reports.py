"""Report, analytics and personal data schemas."""

from datetime import datetime
from uuid import UUID

from ..models import TrendDirection
from .base import PsicoZenBaseModel


# =============================================================================
# AGGREGATED REPORT
# =============================================================================


class DailyAverageResponse(PsicoZenBaseModel):
    date: str
    avg_level: float


class LevelShareResponse(PsicoZenBaseModel):
    level: int
    count: int
    percentage: float


class CategoryShareResponse(PsicoZenBaseModel):
    category_id: UUID
    count: int
    percentage: float


class ReportSummaryResponse(PsicoZenBaseModel):
    total_submissions: int
    average_emotion_level: float
    motivation_score: int  # 0-100, higher is better
    anonymity_rate: float  # Percentage of anonymous check-ins


class ReportTrendsResponse(PsicoZenBaseModel):
    direction: TrendDirection
    daily_averages: list[DailyAverageResponse]


class ReportDistributionResponse(PsicoZenBaseModel):
    by_level: list[LevelShareResponse]
    by_category: list[CategoryShareResponse]


class ReportAlertCountsResponse(PsicoZenBaseModel):
    total_alerts_triggered: int
    critical_count: int
    high_count: int
    medium_count: int


class AggregatedReportResponse(PsicoZenBaseModel):
    summary: ReportSummaryResponse
    trends: ReportTrendsResponse
    distribution: ReportDistributionResponse
    alerts: ReportAlertCountsResponse


# =============================================================================
# ANALYTICS
# =============================================================================


class UserMotivationResponse(PsicoZenBaseModel):
    user_id: UUID
    average_emotion_level: float
    submission_count: int
    last_submitted_at: datetime


class GroupAverageResponse(PsicoZenBaseModel):
    name: str
    avg_emotion_level: float
    total_submissions: int


class DayOfWeekAverageResponse(PsicoZenBaseModel):
    day_of_week: int
    avg_level: float


class AnalyticsResponse(PsicoZenBaseModel):
    start: datetime
    end: datetime
    overall_score: int
    most_motivated: list[UserMotivationResponse]
    least_motivated: list[UserMotivationResponse]
    peak_days: list[str]
    low_days: list[str]
    average_by_day_of_week: list[DayOfWeekAverageResponse]
    departments: list[GroupAverageResponse]
    teams: list[GroupAverageResponse]


# =============================================================================
# PERSONAL DATA (LGPD)
# =============================================================================


class UserProfileExport(PsicoZenBaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str | None = None
    created_at: datetime


class SubmissionExport(PsicoZenBaseModel):
    submitted_at: datetime
    emotion_level: int
    emotion_emoji: str
    category_id: UUID
    comment: str | None = None
    is_anonymous: bool
    department: str | None = None
    team: str | None = None


class UserDataExportResponse(PsicoZenBaseModel):
    profile: UserProfileExport
    submissions: list[SubmissionExport]
    exported_at: datetime


class DataOperationResponse(PsicoZenBaseModel):
    affected_submissions: int
    message: str
    timestamp: datetime
