"""
Reports: aggregated emociograma statistics for managers.

Lower levels are better on the emociograma scale (1 is the happiest), so
the motivation score inverts it: an average of 1 scores 100, an average of
10 scores 10. Anonymous check-ins count towards every aggregate but never
towards per-person rankings.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EmociogramaSubmission, TrendDirection

logger = logging.getLogger(__name__)

TREND_WINDOW_DAYS = 3
TREND_TOLERANCE = 0.5
PATTERN_DAYS = 3
DEFAULT_RANKING_LIMIT = 10


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class DailyAverage:
    date: str
    avg_level: float


@dataclass
class LevelShare:
    level: int
    count: int
    percentage: float


@dataclass
class CategoryShare:
    category_id: UUID
    count: int
    percentage: float


@dataclass
class ReportSummary:
    total_submissions: int
    average_emotion_level: float
    motivation_score: int
    anonymity_rate: float


@dataclass
class ReportTrends:
    direction: TrendDirection
    daily_averages: list[DailyAverage]


@dataclass
class ReportDistribution:
    by_level: list[LevelShare]
    by_category: list[CategoryShare]


@dataclass
class ReportAlertCounts:
    """Check-ins in each alert band, whether or not an alert was raised."""
    total_alerts_triggered: int
    critical_count: int
    high_count: int
    medium_count: int


@dataclass
class AggregatedReport:
    summary: ReportSummary
    trends: ReportTrends
    distribution: ReportDistribution
    alerts: ReportAlertCounts


@dataclass
class UserMotivation:
    user_id: UUID
    average_emotion_level: float
    submission_count: int
    last_submitted_at: datetime


@dataclass
class GroupAverage:
    name: str
    avg_emotion_level: float
    total_submissions: int


@dataclass
class DayOfWeekAverage:
    day_of_week: int  # 0 = Sunday
    avg_level: float


@dataclass
class Analytics:
    start: datetime
    end: datetime
    overall_score: int
    most_motivated: list[UserMotivation] = field(default_factory=list)
    least_motivated: list[UserMotivation] = field(default_factory=list)
    peak_days: list[str] = field(default_factory=list)
    low_days: list[str] = field(default_factory=list)
    average_by_day_of_week: list[DayOfWeekAverage] = field(default_factory=list)
    departments: list[GroupAverage] = field(default_factory=list)
    teams: list[GroupAverage] = field(default_factory=list)


# =============================================================================
# CALCULATIONS
# =============================================================================


def motivation_score(average_level: float) -> int:
    """0-100, higher is better; 0 when there is no data."""
    if not average_level:
        return 0
    return math.floor((11 - average_level) / 10 * 100 + 0.5)


def trend_direction(daily: Sequence[DailyAverage]) -> TrendDirection:
    """Compare the mean of the first and last few days of the period."""
    if len(daily) < 2:
        return TrendDirection.STABLE

    ordered = sorted(daily, key=lambda d: d.date)
    window = min(TREND_WINDOW_DAYS, len(ordered))
    older = sum(d.avg_level for d in ordered[:window]) / window
    recent = sum(d.avg_level for d in ordered[-window:]) / window

    if recent < older - TREND_TOLERANCE:
        return TrendDirection.IMPROVING
    if recent > older + TREND_TOLERANCE:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def alert_band_counts(by_level: dict[int, int]) -> ReportAlertCounts:
    critical = by_level.get(9, 0) + by_level.get(10, 0)
    high = by_level.get(7, 0) + by_level.get(8, 0)
    medium = by_level.get(6, 0)
    return ReportAlertCounts(
        total_alerts_triggered=critical + high + medium,
        critical_count=critical,
        high_count=high,
        medium_count=medium,
    )


def day_patterns(
    daily: Sequence[DailyAverage],
) -> tuple[list[str], list[str], list[DayOfWeekAverage]]:
    """Best days, worst days (worst first) and the mean per weekday."""
    if not daily:
        return [], [], []

    ordered = sorted(daily, key=lambda d: d.avg_level)
    peak_days = [d.date for d in ordered[:PATTERN_DAYS]]
    low_days = [d.date for d in reversed(ordered[-PATTERN_DAYS:])]

    by_weekday: dict[int, list[float]] = {}
    for point in daily:
        weekday = date.fromisoformat(point.date).isoweekday() % 7
        by_weekday.setdefault(weekday, []).append(point.avg_level)

    weekdays = [
        DayOfWeekAverage(day_of_week=day, avg_level=sum(levels) / len(levels))
        for day, levels in sorted(by_weekday.items())
    ]
    return peak_days, low_days, weekdays


def _percentage(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


# =============================================================================
# SERVICE
# =============================================================================


class ReportService:
    """Read-only aggregates over an organization's check-ins."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_aggregated_report(
        self,
        organization_id: UUID,
        start: datetime,
        end: datetime,
        department: str | None = None,
        team: str | None = None,
        category_id: UUID | None = None,
    ) -> AggregatedReport:
        conditions = self._conditions(organization_id, start, end)
        if department:
            conditions.append(EmociogramaSubmission.department == department)
        if team:
            conditions.append(EmociogramaSubmission.team == team)
        if category_id:
            conditions.append(EmociogramaSubmission.category_id == category_id)

        total, average, anonymous = (
            await self._session.execute(
                select(
                    func.count(),
                    func.avg(EmociogramaSubmission.emotion_level),
                    func.sum(case((EmociogramaSubmission.is_anonymous.is_(True), 1), else_=0)),
                ).where(*conditions)
            )
        ).one()
        average = float(average or 0)

        by_level = dict(
            (
                await self._session.execute(
                    select(EmociogramaSubmission.emotion_level, func.count())
                    .where(*conditions)
                    .group_by(EmociogramaSubmission.emotion_level)
                )
            ).all()
        )
        by_category = (
            await self._session.execute(
                select(EmociogramaSubmission.category_id, func.count())
                .where(*conditions)
                .group_by(EmociogramaSubmission.category_id)
            )
        ).all()
        daily = await self._daily_averages(conditions)

        report = AggregatedReport(
            summary=ReportSummary(
                total_submissions=total,
                average_emotion_level=average,
                motivation_score=motivation_score(average),
                anonymity_rate=_percentage(anonymous or 0, total),
            ),
            trends=ReportTrends(direction=trend_direction(daily), daily_averages=daily),
            distribution=ReportDistribution(
                by_level=[
                    LevelShare(level=level, count=count, percentage=_percentage(count, total))
                    for level, count in sorted(by_level.items())
                ],
                by_category=[
                    CategoryShare(
                        category_id=category, count=count, percentage=_percentage(count, total)
                    )
                    for category, count in by_category
                ],
            ),
            alerts=alert_band_counts(by_level),
        )

        logger.info(
            f"Report for organization {organization_id}: {total} submissions, "
            f"motivation {report.summary.motivation_score}, trend {report.trends.direction.value}"
        )
        return report

    async def get_analytics(
        self,
        organization_id: UUID,
        start: datetime,
        end: datetime,
        limit: int = DEFAULT_RANKING_LIMIT,
    ) -> Analytics:
        conditions = self._conditions(organization_id, start, end)

        average = (
            await self._session.execute(
                select(func.avg(EmociogramaSubmission.emotion_level)).where(*conditions)
            )
        ).scalar_one()
        daily = await self._daily_averages(conditions)
        peak_days, low_days, weekdays = day_patterns(daily)

        return Analytics(
            start=start,
            end=end,
            overall_score=motivation_score(float(average or 0)),
            most_motivated=await self._rank_users(conditions, limit, best_first=True),
            least_motivated=await self._rank_users(conditions, limit, best_first=False),
            peak_days=peak_days,
            low_days=low_days,
            average_by_day_of_week=weekdays,
            departments=await self._group_averages(conditions, EmociogramaSubmission.department),
            teams=await self._group_averages(conditions, EmociogramaSubmission.team),
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def _conditions(organization_id: UUID, start: datetime, end: datetime) -> list:
        return [
            EmociogramaSubmission.organization_id == organization_id,
            EmociogramaSubmission.submitted_at.between(start, end),
            EmociogramaSubmission.deleted_at.is_(None),
        ]

    async def _daily_averages(self, conditions: list) -> list[DailyAverage]:
        day = func.date(EmociogramaSubmission.submitted_at).label("day")
        result = await self._session.execute(
            select(day, func.avg(EmociogramaSubmission.emotion_level))
            .where(*conditions)
            .group_by(day)
            .order_by(day)
        )
        # SQLite hands back text, PostgreSQL a date
        return [
            DailyAverage(date=str(value)[:10], avg_level=float(avg))
            for value, avg in result.all()
        ]

    async def _rank_users(
        self, conditions: list, limit: int, best_first: bool
    ) -> list[UserMotivation]:
        avg_level = func.avg(EmociogramaSubmission.emotion_level).label("avg_level")
        result = await self._session.execute(
            select(
                EmociogramaSubmission.user_id,
                avg_level,
                func.count(),
                func.max(EmociogramaSubmission.submitted_at),
            )
            .where(*conditions, EmociogramaSubmission.is_anonymous.is_(False))
            .group_by(EmociogramaSubmission.user_id)
            .order_by(
                avg_level.asc() if best_first else avg_level.desc(),
                EmociogramaSubmission.user_id,
            )
            .limit(limit)
        )
        return [
            UserMotivation(
                user_id=user_id,
                average_emotion_level=float(avg),
                submission_count=count,
                last_submitted_at=last,
            )
            for user_id, avg, count, last in result.all()
        ]

    async def _group_averages(self, conditions: list, column) -> list[GroupAverage]:
        result = await self._session.execute(
            select(column, func.avg(EmociogramaSubmission.emotion_level), func.count())
            .where(*conditions, column.is_not(None))
            .group_by(column)
            .order_by(column)
        )
        return [
            GroupAverage(name=name, avg_emotion_level=float(avg), total_submissions=count)
            for name, avg, count in result.all()
        ]
