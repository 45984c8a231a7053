"""Tests for aggregated reports and analytics."""

from datetime import datetime, timedelta, timezone

import pytest

from psicozen.models import TrendDirection
from psicozen.services.organizations import OrganizationService
from psicozen.services.reports import (
    DailyAverage,
    ReportService,
    alert_band_counts,
    day_patterns,
    motivation_score,
    trend_direction,
)

# A Sunday
BASE = datetime(2026, 10, 18, 12, tzinfo=timezone.utc)
PERIOD = (BASE - timedelta(days=1), BASE + timedelta(days=14))


@pytest.fixture
def reports(session) -> ReportService:
    return ReportService(session)


def days(*levels: float) -> list[DailyAverage]:
    return [
        DailyAverage(date=(BASE + timedelta(days=i)).date().isoformat(), avg_level=level)
        for i, level in enumerate(levels)
    ]


# =============================================================================
# CALCULATIONS
# =============================================================================


class TestMotivationScore:
    @pytest.mark.parametrize(
        "average,score",
        [(0, 0), (1, 100), (10, 10), (5.5, 55), (3, 80)],
    )
    def test_inverts_the_scale(self, average, score):
        assert motivation_score(average) == score


class TestTrendDirection:
    def test_too_little_data(self):
        assert trend_direction([]) == TrendDirection.STABLE
        assert trend_direction(days(9)) == TrendDirection.STABLE

    def test_lower_recent_levels_are_improving(self):
        assert trend_direction(days(8, 8, 8, 5, 2, 2, 2)) == TrendDirection.IMPROVING

    def test_higher_recent_levels_are_declining(self):
        assert trend_direction(days(2, 3, 2, 7, 8)) == TrendDirection.DECLINING

    def test_within_tolerance(self):
        assert trend_direction(days(4, 4, 4, 4.5, 4.5, 4.5)) == TrendDirection.STABLE

    def test_order_of_input_does_not_matter(self):
        assert trend_direction(days(8, 8, 2, 2)[::-1]) == TrendDirection.IMPROVING


class TestAlertBands:
    def test_counts(self):
        counts = alert_band_counts({10: 1, 9: 2, 8: 0, 7: 1, 6: 3, 5: 4, 1: 9})

        assert counts.critical_count == 3
        assert counts.high_count == 1
        assert counts.medium_count == 3
        assert counts.total_alerts_triggered == 7


class TestDayPatterns:
    def test_empty(self):
        assert day_patterns([]) == ([], [], [])

    def test_peaks_lows_and_weekdays(self):
        daily = days(2, 8, 5, 5, 5, 5, 5, 4)

        peak_days, low_days, weekdays = day_patterns(daily)

        assert peak_days[:2] == ["2026-10-18", "2026-10-25"]
        assert low_days[0] == "2026-10-19"
        sunday = next(w for w in weekdays if w.day_of_week == 0)
        monday = next(w for w in weekdays if w.day_of_week == 1)
        assert sunday.avg_level == 3
        assert monday.avg_level == 8
        assert [w.day_of_week for w in weekdays] == list(range(7))


# =============================================================================
# AGGREGATED REPORT
# =============================================================================


class TestAggregatedReport:
    async def test_summary_distribution_and_bands(
        self, reports, organization, user, category, make_submission
    ):
        for level, anonymous in ((2, False), (6, True), (9, False), (9, False)):
            await make_submission(
                organization.id, user.id, level=level, is_anonymous=anonymous, submitted_at=BASE
            )

        report = await reports.get_aggregated_report(organization.id, *PERIOD)

        assert report.summary.total_submissions == 4
        assert report.summary.average_emotion_level == 6.5
        assert report.summary.motivation_score == 45
        assert report.summary.anonymity_rate == 25.0
        assert [(s.level, s.percentage) for s in report.distribution.by_level] == [
            (2, 25.0), (6, 25.0), (9, 50.0),
        ]
        assert report.distribution.by_category[0].category_id == category.id
        assert report.distribution.by_category[0].count == 4
        assert report.alerts.critical_count == 2
        assert report.alerts.medium_count == 1
        assert report.alerts.total_alerts_triggered == 3

    async def test_daily_trend(self, reports, organization, user, make_submission):
        for day, level in enumerate((8, 8, 7, 3, 2, 2)):
            await make_submission(
                organization.id, user.id, level=level, submitted_at=BASE + timedelta(days=day)
            )

        report = await reports.get_aggregated_report(organization.id, *PERIOD)

        assert [d.date for d in report.trends.daily_averages][:2] == ["2026-10-18", "2026-10-19"]
        assert report.trends.direction == TrendDirection.IMPROVING

    async def test_filters_and_period(self, reports, organization, user, make_submission):
        await make_submission(organization.id, user.id, level=2, team="Plantão", submitted_at=BASE)
        await make_submission(organization.id, user.id, level=8, team="Backend", submitted_at=BASE)
        await make_submission(
            organization.id, user.id, level=8, team="Plantão",
            submitted_at=BASE - timedelta(days=30),
        )
        await make_submission(
            organization.id, user.id, level=8, team="Plantão", submitted_at=BASE, deleted_at=BASE
        )

        report = await reports.get_aggregated_report(organization.id, *PERIOD, team="Plantão")

        assert report.summary.total_submissions == 1
        assert report.summary.average_emotion_level == 2

    async def test_tenant_scoped(self, session, reports, organization, user, make_submission):
        other = await OrganizationService(session).create_organization(
            name="Beta Logística", type="company"
        )
        await make_submission(other.id, user.id, level=9, submitted_at=BASE)

        report = await reports.get_aggregated_report(organization.id, *PERIOD)

        assert report.summary.total_submissions == 0
        assert report.summary.motivation_score == 0
        assert report.trends.direction == TrendDirection.STABLE
        assert report.distribution.by_level == []
        assert report.alerts.total_alerts_triggered == 0


# =============================================================================
# ANALYTICS
# =============================================================================


class TestAnalytics:
    async def test_rankings_skip_anonymous_check_ins(
        self, reports, organization, user, make_user, make_submission
    ):
        happy = await make_user("Helena")
        await make_submission(organization.id, happy.id, level=1, submitted_at=BASE)
        await make_submission(organization.id, user.id, level=4, submitted_at=BASE)
        await make_submission(organization.id, user.id, level=6, submitted_at=BASE)
        hidden = await make_user("Igor")
        await make_submission(
            organization.id, hidden.id, level=10, is_anonymous=True, submitted_at=BASE
        )

        analytics = await reports.get_analytics(organization.id, *PERIOD)

        assert [m.user_id for m in analytics.most_motivated] == [happy.id, user.id]
        assert [m.user_id for m in analytics.least_motivated] == [user.id, happy.id]
        ranked = analytics.least_motivated[0]
        assert ranked.average_emotion_level == 5
        assert ranked.submission_count == 2
        # The anonymous check-in still counts towards the score
        assert analytics.overall_score == motivation_score((1 + 4 + 6 + 10) / 4)

    async def test_ranking_limit(self, reports, organization, make_user, make_submission):
        for level in range(1, 6):
            member = await make_user(f"Pessoa {level}")
            await make_submission(organization.id, member.id, level=level, submitted_at=BASE)

        analytics = await reports.get_analytics(organization.id, *PERIOD, limit=2)

        assert [m.average_emotion_level for m in analytics.most_motivated] == [1, 2]
        assert [m.average_emotion_level for m in analytics.least_motivated] == [5, 4]

    async def test_groups_and_weekdays(self, reports, organization, user, make_submission):
        await make_submission(
            organization.id, user.id, level=2, department="TI", team="Backend", submitted_at=BASE
        )
        await make_submission(
            organization.id, user.id, level=6, department="TI", team="Infra",
            submitted_at=BASE + timedelta(days=1),
        )
        await make_submission(
            organization.id, user.id, level=9, department="RH",
            submitted_at=BASE + timedelta(days=1),
        )

        analytics = await reports.get_analytics(organization.id, *PERIOD)

        departments = [
            (g.name, g.avg_emotion_level, g.total_submissions) for g in analytics.departments
        ]
        assert departments == [("RH", 9, 1), ("TI", 4, 2)]
        assert [g.name for g in analytics.teams] == ["Backend", "Infra"]
        assert analytics.peak_days[0] == "2026-10-18"
        assert analytics.low_days[0] == "2026-10-19"
        assert [(w.day_of_week, w.avg_level) for w in analytics.average_by_day_of_week] == [
            (0, 2), (1, 7.5),
        ]

    async def test_empty_period(self, reports, organization):
        analytics = await reports.get_analytics(organization.id, *PERIOD)

        assert analytics.overall_score == 0
        assert analytics.most_motivated == []
        assert analytics.peak_days == []
        assert analytics.departments == []
