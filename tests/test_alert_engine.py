"""
Tests for the Alert Engine.

Tests cover:
- Threshold gating and severity classification
- Manager notification: recipients, partial and total failure
- Resolution lifecycle (single and bulk)
- Queries, ordering and statistics
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from psicozen.models import AlertSeverity, AuditAction, EmociogramaAlert, NotificationStatus
from psicozen.services.alert_engine import (
    SEVERITY_KEYS,
    AlertAlreadyResolvedError,
    AlertEngine,
    AlertNotFoundError,
    build_alert_message,
    classify_severity,
    local_midnight_utc,
)
from psicozen.services.audit import AuditService
from psicozen.services.organizations import OrganizationService
from psicozen.services.roles import RoleDirectory


async def count_alerts(session) -> int:
    return (
        await session.execute(select(func.count()).select_from(EmociogramaAlert))
    ).scalar_one()


# =============================================================================
# CLASSIFICATION
# =============================================================================


class TestClassification:
    @pytest.mark.parametrize(
        "level,expected",
        [
            (10, AlertSeverity.CRITICAL),
            (9, AlertSeverity.CRITICAL),
            (8, AlertSeverity.HIGH),
            (7, AlertSeverity.HIGH),
            (6, AlertSeverity.MEDIUM),
            (5, AlertSeverity.LOW),
            (1, AlertSeverity.LOW),
        ],
    )
    def test_severity_bands(self, level, expected):
        assert classify_severity(level) is expected

    async def test_message_prefers_team(self, organization, user, make_submission):
        submission = await make_submission(
            organization.id, user.id, level=8, team="Backend", department="Engenharia"
        )
        assert build_alert_message(submission) == (
            "Colaborador reportou estado emocional Estressado 😣 "
            "(Nível 8/10). Equipe: Backend."
        )

    async def test_message_falls_back_to_department(self, organization, user, make_submission):
        submission = await make_submission(
            organization.id, user.id, level=10, department="Engenharia"
        )
        assert "Muito triste 😞" in build_alert_message(submission)
        assert build_alert_message(submission).endswith("Departamento: Engenharia.")

    async def test_message_without_location(self, organization, user, make_submission):
        submission = await make_submission(organization.id, user.id, level=4)
        message = build_alert_message(submission)
        assert "Negativo" in message
        assert message.endswith("Localização não especificada.")


# =============================================================================
# TRIGGER
# =============================================================================


class TestTriggerEmotionalAlert:
    async def test_below_threshold_creates_nothing(
        self, session, alert_engine, email_sender, organization, user, manager, make_submission
    ):
        submission = await make_submission(organization.id, user.id, level=5)

        assert await alert_engine.trigger_emotional_alert(submission) is None
        assert await count_alerts(session) == 0
        assert email_sender.sent == []

    @pytest.mark.parametrize(
        "level,severity",
        [(6, "medium"), (7, "high"), (8, "high"), (9, "critical"), (10, "critical")],
    )
    async def test_severity_on_default_threshold(
        self, alert_engine, organization, user, make_submission, level, severity
    ):
        submission = await make_submission(organization.id, user.id, level=level)
        alert = await alert_engine.trigger_emotional_alert(submission)

        assert alert is not None
        assert alert.severity == severity
        assert alert.alert_type == "threshold_exceeded"
        assert alert.is_resolved is False
        assert alert.submission_id == submission.id
        assert alert.organization_id == organization.id

    async def test_notifies_managers_not_contributors(
        self, session, roles, alert_engine, email_sender, organization, user, manager,
        make_submission,
    ):
        await RoleDirectory(session).assign_role_to_user(
            user.id, roles["colaborador"].id, organization.id
        )
        submission = await make_submission(organization.id, user.id, level=9)

        alert = await alert_engine.trigger_emotional_alert(submission)

        assert alert.notified_users == [str(manager.id)]
        assert alert.notification_status == NotificationStatus.SENT.value
        assert alert.notification_sent_at is not None
        assert [m.to for m in email_sender.sent] == [manager.email]

    async def test_email_content(
        self, alert_engine, email_sender, organization, user, manager, make_submission
    ):
        submission = await make_submission(organization.id, user.id, level=9, team="Backend")
        alert = await alert_engine.trigger_emotional_alert(submission)

        message = email_sender.sent[0]
        assert message.subject == "[CRÍTICO] Alerta Emocional - PsicoZen"
        assert f"https://app.test/alerts/{alert.id}" in message.html
        assert f"https://app.test/alerts/{alert.id}" in message.text
        assert "Olá, Bruno." in message.html

    async def test_admins_are_notified_too(
        self, session, roles, alert_engine, email_sender, organization, user, manager,
        make_user, make_submission,
    ):
        admin = await make_user("Ana", email="ana@acme.com.br")
        await RoleDirectory(session).assign_role_to_user(
            admin.id, roles["admin"].id, organization.id
        )
        submission = await make_submission(organization.id, user.id, level=7)

        alert = await alert_engine.trigger_emotional_alert(submission)

        assert sorted(alert.notified_users) == sorted([str(admin.id), str(manager.id)])
        assert sorted(m.to for m in email_sender.sent) == ["ana@acme.com.br", "bruno@acme.com.br"]
        assert all(m.subject.startswith("[URGENTE]") for m in email_sender.sent)

    async def test_no_managers_still_persists(
        self, session, alert_engine, email_sender, organization, user, make_submission
    ):
        submission = await make_submission(organization.id, user.id, level=8)

        alert = await alert_engine.trigger_emotional_alert(submission)

        assert alert is not None
        assert alert.notified_users == []
        assert alert.notification_sent_at is None
        assert alert.notification_status == NotificationStatus.NO_RECIPIENTS.value
        assert await count_alerts(session) == 1
        assert email_sender.sent == []

    async def test_global_admin_is_not_a_recipient(
        self, session, roles, alert_engine, email_sender, organization, user,
        make_user, make_submission,
    ):
        platform_admin = await make_user("Paula")
        await RoleDirectory(session).assign_role_to_user(platform_admin.id, roles["admin"].id)
        submission = await make_submission(organization.id, user.id, level=9)

        alert = await alert_engine.trigger_emotional_alert(submission)

        assert alert.notified_users == []
        assert alert.notification_status == NotificationStatus.NO_RECIPIENTS.value

    async def test_every_send_fails(
        self, session, failing_email_sender, organization, user, manager, make_submission
    ):
        sender = failing_email_sender
        engine = AlertEngine(session, email_sender=sender, frontend_url="https://app.test")
        submission = await make_submission(organization.id, user.id, level=10)

        alert = await engine.trigger_emotional_alert(submission)

        assert sender.attempts == 1
        assert alert.notified_users == []
        assert alert.notification_sent_at is None
        assert alert.notification_status == NotificationStatus.FAILED.value
        assert await count_alerts(session) == 1

    async def test_partial_failure_keeps_successful_recipients(
        self, session, roles, make_email_sender, organization, user, manager, make_user,
        make_submission,
    ):
        admin = await make_user("Ana", email="ana@acme.com.br")
        await RoleDirectory(session).assign_role_to_user(
            admin.id, roles["admin"].id, organization.id
        )
        sender = make_email_sender(manager.email)
        engine = AlertEngine(session, email_sender=sender, frontend_url="https://app.test")
        submission = await make_submission(organization.id, user.id, level=6)

        alert = await engine.trigger_emotional_alert(submission)

        assert alert.notified_users == [str(admin.id)]
        assert alert.notification_sent_at is not None
        assert alert.notification_status == NotificationStatus.PARTIAL.value

    async def test_custom_threshold(
        self, session, alert_engine, organization, user, make_submission
    ):
        await OrganizationService(session).update_settings(organization.id, alert_threshold=8)

        below = await make_submission(organization.id, user.id, level=7)
        at = await make_submission(organization.id, user.id, level=8)

        assert await alert_engine.trigger_emotional_alert(below) is None
        alert = await alert_engine.trigger_emotional_alert(at)
        assert alert.severity == "high"

    async def test_low_threshold_yields_low_severity(
        self, session, alert_engine, organization, user, make_submission
    ):
        await OrganizationService(session).update_settings(organization.id, alert_threshold=3)
        submission = await make_submission(organization.id, user.id, level=4)

        alert = await alert_engine.trigger_emotional_alert(submission)
        assert alert.severity == "low"

    async def test_retrigger_returns_existing_alert(
        self, session, alert_engine, email_sender, organization, user, manager, make_submission
    ):
        submission = await make_submission(organization.id, user.id, level=9)

        first = await alert_engine.trigger_emotional_alert(submission)
        second = await alert_engine.trigger_emotional_alert(submission)

        assert second.id == first.id
        assert await count_alerts(session) == 1
        assert len(email_sender.sent) == 1


# =============================================================================
# RESOLUTION
# =============================================================================


class TestResolveAlert:
    async def test_resolve(self, alert_engine, organization, manager, make_alert):
        alert = await make_alert(organization.id, "high")

        resolved = await alert_engine.resolve_alert(alert.id, manager.id, "  Conversamos hoje  ")

        assert resolved.is_resolved is True
        assert resolved.resolved_by == manager.id
        assert resolved.resolved_at is not None
        assert resolved.resolution_notes == "Conversamos hoje"

    async def test_blank_notes_stored_as_none(
        self, alert_engine, organization, manager, make_alert
    ):
        alert = await make_alert(organization.id, "medium")
        resolved = await alert_engine.resolve_alert(alert.id, manager.id, "   ")
        assert resolved.resolution_notes is None

    async def test_resolve_twice_conflicts_and_keeps_first_resolution(
        self, alert_engine, organization, manager, make_user, make_alert
    ):
        alert = await make_alert(organization.id, "critical")
        await alert_engine.resolve_alert(alert.id, manager.id, "first")
        resolved_at = alert.resolved_at
        other = await make_user("Outro")

        with pytest.raises(AlertAlreadyResolvedError):
            await alert_engine.resolve_alert(alert.id, other.id, "second")

        assert alert.resolved_by == manager.id
        assert alert.resolution_notes == "first"
        assert alert.resolved_at == resolved_at

    async def test_resolve_missing(self, alert_engine, manager, anyid):
        with pytest.raises(AlertNotFoundError):
            await alert_engine.resolve_alert(anyid(), manager.id)


class TestBulkResolve:
    async def test_resolves_only_open_alerts(
        self, session, alert_engine, organization, manager, make_alert
    ):
        alerts = [await make_alert(organization.id, "high") for _ in range(3)]
        await alert_engine.resolve_alert(alerts[0].id, manager.id, "already")
        await session.refresh(alerts[0])
        first_resolved_at = alerts[0].resolved_at

        count = await alert_engine.bulk_resolve(
            [a.id for a in alerts], manager.id, "batch", organization_id=organization.id
        )

        assert count == 2
        for alert in alerts:
            await session.refresh(alert)
            assert alert.is_resolved is True
        assert alerts[0].resolution_notes == "already"
        assert alerts[0].resolved_at == first_resolved_at
        assert {a.resolution_notes for a in alerts[1:]} == {"batch"}

    async def test_empty_list(self, alert_engine, manager):
        assert await alert_engine.bulk_resolve([], manager.id) == 0

    async def test_unknown_ids_are_skipped(
        self, alert_engine, organization, manager, make_alert, anyid
    ):
        alert = await make_alert(organization.id, "low")
        assert await alert_engine.bulk_resolve([alert.id, anyid()], manager.id) == 1

    async def test_organization_scope(
        self, session, alert_engine, organization, manager, make_alert
    ):
        other = await OrganizationService(session).create_organization(
            name="Beta Logística", type="company"
        )
        ours = await make_alert(organization.id, "high")
        theirs = await make_alert(other.id, "high")

        count = await alert_engine.bulk_resolve(
            [ours.id, theirs.id], manager.id, organization_id=organization.id
        )

        assert count == 1
        await session.refresh(theirs)
        assert theirs.is_resolved is False

    async def test_loaded_alerts_see_the_resolution(
        self, alert_engine, organization, manager, make_alert
    ):
        alert = await make_alert(organization.id, "high")

        await alert_engine.bulk_resolve([alert.id], manager.id, "batch")

        # Same session, no refresh
        assert (await alert_engine.get_by_id(alert.id)).is_resolved is True
        assert alert.resolution_notes == "batch"
        with pytest.raises(AlertAlreadyResolvedError):
            await alert_engine.resolve_alert(alert.id, manager.id, "again")

    async def test_audits_each_alert_in_its_organization(
        self, session, alert_engine, organization, manager, make_alert
    ):
        other = await OrganizationService(session).create_organization(
            name="Beta Logística", type="company"
        )
        ours = await make_alert(organization.id, "high")
        theirs = await make_alert(other.id, "critical")

        await alert_engine.bulk_resolve([ours.id, theirs.id], manager.id)

        audit = AuditService(session)
        for org_id, alert in ((organization.id, ours), (other.id, theirs)):
            entries, total = await audit.get_audit_log(
                org_id, action=AuditAction.RESOLVE, resource_type="alert"
            )
            assert total == 1
            assert entries[0].resource_id == alert.id
            assert entries[0].user_id == manager.id
            assert entries[0].details == {"severity": alert.severity, "bulk": True}
            assert (await audit.verify_chain_integrity(org_id)).is_valid


# =============================================================================
# QUERIES
# =============================================================================


class TestQueries:
    async def test_find_unresolved_orders_by_severity_then_newest(
        self, alert_engine, organization, manager, make_alert
    ):
        now = datetime.now(timezone.utc)
        old_high = await make_alert(organization.id, "high", created_at=now - timedelta(hours=2))
        low = await make_alert(organization.id, "low", created_at=now)
        critical = await make_alert(organization.id, "critical", created_at=now - timedelta(days=1))
        new_high = await make_alert(organization.id, "high", created_at=now - timedelta(hours=1))
        medium = await make_alert(organization.id, "medium", created_at=now)
        resolved = await make_alert(organization.id, "critical", created_at=now)
        await alert_engine.resolve_alert(resolved.id, manager.id)

        found = await alert_engine.find_unresolved(organization.id)

        assert [a.id for a in found] == [
            critical.id, new_high.id, old_high.id, medium.id, low.id,
        ]

    async def test_find_by_organization_paginates_with_total(
        self, alert_engine, organization, make_alert
    ):
        now = datetime.now(timezone.utc)
        for i in range(5):
            await make_alert(organization.id, "medium", created_at=now - timedelta(minutes=i))

        page, total = await alert_engine.find_by_organization(organization.id, take=2, skip=2)

        assert total == 5
        assert len(page) == 2

    async def test_find_by_organization_filters(
        self, alert_engine, organization, manager, make_alert
    ):
        high = await make_alert(organization.id, "high")
        await make_alert(organization.id, "low")
        resolved_high = await make_alert(organization.id, "high")
        await alert_engine.resolve_alert(resolved_high.id, manager.id)

        open_high, total = await alert_engine.find_by_organization(
            organization.id, severity=AlertSeverity.HIGH
        )
        assert [a.id for a in open_high] == [high.id]
        assert total == 1

        _, total_all = await alert_engine.find_by_organization(
            organization.id, include_resolved=True
        )
        assert total_all == 3

    async def test_find_by_organization_is_tenant_scoped(
        self, session, alert_engine, organization, make_alert
    ):
        other = await OrganizationService(session).create_organization(
            name="Beta Logística", type="company"
        )
        await make_alert(other.id, "critical")

        alerts, total = await alert_engine.find_by_organization(organization.id)
        assert alerts == []
        assert total == 0

    async def test_find_by_severity(self, alert_engine, organization, make_alert):
        critical = await make_alert(organization.id, "critical")
        await make_alert(organization.id, "medium")

        found = await alert_engine.find_by_severity(organization.id, "critical")
        assert [a.id for a in found] == [critical.id]

    async def test_find_by_date_range_is_inclusive(
        self, alert_engine, organization, make_alert
    ):
        start = datetime(2026, 3, 1, tzinfo=timezone.utc)
        end = datetime(2026, 3, 31, tzinfo=timezone.utc)
        on_start = await make_alert(organization.id, "high", created_at=start)
        inside = await make_alert(organization.id, "high", created_at=start + timedelta(days=10))
        await make_alert(organization.id, "high", created_at=end + timedelta(days=1))

        found = await alert_engine.find_by_date_range(organization.id, start, end)
        assert [a.id for a in found] == [inside.id, on_start.id]

    async def test_find_by_submission(
        self, alert_engine, organization, user, make_submission
    ):
        submission = await make_submission(organization.id, user.id, level=9)
        alert = await alert_engine.trigger_emotional_alert(submission)

        assert (await alert_engine.find_by_submission(submission.id)).id == alert.id


# =============================================================================
# STATISTICS
# =============================================================================


class TestStatistics:
    async def test_empty_organization_reports_every_severity(self, alert_engine, organization):
        stats = await alert_engine.get_statistics(organization.id)

        assert stats.total == 0
        assert stats.unresolved == 0
        assert stats.resolved_today == 0
        assert stats.by_severity == {key: 0 for key in SEVERITY_KEYS}

    async def test_counts(self, session, alert_engine, organization, manager, make_alert):
        await make_alert(organization.id, "critical")
        await make_alert(organization.id, "critical")
        high = await make_alert(organization.id, "high")
        await make_alert(organization.id, "low")
        await make_alert(
            organization.id,
            "medium",
            is_resolved=True,
            resolved_at=datetime.now(timezone.utc) - timedelta(days=3),
        )
        await alert_engine.resolve_alert(high.id, manager.id)

        stats = await alert_engine.get_statistics(organization.id)

        assert stats.total == 5
        assert stats.by_severity == {"critical": 2, "high": 1, "medium": 1, "low": 1}
        assert stats.unresolved == 3
        assert stats.resolved_today == 1

    async def test_count_unresolved_by_severity(
        self, alert_engine, organization, manager, make_alert
    ):
        await make_alert(organization.id, "critical")
        resolved = await make_alert(organization.id, "critical")
        await make_alert(organization.id, "medium")
        await alert_engine.resolve_alert(resolved.id, manager.id)

        counts = await alert_engine.count_unresolved_by_severity(organization.id)
        assert counts == {"critical": 1, "high": 0, "medium": 1, "low": 0}

    async def test_dashboard_limits_recent_alerts(self, alert_engine, organization, make_alert):
        now = datetime.now(timezone.utc)
        for i in range(12):
            await make_alert(organization.id, "medium", created_at=now - timedelta(minutes=i))

        dashboard = await alert_engine.get_dashboard(organization.id)

        assert dashboard.statistics.total == 12
        assert len(dashboard.recent_alerts) == 10

    def test_local_midnight_is_not_in_the_future(self):
        now = datetime.now(timezone.utc)
        midnight = local_midnight_utc(now)
        assert midnight <= now
        assert now - midnight < timedelta(days=1)


class TestEmailSenderResolution:
    async def test_read_paths_never_build_a_sender(
        self, monkeypatch, session, organization, manager, make_alert
    ):
        def unavailable():
            raise AssertionError("email sender requested")

        monkeypatch.setattr("psicozen.services.alert_engine.get_email_sender", unavailable)
        engine = AlertEngine(session, frontend_url="https://app.test")
        alert = await make_alert(organization.id, "high")

        await engine.get_dashboard(organization.id)
        await engine.find_by_organization(organization.id)
        await engine.resolve_alert(alert.id, manager.id)

    async def test_trigger_builds_the_default_sender(
        self, monkeypatch, session, email_sender, organization, user, manager, make_submission
    ):
        monkeypatch.setattr(
            "psicozen.services.alert_engine.get_email_sender", lambda: email_sender
        )
        engine = AlertEngine(session, frontend_url="https://app.test")
        submission = await make_submission(organization.id, user.id, level=9)

        await engine.trigger_emotional_alert(submission)

        assert [m.to for m in email_sender.sent] == [manager.email]
