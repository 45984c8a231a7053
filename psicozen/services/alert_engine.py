"""
Alert Engine: emotional alert lifecycle.

An alert is raised when a submission's emotion level reaches the
organization's threshold. Its life is a single transition:

    Unresolved -> Resolved

Notification is best effort. Each manager is emailed independently and a
failed send only removes that manager from ``notified_users``; it never
fails the submission that triggered the alert.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.exceptions import ConflictError, NotFoundError
from ..models import (
    AlertSeverity,
    AlertType,
    AuditAction,
    EmociogramaAlert,
    EmociogramaSubmission,
    MANAGER_TIER_ROLES,
    NotificationStatus,
    User,
    utcnow,
)
from .audit import AuditService
from .notifications import EmailSender, build_alert_email, get_email_sender
from .organizations import OrganizationService
from .roles import RoleDirectory

logger = logging.getLogger(__name__)

SEVERITY_KEYS: tuple[str, ...] = (
    AlertSeverity.CRITICAL.value,
    AlertSeverity.HIGH.value,
    AlertSeverity.MEDIUM.value,
    AlertSeverity.LOW.value,
)

DASHBOARD_RECENT_LIMIT = 10


# =============================================================================
# EXCEPTIONS
# =============================================================================


class AlertNotFoundError(NotFoundError):
    """Alert does not exist."""
    pass


class AlertAlreadyResolvedError(ConflictError):
    """Alert was resolved before; resolution is final."""
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class AlertStatistics:
    total: int
    by_severity: dict[str, int]
    unresolved: int
    resolved_today: int


@dataclass
class AlertDashboard:
    statistics: AlertStatistics
    recent_alerts: list[EmociogramaAlert] = field(default_factory=list)


# =============================================================================
# CLASSIFICATION
# =============================================================================

EMOTION_LABELS: dict[int, str] = {
    6: "Cansado 😫",
    7: "Triste 😢",
    8: "Estressado 😣",
    9: "Ansioso 😟",
    10: "Muito triste 😞",
}


def classify_severity(emotion_level: int) -> AlertSeverity:
    """Fixed bands, independent of the organization's threshold."""
    if emotion_level >= 9:
        return AlertSeverity.CRITICAL
    if emotion_level >= 7:
        return AlertSeverity.HIGH
    if emotion_level >= 6:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


def build_alert_message(submission: EmociogramaSubmission) -> str:
    label = EMOTION_LABELS.get(submission.emotion_level, "Negativo")

    if submission.team:
        location = f"Equipe: {submission.team}"
    elif submission.department:
        location = f"Departamento: {submission.department}"
    else:
        location = "Localização não especificada"

    return (
        f"Colaborador reportou estado emocional {label} "
        f"(Nível {submission.emotion_level}/10). {location}."
    )


def severity_rank():
    """ORDER BY expression: critical first, unknown values last."""
    return case(
        {
            AlertSeverity.CRITICAL.value: 1,
            AlertSeverity.HIGH.value: 2,
            AlertSeverity.MEDIUM.value: 3,
            AlertSeverity.LOW.value: 4,
        },
        value=EmociogramaAlert.severity,
        else_=5,
    )


def local_midnight_utc(now: datetime | None = None) -> datetime:
    """Start of today in server local time, as an aware UTC datetime."""
    local_now = (now or datetime.now(timezone.utc)).astimezone()
    midnight = datetime.combine(local_now.date(), time.min, tzinfo=local_now.tzinfo)
    return midnight.astimezone(timezone.utc)


# =============================================================================
# ALERT ENGINE
# =============================================================================


class AlertEngine:
    """
    Creates, notifies, queries and resolves emotional alerts.

    All storage goes through the session handed in by the caller, so the
    alert lands in the same transaction as the submission that caused it.
    """

    def __init__(
        self,
        session: AsyncSession,
        email_sender: EmailSender | None = None,
        frontend_url: str | None = None,
    ):
        self._session = session
        self._email_sender = email_sender
        self._frontend_url = frontend_url or get_settings().frontend_url
        self._organizations = OrganizationService(session)
        self._roles = RoleDirectory(session)
        self._audit = AuditService(session)

    @property
    def email_sender(self) -> EmailSender:
        """Only alert triggering sends email; read paths never build a sender."""
        if self._email_sender is None:
            self._email_sender = get_email_sender()
        return self._email_sender

    # =========================================================================
    # TRIGGER
    # =========================================================================

    async def trigger_emotional_alert(
        self, submission: EmociogramaSubmission
    ) -> EmociogramaAlert | None:
        """
        Raise an alert for a submission if it meets the threshold.

        Flow:
        1. Below the organization threshold -> None, nothing written
        2. Existing alert for this submission -> returned unchanged
        3. Classify severity and build the message
        4. Persist and flush (alert id exists before any email goes out)
        5. Find org-scoped managers; none -> persisted as no_recipients
        6. Email all managers concurrently, wait for every send to settle
        7. Record who was notified and the overall outcome
        """
        threshold = await self._organizations.get_alert_threshold(
            submission.organization_id
        )
        if submission.emotion_level < threshold:
            logger.debug(
                f"Submission {submission.id} level {submission.emotion_level} "
                f"below threshold {threshold}"
            )
            return None

        existing = await self.find_by_submission(submission.id)
        if existing is not None:
            logger.info(f"Alert {existing.id} already exists for submission {submission.id}")
            return existing

        severity = classify_severity(submission.emotion_level)
        alert = EmociogramaAlert(
            organization_id=submission.organization_id,
            submission_id=submission.id,
            alert_type=AlertType.THRESHOLD_EXCEEDED.value,
            severity=severity.value,
            message=build_alert_message(submission),
            is_resolved=False,
            notified_users=[],
            notification_sent_at=None,
        )
        self._session.add(alert)
        await self._session.flush()

        logger.info(
            f"Alert {alert.id} ({severity.value}) created for organization "
            f"{submission.organization_id}"
        )

        managers = await self._roles.find_users_by_roles(
            submission.organization_id, MANAGER_TIER_ROLES
        )
        if not managers:
            logger.warning(
                f"No managers to notify for organization {submission.organization_id}"
            )
            alert.notification_status = NotificationStatus.NO_RECIPIENTS.value
            await self._session.flush()
            return alert

        results = await asyncio.gather(
            *(self._notify(manager, alert, submission) for manager in managers),
            return_exceptions=True,
        )
        notified = [
            str(manager.id)
            for manager, ok in zip(managers, results)
            if ok is True
        ]

        if len(notified) == len(managers):
            status = NotificationStatus.SENT
        elif notified:
            status = NotificationStatus.PARTIAL
        else:
            status = NotificationStatus.FAILED

        alert.notified_users = notified
        alert.notification_sent_at = utcnow() if notified else None
        alert.notification_status = status.value
        await self._session.flush()

        logger.info(
            f"Alert {alert.id}: notified {len(notified)}/{len(managers)} managers"
        )
        return alert

    async def _notify(
        self,
        manager: User,
        alert: EmociogramaAlert,
        submission: EmociogramaSubmission,
    ) -> bool:
        """Send one email. Never raises; must not touch the session."""
        try:
            message = build_alert_email(alert, submission, manager, self._frontend_url)
            await self.email_sender.send(message)
            return True
        except Exception:
            logger.exception(
                f"Failed to notify manager {manager.id} about alert {alert.id}"
            )
            return False

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    async def resolve_alert(
        self,
        alert_id: UUID,
        resolved_by: UUID,
        notes: str | None = None,
    ) -> EmociogramaAlert:
        alert = await self.get_by_id(alert_id)
        if alert.is_resolved:
            raise AlertAlreadyResolvedError(f"Alert {alert_id} is already resolved")

        alert.is_resolved = True
        alert.resolved_at = utcnow()
        alert.resolved_by = resolved_by
        alert.resolution_notes = (notes or "").strip() or None
        await self._session.flush()

        await self._audit.log_event(
            action=AuditAction.RESOLVE,
            resource_type="alert",
            resource_id=alert.id,
            organization_id=alert.organization_id,
            user_id=resolved_by,
            details={"severity": alert.severity},
        )
        return alert

    async def bulk_resolve(
        self,
        alert_ids: Sequence[UUID],
        resolved_by: UUID,
        notes: str | None = None,
        organization_id: UUID | None = None,
    ) -> int:
        """Resolve the still-open alerts among ``alert_ids``; returns how many changed.

        Alerts are loaded and updated through the session, so instances
        already in the identity map see the resolution. Each resolved alert
        gets its own audit entry in its organization's chain.
        """
        if not alert_ids:
            return 0

        query = (
            select(EmociogramaAlert)
            .where(
                EmociogramaAlert.id.in_(list(alert_ids)),
                EmociogramaAlert.is_resolved.is_(False),
            )
            .with_for_update()
        )
        if organization_id is not None:
            query = query.where(EmociogramaAlert.organization_id == organization_id)

        alerts = (await self._session.execute(query)).scalars().all()

        resolved_at = utcnow()
        resolution_notes = (notes or "").strip() or None
        for alert in alerts:
            alert.is_resolved = True
            alert.resolved_at = resolved_at
            alert.resolved_by = resolved_by
            alert.resolution_notes = resolution_notes
        await self._session.flush()

        for alert in alerts:
            await self._audit.log_event(
                action=AuditAction.RESOLVE,
                resource_type="alert",
                resource_id=alert.id,
                organization_id=alert.organization_id,
                user_id=resolved_by,
                details={"severity": alert.severity, "bulk": True},
            )

        logger.info(f"Bulk-resolved {len(alerts)}/{len(alert_ids)} alerts")
        return len(alerts)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_by_id(self, alert_id: UUID) -> EmociogramaAlert:
        alert = await self._session.get(EmociogramaAlert, alert_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found")
        return alert

    async def find_by_submission(self, submission_id: UUID) -> EmociogramaAlert | None:
        result = await self._session.execute(
            select(EmociogramaAlert).where(EmociogramaAlert.submission_id == submission_id)
        )
        return result.scalar_one_or_none()

    async def find_unresolved(self, organization_id: UUID) -> Sequence[EmociogramaAlert]:
        result = await self._session.execute(
            select(EmociogramaAlert)
            .where(
                EmociogramaAlert.organization_id == organization_id,
                EmociogramaAlert.is_resolved.is_(False),
            )
            .order_by(severity_rank(), EmociogramaAlert.created_at.desc())
        )
        return result.scalars().all()

    async def find_by_organization(
        self,
        organization_id: UUID,
        take: int = 10,
        skip: int = 0,
        include_resolved: bool = False,
        severity: AlertSeverity | str | None = None,
    ) -> tuple[Sequence[EmociogramaAlert], int]:
        """Page of alerts plus the total count matching the filters."""
        query = select(EmociogramaAlert).where(
            EmociogramaAlert.organization_id == organization_id
        )
        if not include_resolved:
            query = query.where(EmociogramaAlert.is_resolved.is_(False))
        if severity:
            query = query.where(
                EmociogramaAlert.severity == getattr(severity, "value", severity)
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self._session.execute(count_query)).scalar_one()

        query = (
            query.order_by(severity_rank(), EmociogramaAlert.created_at.desc())
            .limit(take)
            .offset(skip)
        )
        result = await self._session.execute(query)
        return result.scalars().all(), total

    async def find_by_severity(
        self,
        organization_id: UUID,
        severity: AlertSeverity | str,
    ) -> Sequence[EmociogramaAlert]:
        result = await self._session.execute(
            select(EmociogramaAlert)
            .where(
                EmociogramaAlert.organization_id == organization_id,
                EmociogramaAlert.severity == getattr(severity, "value", severity),
            )
            .order_by(EmociogramaAlert.created_at.desc())
        )
        return result.scalars().all()

    async def find_by_date_range(
        self,
        organization_id: UUID,
        start: datetime,
        end: datetime,
    ) -> Sequence[EmociogramaAlert]:
        result = await self._session.execute(
            select(EmociogramaAlert)
            .where(
                EmociogramaAlert.organization_id == organization_id,
                EmociogramaAlert.created_at.between(start, end),
            )
            .order_by(EmociogramaAlert.created_at.desc())
        )
        return result.scalars().all()

    # =========================================================================
    # STATISTICS
    # =========================================================================

    async def get_statistics(self, organization_id: UUID) -> AlertStatistics:
        base = EmociogramaAlert.organization_id == organization_id

        total = (
            await self._session.execute(
                select(func.count()).select_from(EmociogramaAlert).where(base)
            )
        ).scalar_one()

        by_severity = await self._count_by_severity(base)

        unresolved = (
            await self._session.execute(
                select(func.count())
                .select_from(EmociogramaAlert)
                .where(base, EmociogramaAlert.is_resolved.is_(False))
            )
        ).scalar_one()

        resolved_today = (
            await self._session.execute(
                select(func.count())
                .select_from(EmociogramaAlert)
                .where(
                    base,
                    EmociogramaAlert.is_resolved.is_(True),
                    EmociogramaAlert.resolved_at >= local_midnight_utc(),
                )
            )
        ).scalar_one()

        return AlertStatistics(
            total=total,
            by_severity=by_severity,
            unresolved=unresolved,
            resolved_today=resolved_today,
        )

    async def count_unresolved_by_severity(self, organization_id: UUID) -> dict[str, int]:
        return await self._count_by_severity(
            EmociogramaAlert.organization_id == organization_id,
            EmociogramaAlert.is_resolved.is_(False),
        )

    async def get_dashboard(self, organization_id: UUID) -> AlertDashboard:
        statistics = await self.get_statistics(organization_id)
        recent, _ = await self.find_by_organization(
            organization_id, take=DASHBOARD_RECENT_LIMIT
        )
        return AlertDashboard(statistics=statistics, recent_alerts=list(recent))

    async def _count_by_severity(self, *conditions) -> dict[str, int]:
        """Counts for every severity key, zero when absent."""
        result = await self._session.execute(
            select(EmociogramaAlert.severity, func.count())
            .where(*conditions)
            .group_by(EmociogramaAlert.severity)
        )
        counts = {key: 0 for key in SEVERITY_KEYS}
        for severity, count in result.all():
            if severity in counts:
                counts[severity] = count
        return counts
