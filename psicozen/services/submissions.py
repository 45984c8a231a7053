"""
Submission Store: emotional check-ins.

A submission is immutable once stored, apart from the moderation flag.
Storing one may raise an alert in the same transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import is_unique_violation
from ..core.exceptions import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    NotFoundError,
)
from ..models import (
    AuditAction,
    EmociogramaAlert,
    EmociogramaSubmission,
    EmotionCategory,
    MAX_EMOTION_LEVEL,
    MIN_EMOTION_LEVEL,
    User,
    emoji_for_level,
    utcnow,
)
from .alert_engine import AlertEngine
from .audit import AuditService
from .moderation import moderate_comment
from .organizations import OrganizationService

logger = logging.getLogger(__name__)

COMMENT_MAX_LENGTH = 1000
ANONYMOUS_USER = "anonymous"

EXPORT_COLUMNS: tuple[str, ...] = (
    "Data",
    "Nível Emocional",
    "Emoji",
    "Categoria",
    "Departamento",
    "Equipe",
    "Anônimo",
    "Comentário",
)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class SubmissionNotFoundError(NotFoundError):
    """Submission does not exist or was purged."""
    pass


class SubmissionValidationError(DomainValidationError):
    """Invalid level, comment or category."""
    pass


class EmociogramaDisabledError(ForbiddenError):
    """The organization turned the emociograma off."""
    pass


class SubmissionAccessDeniedError(ForbiddenError):
    """Only the author and managers may see a submission."""
    pass


class CategoryNotFoundError(NotFoundError):
    """Category does not exist."""
    pass


class CategoryConflictError(ConflictError):
    """Category name already taken."""
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class SubmitInput:
    """Input for a new check-in."""
    emotion_level: int
    category_id: UUID
    is_anonymous: bool | None = None  # None: organization default
    comment: str | None = None
    department: str | None = None
    team: str | None = None
    emotion_emoji: str | None = None  # Derived from the level when omitted


@dataclass
class SubmissionResult:
    submission: EmociogramaSubmission
    alert: EmociogramaAlert | None = None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def mask_identity(submission: EmociogramaSubmission) -> dict[str, Any]:
    """Plain view of a submission; anonymous ones hide the author."""
    return {
        "id": submission.id,
        "organization_id": submission.organization_id,
        "user_id": ANONYMOUS_USER if submission.is_anonymous else str(submission.user_id),
        "emotion_level": submission.emotion_level,
        "emotion_emoji": submission.emotion_emoji,
        "category_id": submission.category_id,
        "is_anonymous": submission.is_anonymous,
        "comment": submission.comment,
        "comment_flagged": submission.comment_flagged,
        "submitted_at": submission.submitted_at,
        "department": submission.department,
        "team": submission.team,
    }


# =============================================================================
# SERVICE
# =============================================================================


class SubmissionService:
    """Stores check-ins and hands qualifying ones to the alert engine."""

    def __init__(
        self,
        session: AsyncSession,
        alert_engine: AlertEngine | None = None,
    ):
        self._session = session
        self._alerts = alert_engine or AlertEngine(session)
        self._organizations = OrganizationService(session)
        self._audit = AuditService(session)

    async def submit(
        self,
        organization_id: UUID,
        user_id: UUID,
        data: SubmitInput,
    ) -> SubmissionResult:
        """
        Store a check-in.

        Flow:
        1. Organization exists and has the emociograma enabled
        2. User exists, category exists and is active
        3. Validate level and comment length
        4. Moderate the comment
        5. Persist, then trigger the alert engine synchronously
        """
        settings = await self._organizations.get_settings(organization_id)
        if not settings.emociograma_enabled:
            raise EmociogramaDisabledError(
                f"Emociograma is disabled for organization {organization_id}"
            )

        await self._get_user(user_id)

        category = await self._session.get(EmotionCategory, data.category_id)
        if category is None or not category.is_active:
            raise SubmissionValidationError(f"Category {data.category_id} is not available")

        level = data.emotion_level
        if (
            isinstance(level, bool)
            or not isinstance(level, int)
            or not MIN_EMOTION_LEVEL <= level <= MAX_EMOTION_LEVEL
        ):
            raise SubmissionValidationError(
                f"Emotion level must be an integer between "
                f"{MIN_EMOTION_LEVEL} and {MAX_EMOTION_LEVEL}"
            )

        comment = _clean(data.comment)
        if comment and len(comment) > COMMENT_MAX_LENGTH:
            raise SubmissionValidationError(
                f"Comment must be at most {COMMENT_MAX_LENGTH} characters"
            )

        moderation = moderate_comment(comment)
        if moderation.is_flagged:
            logger.info(
                f"Comment flagged in organization {organization_id}: "
                f"{', '.join(moderation.flag_reasons)}"
            )

        is_anonymous = (
            settings.anonymity_default if data.is_anonymous is None else data.is_anonymous
        )

        submission = EmociogramaSubmission(
            organization_id=organization_id,
            user_id=user_id,
            emotion_level=level,
            emotion_emoji=data.emotion_emoji or emoji_for_level(level),
            category_id=data.category_id,
            is_anonymous=is_anonymous,
            comment=moderation.sanitized_comment or None,
            comment_flagged=moderation.is_flagged,
            submitted_at=utcnow(),
            department=_clean(data.department),
            team=_clean(data.team),
        )
        self._session.add(submission)
        await self._session.flush()

        alert = await self._alerts.trigger_emotional_alert(submission)
        return SubmissionResult(submission=submission, alert=alert)

    async def get_submission(self, submission_id: UUID) -> EmociogramaSubmission:
        result = await self._session.execute(
            select(EmociogramaSubmission).where(
                EmociogramaSubmission.id == submission_id,
                EmociogramaSubmission.deleted_at.is_(None),
            )
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")
        return submission

    async def list_for_user(
        self,
        user_id: UUID,
        organization_id: UUID,
        limit: int | None = 20,
        offset: int = 0,
    ) -> Sequence[EmociogramaSubmission]:
        """Newest first; ``limit=None`` returns every check-in."""
        result = await self._session.execute(
            select(EmociogramaSubmission)
            .where(
                EmociogramaSubmission.user_id == user_id,
                EmociogramaSubmission.organization_id == organization_id,
                EmociogramaSubmission.deleted_at.is_(None),
            )
            .order_by(EmociogramaSubmission.submitted_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return result.scalars().all()

    async def list_for_organization(
        self,
        organization_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Sequence[EmociogramaSubmission]:
        query = select(EmociogramaSubmission).where(
            EmociogramaSubmission.organization_id == organization_id,
            EmociogramaSubmission.deleted_at.is_(None),
        )
        if start:
            query = query.where(EmociogramaSubmission.submitted_at >= start)
        if end:
            query = query.where(EmociogramaSubmission.submitted_at <= end)

        result = await self._session.execute(
            query.order_by(EmociogramaSubmission.submitted_at.desc())
        )
        return result.scalars().all()

    async def flag_comment(self, submission_id: UUID) -> EmociogramaSubmission:
        submission = await self.get_submission(submission_id)
        submission.comment_flagged = True
        await self._session.flush()
        return submission

    async def unflag_comment(self, submission_id: UUID) -> EmociogramaSubmission:
        submission = await self.get_submission(submission_id)
        submission.comment_flagged = False
        await self._session.flush()
        return submission

    async def view_submission(
        self,
        submission_id: UUID,
        viewer_id: UUID,
        organization_id: UUID,
        can_view_team: bool = False,
    ) -> dict[str, Any]:
        """
        A submission as ``viewer_id`` may see it.

        The author sees everything, including their own id on anonymous
        check-ins. Managers see any check-in in their organization with
        anonymous authors masked. Anyone else is refused.
        """
        submission = await self.get_submission(submission_id)
        # Other tenants' submissions look like missing ones
        if submission.organization_id != organization_id:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")

        is_author = submission.user_id == viewer_id
        if not is_author and not can_view_team:
            logger.warning(
                f"User {viewer_id} denied access to submission {submission_id}"
            )
            raise SubmissionAccessDeniedError("Only your own submissions are visible")

        view = mask_identity(submission)
        if is_author:
            view["user_id"] = str(submission.user_id)
        return view

    async def list_team_submissions(
        self,
        organization_id: UUID,
        take: int = 20,
        skip: int = 0,
        department: str | None = None,
        team: str | None = None,
    ) -> tuple[Sequence[EmociogramaSubmission], int]:
        """Newest-first page of the organization's check-ins plus the total."""
        query = select(EmociogramaSubmission).where(
            EmociogramaSubmission.organization_id == organization_id,
            EmociogramaSubmission.deleted_at.is_(None),
        )
        if department:
            query = query.where(EmociogramaSubmission.department == department)
        if team:
            query = query.where(EmociogramaSubmission.team == team)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self._session.execute(count_query)).scalar_one()

        result = await self._session.execute(
            query.order_by(EmociogramaSubmission.submitted_at.desc())
            .limit(take)
            .offset(skip)
        )
        return result.scalars().all(), total
    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def list_categories(self, include_inactive: bool = False) -> Sequence[EmotionCategory]:
        query = select(EmotionCategory)
        if not include_inactive:
            query = query.where(EmotionCategory.is_active.is_(True))
        result = await self._session.execute(
            query.order_by(EmotionCategory.display_order, EmotionCategory.name)
        )
        return result.scalars().all()

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        display_order: int = 0,
    ) -> EmotionCategory:
        name = (name or "").strip()
        if not name:
            raise SubmissionValidationError("Category name is required")

        category = EmotionCategory(
            name=name,
            description=_clean(description),
            display_order=display_order,
            is_active=True,
        )
        self._session.add(category)
        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise CategoryConflictError(f"Category '{name}' already exists") from e
            raise
        return category

    async def get_category(self, category_id: UUID) -> EmotionCategory:
        category = await self._session.get(EmotionCategory, category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        return category

    async def update_category(
        self,
        category_id: UUID,
        name: str | None = None,
        description: str | None = None,
        display_order: int | None = None,
    ) -> EmotionCategory:
        """Change the given fields; ``None`` keeps the current value."""
        category = await self.get_category(category_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise SubmissionValidationError("Category name is required")
            if name != category.name:
                taken = await self._session.execute(
                    select(EmotionCategory.id).where(
                        EmotionCategory.name == name,
                        EmotionCategory.id != category_id,
                    )
                )
                if taken.scalar_one_or_none() is not None:
                    raise CategoryConflictError(f"Category '{name}' already exists")
                category.name = name
        if description is not None:
            category.description = _clean(description)
        if display_order is not None:
            category.display_order = display_order

        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise CategoryConflictError(f"Category '{name}' already exists") from e
            raise

        logger.info(f"Category {category_id} updated")
        return category

    async def deactivate_category(self, category_id: UUID) -> EmotionCategory:
        """Hide the category from new check-ins; past ones keep pointing at it."""
        category = await self.get_category(category_id)
        category.is_active = False
        await self._session.flush()

        logger.info(f"Category {category_id} deactivated")
        return category

    # =========================================================================
    # RETENTION & EXPORT
    # =========================================================================

    async def purge_expired(
        self,
        organization_id: UUID,
        retention_days: int,
        now: datetime | None = None,
    ) -> int:
        """Soft-delete submissions older than the retention window."""
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        result = await self._session.execute(
            update(EmociogramaSubmission)
            .where(
                EmociogramaSubmission.organization_id == organization_id,
                EmociogramaSubmission.submitted_at < cutoff,
                EmociogramaSubmission.deleted_at.is_(None),
            )
            .values(deleted_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0

        if count:
            await self._audit.log_event(
                action=AuditAction.PURGE,
                resource_type="emociograma_submission",
                resource_id=organization_id,
                organization_id=organization_id,
                details={"cutoff": cutoff.isoformat(), "purged": count},
            )
        return count

    async def build_export_records(
        self,
        organization_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
        exported_by: UUID | None = None,
    ) -> list[dict[str, Any]]:
        """Flat rows keyed by the export column headers."""
        submissions = await self.list_for_organization(organization_id, start, end)

        categories = {
            c.id: c.name for c in await self.list_categories(include_inactive=True)
        }

        records = [
            dict(zip(
                EXPORT_COLUMNS,
                (
                    s.submitted_at.isoformat(),
                    s.emotion_level,
                    s.emotion_emoji,
                    categories.get(s.category_id, ""),
                    s.department or "",
                    s.team or "",
                    "Sim" if s.is_anonymous else "Não",
                    s.comment or "",
                ),
            ))
            for s in submissions
        ]

        await self._audit.log_event(
            action=AuditAction.EXPORT,
            resource_type="emociograma_submission",
            resource_id=organization_id,
            organization_id=organization_id,
            user_id=exported_by,
            details={
                "count": len(records),
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
        )
        return records

    # =========================================================================
    # USER DATA (LGPD)
    # =========================================================================

    async def export_user_data(self, user_id: UUID, organization_id: UUID) -> dict[str, Any]:
        """Everything stored about the user in this organization (LGPD Art. 18, IV)."""
        user = await self._get_user(user_id)
        submissions = await self.list_for_user(user_id, organization_id, limit=None)

        data = {
            "profile": {
                "id": user.id,
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "created_at": user.created_at,
            },
            "submissions": [
                {
                    "submitted_at": s.submitted_at,
                    "emotion_level": s.emotion_level,
                    "emotion_emoji": s.emotion_emoji,
                    "category_id": s.category_id,
                    "comment": s.comment,
                    "is_anonymous": s.is_anonymous,
                    "department": s.department,
                    "team": s.team,
                }
                for s in submissions
            ],
            "exported_at": utcnow(),
        }

        await self._audit.log_event(
            action=AuditAction.EXPORT,
            resource_type="user_data",
            resource_id=user_id,
            organization_id=organization_id,
            user_id=user_id,
            details={"submissions": len(submissions), "article": "LGPD Art. 18, IV"},
        )
        return data

    async def anonymize_user_data(self, user_id: UUID, organization_id: UUID) -> int:
        """Mark every check-in anonymous and drop its comment (LGPD Art. 18, II).

        Levels, categories and dates stay, so aggregated reports keep working.
        """
        await self._get_user(user_id)
        result = await self._session.execute(
            update(EmociogramaSubmission)
            .where(
                EmociogramaSubmission.user_id == user_id,
                EmociogramaSubmission.organization_id == organization_id,
            )
            .values(is_anonymous=True, comment=None, comment_flagged=False, updated_at=utcnow())
        )
        count = result.rowcount or 0

        await self._audit.log_event(
            action=AuditAction.ANONYMIZE,
            resource_type="user_data",
            resource_id=user_id,
            organization_id=organization_id,
            user_id=user_id,
            details={"submissions": count, "article": "LGPD Art. 18, II"},
        )
        logger.info(f"Anonymized {count} submissions of user {user_id}")
        return count

    async def delete_user_data(self, user_id: UUID, organization_id: UUID) -> int:
        """Permanently delete the user's check-ins (LGPD Art. 18, VI).

        Alerts raised by those check-ins go with them.
        """
        await self._get_user(user_id)
        submission_ids = select(EmociogramaSubmission.id).where(
            EmociogramaSubmission.user_id == user_id,
            EmociogramaSubmission.organization_id == organization_id,
        )
        await self._session.execute(
            delete(EmociogramaAlert).where(EmociogramaAlert.submission_id.in_(submission_ids))
        )
        result = await self._session.execute(
            delete(EmociogramaSubmission).where(
                EmociogramaSubmission.user_id == user_id,
                EmociogramaSubmission.organization_id == organization_id,
            )
        )
        count = result.rowcount or 0

        await self._audit.log_event(
            action=AuditAction.DELETE,
            resource_type="user_data",
            resource_id=user_id,
            organization_id=organization_id,
            user_id=user_id,
            details={"submissions": count, "article": "LGPD Art. 18, VI"},
        )
        logger.info(f"Deleted {count} submissions of user {user_id}")
        return count

    async def _get_user(self, user_id: UUID) -> User:
        user = await self._session.get(User, user_id)
        if user is None or user.is_deleted:
            raise NotFoundError(f"User {user_id} not found")
        return user
