"""Organization directory: tenant hierarchy and per-organization settings."""

import logging
import re
import unicodedata
from typing import Any, Sequence
from uuid import UUID

import pydantic
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import is_unique_violation
from ..core.exceptions import ConflictError, DomainValidationError, NotFoundError
from ..models import AuditAction, Organization, OrganizationType
from ..schemas.organizations import OrganizationSettings
from .audit import AuditService

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100


# =============================================================================
# EXCEPTIONS
# =============================================================================


class OrganizationNotFoundError(NotFoundError):
    """Organization does not exist or was deleted."""
    pass


class OrganizationConflictError(ConflictError):
    """Slug already taken, or the organization still has children."""
    pass


class OrganizationValidationError(DomainValidationError):
    """Invalid name, type or settings."""
    pass


# =============================================================================
# HELPERS
# =============================================================================


def generate_slug(name: str) -> str:
    """Lowercase, accent-free, dash-separated form of a name."""
    normalized = unicodedata.normalize("NFKD", name)
    ascii_name = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name.lower())
    return slug.strip("-")


def validate_settings(values: dict[str, Any]) -> OrganizationSettings:
    """Merge stored values over defaults and check bounds."""
    try:
        return OrganizationSettings.model_validate(values)
    except pydantic.ValidationError as e:
        raise OrganizationValidationError(
            "Invalid organization settings",
            errors=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ],
        ) from e


# =============================================================================
# SERVICE
# =============================================================================


class OrganizationService:
    """Creates, reads and configures organizations."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)

    async def create_organization(
        self,
        name: str,
        type: OrganizationType | str,
        parent_id: UUID | None = None,
        settings: dict[str, Any] | None = None,
        created_by: UUID | None = None,
    ) -> Organization:
        """
        Create an organization.

        Flow:
        1. Validate name length and type
        2. Derive slug and check it's free among live organizations
        3. Verify the parent exists
        4. Persist with settings merged over defaults
        """
        name = (name or "").strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            raise OrganizationValidationError(
                f"Organization name must be between {NAME_MIN_LENGTH} "
                f"and {NAME_MAX_LENGTH} characters"
            )

        try:
            org_type = OrganizationType(type)
        except ValueError:
            raise OrganizationValidationError(f"Invalid organization type: {type}")

        slug = generate_slug(name)
        if not slug:
            raise OrganizationValidationError("Organization name must contain letters or digits")

        if await self.get_by_slug(slug) is not None:
            raise OrganizationConflictError("Organization with this name already exists")

        if parent_id is not None:
            await self.get_organization(parent_id)

        effective = validate_settings(settings or {})

        organization = Organization(
            name=name,
            slug=slug,
            type=org_type.value,
            parent_id=parent_id,
            settings=effective.model_dump(),
            is_active=True,
        )
        self._session.add(organization)

        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise OrganizationConflictError(
                    "Organization with this name already exists"
                ) from e
            raise

        await self._audit.log_event(
            action=AuditAction.CREATE,
            resource_type="organization",
            resource_id=organization.id,
            organization_id=organization.id,
            user_id=created_by,
            details={"name": name, "type": org_type.value, "parent_id": parent_id},
        )

        logger.info(f"Created organization {organization.slug} ({organization.id})")
        return organization

    async def get_organization(self, organization_id: UUID) -> Organization:
        result = await self._session.execute(
            select(Organization).where(
                Organization.id == organization_id,
                Organization.deleted_at.is_(None),
            )
        )
        organization = result.scalar_one_or_none()
        if not organization:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")
        return organization

    async def get_by_slug(self, slug: str) -> Organization | None:
        result = await self._session.execute(
            select(Organization).where(
                Organization.slug == slug,
                Organization.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_children(self, parent_id: UUID) -> Sequence[Organization]:
        await self.get_organization(parent_id)
        result = await self._session.execute(
            select(Organization)
            .where(
                Organization.parent_id == parent_id,
                Organization.deleted_at.is_(None),
            )
            .order_by(Organization.name)
        )
        return result.scalars().all()

    async def get_settings(self, organization_id: UUID) -> OrganizationSettings:
        organization = await self.get_organization(organization_id)
        return validate_settings(organization.settings or {})

    async def get_alert_threshold(self, organization_id: UUID) -> int:
        """Effective alert threshold; 6 when the organization never set one."""
        settings = await self.get_settings(organization_id)
        return settings.alert_threshold

    async def update_settings(
        self,
        organization_id: UUID,
        updated_by: UUID | None = None,
        **changes: Any,
    ) -> Organization:
        """Merge ``changes`` into the stored settings. ``None`` values are ignored."""
        organization = await self.get_organization(organization_id)

        unknown = set(changes) - set(OrganizationSettings.model_fields)
        if unknown:
            raise OrganizationValidationError(
                f"Unknown settings: {', '.join(sorted(unknown))}"
            )

        merged = {**(organization.settings or {})}
        merged.update({k: v for k, v in changes.items() if v is not None})
        effective = validate_settings(merged)

        # Reassign so the JSON column is marked dirty
        organization.settings = effective.model_dump()
        await self._session.flush()

        await self._audit.log_event(
            action=AuditAction.UPDATE,
            resource_type="organization_settings",
            resource_id=organization.id,
            organization_id=organization.id,
            user_id=updated_by,
            details={k: v for k, v in changes.items() if v is not None},
        )
        return organization

    async def delete_organization(
        self,
        organization_id: UUID,
        deleted_by: UUID | None = None,
    ) -> None:
        """Soft delete. Refused while live children exist."""
        organization = await self.get_organization(organization_id)

        child_count = (
            await self._session.execute(
                select(func.count()).select_from(Organization).where(
                    Organization.parent_id == organization_id,
                    Organization.deleted_at.is_(None),
                )
            )
        ).scalar_one()
        if child_count:
            raise OrganizationConflictError(
                f"Organization has {child_count} active child organization(s)"
            )

        organization.soft_delete()
        organization.is_active = False
        await self._session.flush()

        await self._audit.log_event(
            action=AuditAction.DELETE,
            resource_type="organization",
            resource_id=organization.id,
            organization_id=organization.id,
            user_id=deleted_by,
        )
        logger.info(f"Soft-deleted organization {organization.slug}")
