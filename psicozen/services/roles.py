"""
Role Directory: who holds which role, and where.

Assignments are (user, role, scope) triples where the scope is either the
global scope or one organization. The global scope is a real value: a user
can hold ``admin`` globally and ``admin`` in organization X at the same
time, but never the same role twice in the same scope.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import is_unique_violation
from ..core.exceptions import ConflictError, DomainValidationError, NotFoundError
from ..models import (
    AuditAction,
    Organization,
    ROLE_HIERARCHY,
    Role,
    SystemRole,
    User,
    UserRole,
)
from .audit import AuditService
from .organizations import OrganizationNotFoundError

logger = logging.getLogger(__name__)

GLOBAL_SCOPE_KEY = "global"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class RoleNotFoundError(NotFoundError):
    """Role does not exist."""
    pass


class UserNotFoundError(NotFoundError):
    """User does not exist or was deleted."""
    pass


class RoleAssignmentConflictError(ConflictError):
    """The user already holds this role in this scope."""
    pass


class RoleScopeError(DomainValidationError):
    """Organization-scoped role assigned without an organization."""
    pass


# =============================================================================
# SCOPE
# =============================================================================


@dataclass(frozen=True)
class RoleScope:
    """Either the global scope (no organization) or one organization."""

    organization_id: UUID | None = None

    @classmethod
    def global_scope(cls) -> "RoleScope":
        return cls(None)

    @property
    def is_global(self) -> bool:
        return self.organization_id is None

    @property
    def key(self) -> str:
        """Persisted form used by the uniqueness constraint."""
        return GLOBAL_SCOPE_KEY if self.is_global else str(self.organization_id)


# =============================================================================
# DIRECTORY
# =============================================================================


class RoleDirectory:
    """Authoritative source for role lookups, assignments and manager discovery."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)

    # =========================================================================
    # ROLES
    # =========================================================================

    async def find_by_name(self, name: str) -> Role | None:
        result = await self._session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Role:
        role = await self.find_by_name(name)
        if not role:
            raise RoleNotFoundError(f"Role '{name}' not found")
        return role

    async def ensure_system_roles(self) -> list[Role]:
        """Create any missing built-in role. Safe to call repeatedly."""
        roles = []
        for system_role in SystemRole:
            role = await self.find_by_name(system_role.value)
            if role is None:
                role = Role(
                    name=system_role.value,
                    description=f"System role: {system_role.value}",
                    organization_id=None,
                    hierarchy_level=ROLE_HIERARCHY[system_role],
                    is_system_role=True,
                )
                self._session.add(role)
                logger.info(f"Created system role {system_role.value}")
            roles.append(role)
        await self._session.flush()
        return roles

    # =========================================================================
    # ASSIGNMENTS
    # =========================================================================

    async def assign_role_to_user(
        self,
        user_id: UUID,
        role_id: UUID,
        organization_id: UUID | None = None,
        assigned_by: UUID | None = None,
    ) -> UserRole:
        """
        Record a role assignment.

        The existence check gives a clean conflict in the common case; the
        unique constraint catches a concurrent writer that slipped past it.
        Either way the caller sees RoleAssignmentConflictError.
        """
        scope = RoleScope(organization_id)

        if await self.user_has_role_in_organization(user_id, role_id, organization_id):
            raise RoleAssignmentConflictError(
                f"User {user_id} already has role {role_id} in scope {scope.key}"
            )

        assignment = UserRole(
            user_id=user_id,
            role_id=role_id,
            organization_id=scope.organization_id,
            scope_key=scope.key,
            assigned_by=assigned_by,
        )
        self._session.add(assignment)

        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.info(
                    f"Concurrent assignment of role {role_id} to user {user_id} "
                    f"in scope {scope.key}"
                )
                raise RoleAssignmentConflictError(
                    f"User {user_id} already has role {role_id} in scope {scope.key}"
                ) from e
            raise

        await self._audit.log_event(
            action=AuditAction.ASSIGN_ROLE,
            resource_type="user_role",
            resource_id=assignment.id,
            organization_id=scope.organization_id,
            user_id=assigned_by,
            details={"user_id": user_id, "role_id": role_id, "scope": scope.key},
        )
        return assignment

    async def grant_role(
        self,
        user_id: UUID,
        role_name: str,
        organization_id: UUID | None = None,
        assigned_by: UUID | None = None,
    ) -> UserRole:
        """
        Assign a role by name after validating every party.

        Flow:
        1. User must exist
        2. Role must exist
        3. Every role but super_admin needs an organization
        4. Organization, if given, must exist
        5. Record the assignment
        """
        await self.get_user(user_id)
        role = await self.get_by_name(role_name)

        if organization_id is None and role.name != SystemRole.SUPER_ADMIN.value:
            raise RoleScopeError(
                f"Role '{role_name}' requires an organization"
            )

        if organization_id is not None:
            result = await self._session.execute(
                select(Organization.id).where(
                    Organization.id == organization_id,
                    Organization.deleted_at.is_(None),
                )
            )
            if result.scalar_one_or_none() is None:
                raise OrganizationNotFoundError(f"Organization {organization_id} not found")

        return await self.assign_role_to_user(
            user_id, role.id, organization_id, assigned_by
        )

    async def user_has_role_in_organization(
        self,
        user_id: UUID,
        role_id: UUID,
        organization_id: UUID | None = None,
    ) -> bool:
        """Exact-scope check; ``None`` means the global scope only."""
        scope = RoleScope(organization_id)
        result = await self._session.execute(
            select(UserRole.id).where(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
                UserRole.scope_key == scope.key,
            )
        )
        return result.first() is not None

    async def remove_role_from_user(
        self,
        user_id: UUID,
        role_id: UUID,
        organization_id: UUID | None = None,
        removed_by: UUID | None = None,
    ) -> None:
        """Delete the assignment in exactly this scope. Missing rows are fine."""
        scope = RoleScope(organization_id)
        result = await self._session.execute(
            delete(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
                UserRole.scope_key == scope.key,
            )
        )
        if result.rowcount:
            await self._audit.log_event(
                action=AuditAction.REMOVE_ROLE,
                resource_type="user_role",
                resource_id=role_id,
                organization_id=scope.organization_id,
                user_id=removed_by,
                details={"user_id": user_id, "role_id": role_id, "scope": scope.key},
            )

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_roles_by_organization(
        self,
        user_id: UUID,
        organization_id: UUID | None = None,
    ) -> set[str]:
        """Role names held in the organization plus every global role."""
        scope_keys = [GLOBAL_SCOPE_KEY]
        if organization_id is not None:
            scope_keys.append(RoleScope(organization_id).key)

        result = await self._session.execute(
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                UserRole.scope_key.in_(scope_keys),
            )
        )
        return set(result.scalars().all())

    async def find_users_by_roles(
        self,
        organization_id: UUID,
        role_names: Iterable[str],
    ) -> Sequence[User]:
        """Active users holding any of the roles through an assignment in this organization.

        Global assignments are not included.
        """
        names = [getattr(n, "value", n) for n in role_names]
        if not names:
            return []

        holders = (
            select(UserRole.user_id)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                UserRole.organization_id == organization_id,
                Role.name.in_(names),
            )
        )
        result = await self._session.execute(
            select(User)
            .where(
                User.id.in_(holders),
                User.is_active.is_(True),
                User.deleted_at.is_(None),
            )
            .order_by(User.email)
        )
        return result.scalars().all()

    async def has_any_role(
        self,
        user_id: UUID,
        organization_id: UUID | None,
        allowed: Iterable[str],
    ) -> bool:
        """True if the user holds an allowed role here, or is a super admin."""
        held = await self.get_roles_by_organization(user_id, organization_id)
        wanted = {getattr(n, "value", n) for n in allowed}
        return bool(held & (wanted | {SystemRole.SUPER_ADMIN.value}))

    async def get_user(self, user_id: UUID) -> User:
        result = await self._session.execute(
            select(User).where(User.id == user_id, User.deleted_at.is_(None))
        )
        user = result.scalar_one_or_none()
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return user
