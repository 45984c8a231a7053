"""FastAPI dependencies for authentication, authorization, and context."""

import logging
from typing import Annotated, Callable
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Organization, SystemRole, User
from ..services.notifications import EmailSender, get_email_sender
from ..services.roles import RoleDirectory
from .database import get_session, set_tenant_context
from .security import decode_access_token

logger = logging.getLogger(__name__)

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser:
    """Represents the authenticated user and the organization they act in."""

    def __init__(
        self,
        user: User,
        organization_id: UUID | None = None,
        roles: set[str] | None = None,
    ):
        self.user = user
        self.organization_id = organization_id
        self.roles = roles or set()

    @property
    def id(self) -> UUID:
        return self.user.id

    @property
    def is_super_admin(self) -> bool:
        return SystemRole.SUPER_ADMIN.value in self.roles

    def has_any_role(self, *allowed: str) -> bool:
        if self.is_super_admin:
            return True
        return bool(self.roles & {getattr(r, "value", r) for r in allowed})


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_session)],
    x_organization_id: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Dependency to get the current authenticated user.

    Organization context comes from the X-Organization-ID header, falling
    back to the token's ``org`` claim. The user must hold a role there
    (or a global one).
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if not payload or payload.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(payload.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )

    result = await session.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    # Priority: header > token > None
    org_id: UUID | None = None
    raw_org = x_organization_id or payload.org
    if raw_org:
        try:
            org_id = UUID(raw_org)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid organization ID format",
            )

    directory = RoleDirectory(session)
    roles = await directory.get_roles_by_organization(user_id, org_id)

    if org_id:
        org_exists = await session.execute(
            select(Organization.id).where(
                Organization.id == org_id, Organization.deleted_at.is_(None)
            )
        )
        if org_exists.scalar_one_or_none() is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Organization not found",
            )
        if not roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a member of this organization",
            )
        await set_tenant_context(session, org_id, user_id)

    return CurrentUser(user=user, organization_id=org_id, roles=roles)


def require_org_context(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Require that an organization context is set."""
    if not current_user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization context required. Set X-Organization-ID header.",
        )
    return current_user


def require_roles(*allowed: str) -> Callable[..., CurrentUser]:
    """Build a dependency admitting users holding any of ``allowed`` here.

    Super admins are always admitted.
    """
    names = ", ".join(getattr(r, "value", r) for r in allowed)

    def dependency(
        current_user: Annotated[CurrentUser, Depends(require_org_context)],
    ) -> CurrentUser:
        if not current_user.has_any_role(*allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {names}",
            )
        return current_user

    return dependency


def require_super_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    if not current_user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return current_user


def get_notification_sender() -> EmailSender:
    """Email sender for the alert engine; overridable in tests."""
    return get_email_sender()


# Type aliases for cleaner dependency injection
SessionDep = Annotated[AsyncSession, Depends(get_session)]
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
OrgContextDep = Annotated[CurrentUser, Depends(require_org_context)]
ManagerDep = Annotated[
    CurrentUser, Depends(require_roles(SystemRole.GESTOR, SystemRole.ADMIN))
]
AdminDep = Annotated[CurrentUser, Depends(require_roles(SystemRole.ADMIN))]
SuperAdminDep = Annotated[CurrentUser, Depends(require_super_admin)]
EmailSenderDep = Annotated[EmailSender, Depends(get_notification_sender)]
