"""SQLAlchemy ORM Models for PsicoZen.

Column types are kept portable (generic ``Uuid``, JSON with a JSONB variant)
so the same metadata runs on PostgreSQL and on the SQLite test database.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin, UUIDMixin, utcnow


# =============================================================================
# ENUMS
# =============================================================================


class OrganizationType(str, PyEnum):
    COMPANY = "company"
    DEPARTMENT = "department"
    TEAM = "team"


class SystemRole(str, PyEnum):
    """Built-in global roles, from most to least privileged."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    GESTOR = "gestor"  # Manager
    COLABORADOR = "colaborador"  # Contributor

    @property
    def hierarchy_level(self) -> int:
        return ROLE_HIERARCHY[self]


# Lower level = higher privilege
ROLE_HIERARCHY: dict[SystemRole, int] = {
    SystemRole.SUPER_ADMIN: 0,
    SystemRole.ADMIN: 100,
    SystemRole.GESTOR: 200,
    SystemRole.COLABORADOR: 300,
}

# Roles that receive emotional alerts for their organization
MANAGER_TIER_ROLES: tuple[SystemRole, ...] = (SystemRole.GESTOR, SystemRole.ADMIN)


class AlertSeverity(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(str, PyEnum):
    THRESHOLD_EXCEEDED = "threshold_exceeded"
    PATTERN_DETECTED = "pattern_detected"


class TrendDirection(str, PyEnum):
    """Where emotion levels are heading over a report period."""
    IMPROVING = "improving"  # Levels going down
    STABLE = "stable"
    DECLINING = "declining"  # Levels going up


class NotificationStatus(str, PyEnum):
    """Outcome of the notification round for an alert."""
    NO_RECIPIENTS = "no_recipients"
    SENT = "sent"  # Every recipient notified
    PARTIAL = "partial"  # Some sends failed
    FAILED = "failed"  # Every send failed


class AuditAction(str, PyEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN_ROLE = "assign_role"
    REMOVE_ROLE = "remove_role"
    RESOLVE = "resolve"
    EXPORT = "export"
    PURGE = "purge"
    ANONYMIZE = "anonymize"


# =============================================================================
# EMOTION SCALE
# =============================================================================

EMOTION_EMOJIS: dict[int, str] = {
    1: "😄",
    2: "🙂",
    3: "😌",
    4: "😐",
    5: "😕",
    6: "😫",
    7: "😢",
    8: "😣",
    9: "😟",
    10: "😞",
}

DEFAULT_EMOJI = "😐"

MIN_EMOTION_LEVEL = 1
MAX_EMOTION_LEVEL = 10


def emoji_for_level(level: int) -> str:
    return EMOTION_EMOJIS.get(level, DEFAULT_EMOJI)


# =============================================================================
# ORGANIZATION & USER MODELS
# =============================================================================


class Organization(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Tenant entity: company, department or team."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL")
    )
    settings: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "type IN ('company', 'department', 'team')", name="valid_type"
        ),
        Index(
            "uq_organizations_slug_active",
            "slug",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("idx_organizations_parent", "parent_id"),
    )


class User(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """User account."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


# =============================================================================
# ROLE MODELS
# =============================================================================


class Role(Base, UUIDMixin, TimestampMixin):
    """A named role with a numeric privilege level."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    organization_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE")
    )
    hierarchy_level: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def is_global(self) -> bool:
        return self.is_system_role and self.organization_id is None

    def has_higher_privilege_than(self, other: "Role") -> bool:
        return self.hierarchy_level < other.hierarchy_level


class UserRole(Base, UUIDMixin):
    """Role assignment ledger entry.

    ``scope_key`` holds ``"global"`` or the organization id, so the global
    scope participates in the uniqueness constraint like any other value.
    """

    __tablename__ = "user_roles"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE")
    )
    scope_key: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    assigned_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "role_id", "scope_key", name="uq_user_roles_user_role_scope"
        ),
        Index("idx_user_roles_org_role", "organization_id", "role_id"),
    )


# =============================================================================
# EMOCIOGRAMA MODELS
# =============================================================================


class EmotionCategory(Base, UUIDMixin, TimestampMixin):
    """What the check-in is about (work, personal, health...)."""

    __tablename__ = "emotion_categories"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class EmociogramaSubmission(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """A single emotional check-in."""

    __tablename__ = "emociograma_submissions"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    emotion_level: Mapped[int] = mapped_column(Integer, nullable=False)
    emotion_emoji: Mapped[str] = mapped_column(String(10), nullable=False)
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("emotion_categories.id"), nullable=False
    )
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    comment_flagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    department: Mapped[str | None] = mapped_column(String(100))
    team: Mapped[str | None] = mapped_column(String(100))

    __table_args__ = (
        CheckConstraint(
            "emotion_level BETWEEN 1 AND 10", name="emotion_level_range"
        ),
        Index("idx_submissions_org_submitted", "organization_id", "submitted_at"),
        Index("idx_submissions_user", "user_id", "submitted_at"),
    )


class EmociogramaAlert(Base, UUIDMixin, TimestampMixin):
    """Alert raised when a submission crosses the organization threshold."""

    __tablename__ = "emociograma_alerts"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("emociograma_submissions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    # Stored as plain strings matching AlertType / AlertSeverity values
    alert_type: Mapped[str] = mapped_column(
        String(30), default=AlertType.THRESHOLD_EXCEEDED.value, nullable=False
    )
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Resolution
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column()
    resolved_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    resolution_notes: Mapped[str | None] = mapped_column(Text)

    # Notification tracking
    notified_users: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    notification_sent_at: Mapped[datetime | None] = mapped_column()
    notification_status: Mapped[str | None] = mapped_column(String(20))

    __table_args__ = (
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')", name="valid_severity"
        ),
        CheckConstraint(
            "alert_type IN ('threshold_exceeded', 'pattern_detected')",
            name="valid_alert_type",
        ),
        Index("idx_alerts_org_resolved", "organization_id", "is_resolved"),
        Index("idx_alerts_org_created", "organization_id", "created_at"),
    )


# =============================================================================
# AUDIT MODEL
# =============================================================================


class AuditLog(Base, UUIDMixin):
    """Append-only audit trail, hash-chained per organization."""

    __tablename__ = "audit_log"

    organization_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL")
    )
    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    action: Mapped[AuditAction] = mapped_column(
        Enum(
            AuditAction,
            name="audit_action",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[UUID] = mapped_column(nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    previous_hash: Mapped[str | None] = mapped_column(String(64))
    entry_hash: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        Index("idx_audit_log_org_time", "organization_id", "created_at"),
        Index("idx_audit_log_resource", "resource_type", "resource_id"),
        Index("idx_audit_log_action", "action", "created_at"),
    )


class AuditChainHead(Base):
    """Latest entry hash of one audit chain.

    ``scope_key`` is ``"global"`` or the organization id. Appends move the
    head with a compare-and-set, so two writers can never link to the same
    predecessor.
    """

    __tablename__ = "audit_chain_heads"

    scope_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    head_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )
