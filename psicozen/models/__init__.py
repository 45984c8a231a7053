"""SQLAlchemy ORM Models for PsicoZen."""

from .base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    AlertSeverity,
    AlertType,
    AuditAction,
    NotificationStatus,
    OrganizationType,
    SystemRole,
    TrendDirection,
    # Constants
    EMOTION_EMOJIS,
    MANAGER_TIER_ROLES,
    MAX_EMOTION_LEVEL,
    MIN_EMOTION_LEVEL,
    ROLE_HIERARCHY,
    emoji_for_level,
    # Organization & User
    Organization,
    User,
    # Roles
    Role,
    UserRole,
    # Emociograma
    EmociogramaAlert,
    EmociogramaSubmission,
    EmotionCategory,
    # Audit
    AuditChainHead,
    AuditLog,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    # Enums
    "AlertSeverity",
    "AlertType",
    "AuditAction",
    "NotificationStatus",
    "OrganizationType",
    "SystemRole",
    "TrendDirection",
    # Constants
    "EMOTION_EMOJIS",
    "MANAGER_TIER_ROLES",
    "MAX_EMOTION_LEVEL",
    "MIN_EMOTION_LEVEL",
    "ROLE_HIERARCHY",
    "emoji_for_level",
    # Models
    "Organization",
    "User",
    "Role",
    "UserRole",
    "EmotionCategory",
    "EmociogramaSubmission",
    "EmociogramaAlert",
    "AuditLog",
    "AuditChainHead",
]
