"""Organization schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import OrganizationType
from .base import PsicoZenBaseModel, TimestampMixin


class OrganizationSettings(PsicoZenBaseModel):
    """Per-organization configuration stored in ``organizations.settings``."""

    timezone: str = "America/Sao_Paulo"
    locale: str = "pt-BR"
    emociograma_enabled: bool = True
    alert_threshold: int = Field(default=6, ge=1, le=10)
    data_retention_days: int = Field(default=365, ge=1, le=3650)
    anonymity_default: bool = False


class OrganizationSettingsUpdate(PsicoZenBaseModel):
    """Partial settings update; omitted keys keep their current value."""

    timezone: str | None = None
    locale: str | None = None
    emociograma_enabled: bool | None = None
    alert_threshold: int | None = Field(default=None, ge=1, le=10)
    data_retention_days: int | None = Field(default=None, ge=1, le=3650)
    anonymity_default: bool | None = None


class OrganizationCreate(PsicoZenBaseModel):
    """Schema for creating an organization."""

    name: str = Field(..., min_length=3, max_length=100)
    type: OrganizationType
    parent_id: UUID | None = None
    settings: OrganizationSettingsUpdate | None = None


class OrganizationResponse(PsicoZenBaseModel, TimestampMixin):
    """Organization response."""

    id: UUID
    name: str
    slug: str
    type: OrganizationType
    parent_id: UUID | None = None
    settings: OrganizationSettings
    is_active: bool
    deleted_at: datetime | None = None
