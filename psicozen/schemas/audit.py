"""Pydantic schemas for the audit log."""

from datetime import datetime
from uuid import UUID

from ..models import AuditAction
from .base import PsicoZenBaseModel


class AuditLogEntry(PsicoZenBaseModel):
    """A single audit log entry."""

    id: UUID
    organization_id: UUID | None = None
    user_id: UUID | None = None  # None for system actions
    action: AuditAction
    resource_type: str
    resource_id: UUID
    details: dict
    created_at: datetime

    # Chain integrity
    previous_hash: str | None = None
    entry_hash: str | None = None


class AuditLogResponse(PsicoZenBaseModel):
    items: list[AuditLogEntry]
    total: int
    limit: int
    offset: int


class ChainVerificationResult(PsicoZenBaseModel):
    """Result of audit chain integrity verification."""

    is_valid: bool
    verified_entries: int
    broken_at_id: UUID | None = None
    verification_timestamp: datetime
