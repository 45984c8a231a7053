"""Base schemas and common types for the PsicoZen API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class PsicoZenBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime
    updated_at: datetime | None = None


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(PsicoZenBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(PsicoZenBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []


# =============================================================================
# COMMON REFERENCE SCHEMAS
# =============================================================================


class UserRef(PsicoZenBaseModel):
    """Minimal user reference for embedding in responses."""

    id: UUID
    first_name: str
    last_name: str | None = None
    email: EmailStr
