"""PsicoZen API Schemas.

Schemas are organized by domain:
- base: Common types, errors, references
- organizations: Organizations and their settings
- roles: Role assignments
- emociograma: Submissions, categories and alerts
- audit: Audit log entries and chain verification
- reports: Aggregated reports, analytics and personal data exports
"""

from .audit import AuditLogEntry, AuditLogResponse, ChainVerificationResult
from .base import (
    ErrorDetail,
    ErrorResponse,
    PsicoZenBaseModel,
    TimestampMixin,
    UserRef,
)
from .emociograma import (
    AlertDashboardResponse,
    AlertListResponse,
    AlertResponse,
    AlertStatisticsResponse,
    BulkResolveRequest,
    BulkResolveResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ResolveAlertRequest,
    SeverityCounts,
    SubmissionCreate,
    SubmissionResponse,
    SubmitResponse,
    TeamSubmissionsResponse,
)
from .organizations import (
    OrganizationCreate,
    OrganizationResponse,
    OrganizationSettings,
    OrganizationSettingsUpdate,
)
from .reports import (
    AggregatedReportResponse,
    AnalyticsResponse,
    DataOperationResponse,
    UserDataExportResponse,
)
from .roles import RoleAssignmentRequest, RoleAssignmentResponse, UserRolesResponse

__all__ = [
    # Base
    "PsicoZenBaseModel",
    "TimestampMixin",
    "ErrorDetail",
    "ErrorResponse",
    "UserRef",
    # Audit
    "AuditLogEntry",
    "AuditLogResponse",
    "ChainVerificationResult",
    # Organizations
    "OrganizationCreate",
    "OrganizationResponse",
    "OrganizationSettings",
    "OrganizationSettingsUpdate",
    # Roles
    "RoleAssignmentRequest",
    "RoleAssignmentResponse",
    "UserRolesResponse",
    # Emociograma
    "SubmissionCreate",
    "SubmissionResponse",
    "SubmitResponse",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryResponse",
    "TeamSubmissionsResponse",
    "AlertResponse",
    "AlertListResponse",
    "SeverityCounts",
    "AlertStatisticsResponse",
    "AlertDashboardResponse",
    "ResolveAlertRequest",
    "BulkResolveRequest",
    "BulkResolveResponse",
    # Reports
    "AggregatedReportResponse",
    "AnalyticsResponse",
    "UserDataExportResponse",
    "DataOperationResponse",
]
