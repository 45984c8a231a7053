"""Business logic services for PsicoZen."""

from .alert_engine import (
    AlertAlreadyResolvedError,
    AlertDashboard,
    AlertEngine,
    AlertNotFoundError,
    AlertStatistics,
    classify_severity,
)
from .audit import AuditChainConflictError, AuditService, ChainVerification
from .export import ExportFormat, ExportResult, generate_export
from .notifications import (
    EmailDeliveryError,
    EmailMessage,
    EmailSender,
    LoggingEmailSender,
    ResendEmailSender,
    get_email_sender,
)
from .organizations import (
    OrganizationConflictError,
    OrganizationNotFoundError,
    OrganizationService,
    OrganizationValidationError,
)
from .reports import AggregatedReport, Analytics, ReportService
from .roles import (
    RoleAssignmentConflictError,
    RoleDirectory,
    RoleNotFoundError,
    RoleScope,
    RoleScopeError,
    UserNotFoundError,
)
from .submissions import (
    CategoryConflictError,
    CategoryNotFoundError,
    EmociogramaDisabledError,
    SubmissionAccessDeniedError,
    SubmissionNotFoundError,
    SubmissionResult,
    SubmissionService,
    SubmissionValidationError,
    SubmitInput,
)

__all__ = [
    # Alerts
    "AlertEngine",
    "AlertStatistics",
    "AlertDashboard",
    "AlertNotFoundError",
    "AlertAlreadyResolvedError",
    "classify_severity",
    # Audit
    "AuditService",
    "AuditChainConflictError",
    "ChainVerification",
    # Export
    "ExportFormat",
    "ExportResult",
    "generate_export",
    # Notifications
    "EmailSender",
    "EmailMessage",
    "EmailDeliveryError",
    "ResendEmailSender",
    "LoggingEmailSender",
    "get_email_sender",
    # Organizations
    "OrganizationService",
    "OrganizationNotFoundError",
    "OrganizationConflictError",
    "OrganizationValidationError",
    # Reports
    "ReportService",
    "AggregatedReport",
    "Analytics",
    # Roles
    "RoleDirectory",
    "RoleScope",
    "RoleNotFoundError",
    "RoleAssignmentConflictError",
    "RoleScopeError",
    "UserNotFoundError",
    # Submissions
    "SubmissionService",
    "SubmitInput",
    "SubmissionResult",
    "SubmissionNotFoundError",
    "SubmissionValidationError",
    "EmociogramaDisabledError",
    "SubmissionAccessDeniedError",
    "CategoryNotFoundError",
    "CategoryConflictError",
]
