"""
Domain-split Pydantic schemas with a single aggregator.

Routers and services import ``from compliance.db import schemas`` and use
``schemas.DeadlineCreate`` and friends.
"""

# Import order: define base/simple types first to satisfy forward refs
from .users import UserBase, UserCreate, UserUpdate, User
from .organizations import (
    OrganizationSettings,
    OrganizationBase,
    OrganizationCreate,
    OrganizationUpdate,
    Organization,
    OrganizationMember,
    OrganizationMemberRoleUpdate,
    OwnershipTransfer,
    OrganizationInvitationCreate,
    OrganizationInvitation,
)
from .deadlines import (
    RecurrenceRule,
    DeadlineBase,
    DeadlineCreate,
    DeadlineUpdate,
    Deadline,
    DeadlineCompletion,
    DeadlineAuditEntry,
)
from .alerts import (
    Alert,
    AlertPreferenceBase,
    AlertPreferenceUpdate,
    AlertPreference,
    AlertSnooze,
    AlertAcknowledge,
    TestAlertRequest,
    AlertAuditEntry,
    AlertRunSummary,
)
from .notifications import (
    NotificationBase,
    NotificationCreate,
    Notification,
    UnreadCount,
    EmailNotificationLog,
)
from .documents import Document, DocumentUpdate, DocumentAccessEntry, AuditExportRequest
from .profiles import (
    Address,
    Phone,
    Email,
    LicenseNumber,
    Officer,
    OrganizationProfileBase,
    OrganizationProfileUpsert,
    OrganizationProfile,
    ProfileCompletion,
)
from .forms import (
    FormField,
    FieldPosition,
    FieldMapping,
    FormTemplateCreate,
    FormTemplate,
    FormFillRequest,
    FormFillResult,
    FormAnalysisResult,
    FormFill,
)
from .templates import (
    IndustryTemplateSummary,
    IndustryTemplate,
    IndustryCount,
    TemplateImportRequest,
    TemplateImport,
)
from .billing import (
    PlanLimits,
    Plan,
    Subscription,
    SubscriptionDetails,
    SubscriptionChange,
    Usage,
    LimitCheck,
    TrialStatus,
)
from .audits import AuditLogBase, AuditLogCreate, AuditLog, AuditLogPage, AuditUser
from .onboarding import OnboardingProgress, OnboardingStepUpdate, ReminderRunSummary

__all__ = [
    # users
    "UserBase", "UserCreate", "UserUpdate", "User",
    # organizations
    "OrganizationSettings", "OrganizationBase", "OrganizationCreate", "OrganizationUpdate",
    "Organization", "OrganizationMember", "OrganizationMemberRoleUpdate", "OwnershipTransfer",
    "OrganizationInvitationCreate", "OrganizationInvitation",
    # deadlines
    "RecurrenceRule", "DeadlineBase", "DeadlineCreate", "DeadlineUpdate", "Deadline",
    "DeadlineCompletion", "DeadlineAuditEntry",
    # alerts
    "Alert", "AlertPreferenceBase", "AlertPreferenceUpdate", "AlertPreference", "AlertSnooze",
    "AlertAcknowledge", "TestAlertRequest", "AlertAuditEntry", "AlertRunSummary",
    # notifications
    "NotificationBase", "NotificationCreate", "Notification", "UnreadCount", "EmailNotificationLog",
    # documents
    "Document", "DocumentUpdate", "DocumentAccessEntry", "AuditExportRequest",
    # profiles
    "Address", "Phone", "Email", "LicenseNumber", "Officer", "OrganizationProfileBase",
    "OrganizationProfileUpsert", "OrganizationProfile", "ProfileCompletion",
    # forms
    "FormField", "FieldPosition", "FieldMapping", "FormTemplateCreate", "FormTemplate",
    "FormFillRequest", "FormFillResult", "FormAnalysisResult", "FormFill",
    # templates
    "IndustryTemplateSummary", "IndustryTemplate", "IndustryCount", "TemplateImportRequest",
    "TemplateImport",
    # billing
    "PlanLimits", "Plan", "Subscription", "SubscriptionDetails", "SubscriptionChange", "Usage",
    "LimitCheck", "TrialStatus",
    # audit/onboarding
    "AuditLogBase", "AuditLogCreate", "AuditLog", "AuditLogPage", "AuditUser",
    "OnboardingProgress", "OnboardingStepUpdate", "ReminderRunSummary",
]
