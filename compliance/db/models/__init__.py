"""
Domain-split SQLAlchemy models.

Exposes `Base`, `now_utc` and every ORM class so callers can keep using
`from compliance.db import models` and `models.Deadline`.
"""

from .base import Base, now_utc  # re-export

# Domain models
from .users import User
from .organizations import Organization, OrganizationMembership, OrganizationInvitation
from .templates import IndustryTemplate, TemplateImport
from .deadlines import Deadline, DeadlineAuditLog
from .alerts import Alert, AlertPreference, AlertAuditLog
from .notifications import Notification, EmailNotificationLog
from .documents import Document, DocumentAccessLog
from .profiles import OrganizationProfile
from .forms import FormTemplate, FormFill
from .billing import Subscription, Usage, TrialWarning
from .audit import AuditLog
from .onboarding import OnboardingProgress

__all__ = [
    # base
    "Base",
    "now_utc",
    # users/orgs
    "User",
    "Organization",
    "OrganizationMembership",
    "OrganizationInvitation",
    # templates
    "IndustryTemplate",
    "TemplateImport",
    # deadlines/alerts
    "Deadline",
    "DeadlineAuditLog",
    "Alert",
    "AlertPreference",
    "AlertAuditLog",
    # notifications
    "Notification",
    "EmailNotificationLog",
    # documents/forms
    "Document",
    "DocumentAccessLog",
    "OrganizationProfile",
    "FormTemplate",
    "FormFill",
    # billing
    "Subscription",
    "Usage",
    "TrialWarning",
    # activity/onboarding
    "AuditLog",
    "OnboardingProgress",
]
