"""
Notification Service

In-app notifications plus templated email dispatch. Every email attempt is
recorded in ``email_notification_logs`` with its final status.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from jinja2 import TemplateError
from sqlalchemy.orm import Session

from compliance.db import models
from compliance.db.models.base import now_utc
from compliance.db.repositories import notifications as repo_notifications
from compliance.errors import NotFound

logger = logging.getLogger(__name__)

# Notification types (single source of truth)
TYPE_DEADLINE_REMINDER = 'deadline_reminder'
TYPE_ESCALATION = 'escalation'
TYPE_TEMPLATE_UPDATE = 'template_update'
TYPE_PAYMENT_FAILED = 'payment_failed'
TYPE_INVITATION = 'invitation'
TYPE_ROLE_CHANGED = 'role_changed'

# Template name constants (match actual template file names)
TEMPLATE_DEADLINE_ALERT = 'deadline_alert'
TEMPLATE_ESCALATION = 'alert_escalation'
TEMPLATE_ORG_INVITATION = 'org_invitation'
TEMPLATE_ONBOARDING_REMINDER = 'onboarding_reminder'
TEMPLATE_TRIAL_WARNING = 'trial_warning'
TEMPLATE_TEMPLATE_UPDATE = 'template_update'
TEMPLATE_TEST_ALERT = 'test_alert'


class NotificationService:
    """Service class for handling all notification operations."""

    def __init__(self, db: Session, email_service: Optional[Any] = None):
        self.db = db
        # Factory is imported lazily so tests can patch
        # compliance.services.transactional_email_service.get_transactional_email_service.
        if email_service is not None:
            self.email_service = email_service
        else:
            from compliance.services import transactional_email_service
            self.email_service = transactional_email_service.get_transactional_email_service()

    # === In-app notifications ===

    def notify(
        self,
        *,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> models.Notification:
        return repo_notifications.create_notification(
            self.db,
            organization_id=organization_id,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
        )

    def list(self, user_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None, limit: int = 50) -> List[models.Notification]:
        return repo_notifications.list_notifications(self.db, user_id, organization_id, limit=limit)

    def unread(self, user_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None) -> List[models.Notification]:
        return repo_notifications.list_notifications(self.db, user_id, organization_id, unread_only=True)

    def unread_count(self, user_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None) -> int:
        return repo_notifications.count_unread(self.db, user_id, organization_id)

    def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> models.Notification:
        notification = repo_notifications.get_notification(self.db, notification_id, user_id)
        if notification is None:
            raise NotFound("Notification not found")
        if notification.read_at is None:
            notification.read_at = now_utc()
        self.db.commit()
        return notification

    def mark_all_read(self, user_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None) -> int:
        count = repo_notifications.mark_all_read(self.db, user_id, organization_id, now_utc())
        self.db.commit()
        return count

    def remove(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        notification = repo_notifications.get_notification(self.db, notification_id, user_id)
        if notification is None:
            raise NotFound("Notification not found")
        repo_notifications.delete_notification(self.db, notification)
        self.db.commit()

    # === Email ===

    async def send_email_notification(
        self,
        email_log: models.EmailNotificationLog,
        template_name: str,
        template_context: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Render and send one email, recording the outcome on ``email_log``."""
        try:
            html_content, text_content = self.email_service.render_template(template_name, template_context)
        except TemplateError as e:
            result: Dict[str, Any] = {'success': False, 'error': f"Template rendering failed for {template_name}: {e}"}
        else:
            result = await self.email_service.send_email(
                to_email=email_log.email_address,
                subject=email_log.subject,
                html_content=html_content,
                text_content=text_content,
            )

        email_log.provider = result.get('provider')
        if result.get('success'):
            email_log.status = 'sent'
            email_log.sent_at = now_utc()
            email_log.provider_message_id = result.get('message_id')
        else:
            email_log.status = 'failed'
            email_log.error_message = result.get('error') or 'Unknown error'
        self.db.flush()
        return {
            'success': bool(result.get('success')),
            'email_log_id': email_log.id,
            'message_id': result.get('message_id'),
            'error': result.get('error'),
        }

    def send_email(
        self,
        *,
        template_name: str,
        to_email: str,
        subject: str,
        context: Dict[str, Any],
        event_type: str,
        organization_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """Synchronous entry point used by services and scheduled jobs."""
        email_log = repo_notifications.create_email_log(
            self.db,
            email_address=to_email,
            event_type=event_type,
            subject=subject,
            organization_id=organization_id,
            user_id=user_id,
        )
        return asyncio.run(self.send_email_notification(email_log, template_name, context))
