"""
Alert scheduling, delivery and lifecycle.

Alerts are rows scheduled ahead of a deadline, one per (alert day, channel).
The scheduler job picks up due rows every 15 minutes and hands each one to
``process_alert``, which delivers through the matching channel and either
marks it sent or schedules a retry. After three retries the alert is
escalated to the preference's escalation contacts.

Scheduling helpers (``schedule_alerts_for_deadline``, ``cancel_pending_alerts``,
``reschedule_alerts``) only flush; the deadline service owns the commit.
"""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import crud, models, schemas
from compliance.db.models.base import now_utc
from compliance.db.repositories import alerts as repo_alerts
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.db.repositories import organizations as repo_orgs
from compliance.errors import Forbidden, InvalidInput, InvalidState, NotFound
from compliance.services import access, billing_service
from compliance.services.sms_service import SmsService
from compliance.utils import urls
from compliance.utils.dates import format_relative_date
from compliance.utils.feature_flags import sms_alerts_enabled
from compliance.utils.role_permissions import has_permission
from compliance.utils.urgency import (
    CHANNEL_EMAIL,
    CHANNEL_IN_APP,
    CHANNEL_PUSH,
    CHANNEL_SMS,
    channels_for_urgency,
    default_preferences,
    get_urgency_from_days,
)

logger = logging.getLogger(__name__)

STATUS_SCHEDULED = "scheduled"
STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_FAILED = "failed"
STATUS_ACKNOWLEDGED = "acknowledged"

ACKNOWLEDGE_SOURCES = ("email_link", "sms_reply", "in_app_button")

MAX_RETRY_ATTEMPTS = 3
RETRY_DELAYS = (timedelta(minutes=15), timedelta(minutes=30), timedelta(minutes=45))
PROCESSING_WINDOW = timedelta(minutes=15)

_PREFERENCE_FIELDS = tuple(default_preferences().keys())


# === Preferences ===

def _preference_dict(pref: Optional[models.AlertPreference]) -> Dict[str, Any]:
    if pref is None:
        return default_preferences()
    return {field: getattr(pref, field) for field in _PREFERENCE_FIELDS}


def resolve_preferences(db: Session, organization_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> Dict[str, Any]:
    """User preference, then the org-wide row, then built-in defaults."""
    pref = None
    if user_id is not None:
        pref = repo_alerts.get_preference(db, organization_id, user_id)
    if pref is None:
        pref = repo_alerts.get_preference(db, organization_id, None)
    return _preference_dict(pref)


def get_preferences(
    db: Session,
    organization_id: uuid.UUID,
    current_user_id: uuid.UUID,
    user_id: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    access.require_membership(db, organization_id, current_user_id)
    prefs = resolve_preferences(db, organization_id, user_id)
    prefs.update(organization_id=organization_id, user_id=user_id)
    return prefs


def save_preferences(
    db: Session,
    organization_id: uuid.UUID,
    current_user_id: uuid.UUID,
    payload: schemas.AlertPreferenceUpdate,
) -> models.AlertPreference:
    # Members may edit their own row; org-wide and other users' rows need alerts:manage
    if payload.user_id is None or payload.user_id != current_user_id:
        access.require_permission(db, organization_id, current_user_id, "alerts:manage")
    else:
        access.require_membership(db, organization_id, current_user_id)

    values = payload.model_dump(exclude={"user_id"}, mode="json")
    pref = repo_alerts.upsert_preference(db, organization_id, payload.user_id, values)

    from compliance.services import onboarding_service
    onboarding_service.mark_step_complete(db, organization_id, "alerts_configured")

    db.commit()
    db.refresh(pref)
    return pref


# === Scheduling ===

def _sms_allowed(db: Session, organization_id: uuid.UUID) -> bool:
    return sms_alerts_enabled() and billing_service.plan_allows_sms(db, organization_id)


def schedule_alerts_for_deadline(
    db: Session,
    deadline: models.Deadline,
    now: Optional[datetime] = None,
) -> List[models.Alert]:
    """Create scheduled alerts for every future alert day of ``deadline``."""
    now = now or now_utc()
    if deadline.completed_at is not None or deadline.deleted_at is not None:
        return []

    prefs = resolve_preferences(db, deadline.organization_id, deadline.assigned_to)
    alert_days = deadline.alert_days or prefs["alert_days"]
    sms_ok = _sms_allowed(db, deadline.organization_id)

    created: List[models.Alert] = []
    for days_before in sorted(set(alert_days), reverse=True):
        scheduled_for = deadline.due_date - timedelta(days=days_before)
        if scheduled_for < now:
            continue
        urgency = get_urgency_from_days(days_before)
        for channel in channels_for_urgency(prefs, urgency):
            if channel == CHANNEL_SMS and not sms_ok:
                continue
            alert = repo_alerts.create_alert(
                db,
                deadline_id=deadline.id,
                organization_id=deadline.organization_id,
                user_id=deadline.assigned_to,
                scheduled_for=scheduled_for,
                channel=channel,
                urgency=urgency,
                status=STATUS_SCHEDULED,
            )
            repo_alerts.add_audit(
                db, alert, "scheduled",
                {"days_before": days_before, "channel": channel, "urgency": urgency},
            )
            created.append(alert)

    logger.debug("Scheduled %s alerts for deadline %s", len(created), deadline.id)
    return created


def cancel_pending_alerts(db: Session, deadline_id: uuid.UUID, reason: str) -> int:
    pending = repo_alerts.list_by_deadline(db, deadline_id, status=STATUS_SCHEDULED)
    for alert in pending:
        repo_alerts.add_audit(db, alert, "cancelled", {"reason": reason})
        repo_alerts.delete_alert(db, alert)
    return len(pending)


def reschedule_alerts(db: Session, deadline: models.Deadline, now: Optional[datetime] = None) -> List[models.Alert]:
    cancel_pending_alerts(db, deadline.id, reason="rescheduled")
    return schedule_alerts_for_deadline(db, deadline, now=now)


# === State transitions ===

def mark_sent(
    db: Session,
    alert: models.Alert,
    now: Optional[datetime] = None,
    provider_message_id: Optional[str] = None,
) -> models.Alert:
    now = now or now_utc()
    alert.status = STATUS_SENT
    alert.sent_at = now
    alert.error_message = None
    alert.provider_message_id = provider_message_id or None
    repo_alerts.add_audit(db, alert, "sent", {"channel": alert.channel})
    billing_service.increment_usage(db, alert.organization_id, "alerts_sent", now=now)
    audit.log(
        db,
        action=audit.AuditAction.ALERT_SENT,
        target_type=audit.AuditTarget.ALERT,
        target_id=alert.id,
        organization_id=alert.organization_id,
        metadata={"channel": alert.channel, "urgency": alert.urgency, "deadline_id": str(alert.deadline_id)},
    )
    return alert


def mark_delivered(db: Session, alert: models.Alert, now: Optional[datetime] = None) -> models.Alert:
    alert.status = STATUS_DELIVERED
    alert.delivered_at = now or now_utc()
    repo_alerts.add_audit(db, alert, "delivered")
    return alert


def mark_failed(db: Session, alert: models.Alert, error: str) -> models.Alert:
    alert.status = STATUS_FAILED
    alert.error_message = error
    alert.retry_count = (alert.retry_count or 0) + 1
    repo_alerts.add_audit(db, alert, "failed", {"error": error, "retry_count": alert.retry_count})
    return alert


def _get_org_alert(db: Session, organization_id: uuid.UUID, alert_id: uuid.UUID) -> models.Alert:
    alert = repo_alerts.get_alert(db, alert_id, organization_id)
    if alert is None:
        raise NotFound("Alert not found", alert_id=str(alert_id))
    return alert


def _require_alert_access(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID, alert: models.Alert) -> None:
    _, role = access.require_membership(db, organization_id, user_id)
    if has_permission(role, "alerts:read"):
        return
    if alert.user_id is not None and alert.user_id == user_id and has_permission(role, "alerts:read:own"):
        return
    raise Forbidden("Permission denied: alerts:read", permission="alerts:read", role=role)


def get_alert(db: Session, organization_id: uuid.UUID, alert_id: uuid.UUID, user_id: uuid.UUID) -> models.Alert:
    alert = _get_org_alert(db, organization_id, alert_id)
    _require_alert_access(db, organization_id, user_id, alert)
    return alert


def acknowledge(
    db: Session,
    organization_id: uuid.UUID,
    alert_id: uuid.UUID,
    user_id: uuid.UUID,
    via: str = "in_app_button",
    now: Optional[datetime] = None,
) -> models.Alert:
    if via not in ACKNOWLEDGE_SOURCES:
        raise InvalidInput(f"Invalid acknowledgement source '{via}'", allowed=list(ACKNOWLEDGE_SOURCES))
    alert = get_alert(db, organization_id, alert_id, user_id)
    alert.status = STATUS_ACKNOWLEDGED
    alert.acknowledged_at = now or now_utc()
    alert.acknowledged_via = via
    repo_alerts.add_audit(db, alert, "acknowledged", {"via": via, "user_id": str(user_id)})
    audit.log(
        db,
        action=audit.AuditAction.ALERT_ACKNOWLEDGED,
        target_type=audit.AuditTarget.ALERT,
        target_id=alert.id,
        actor_user_id=user_id,
        organization_id=organization_id,
        metadata={"via": via},
    )
    db.commit()
    return alert


def snooze(
    db: Session,
    organization_id: uuid.UUID,
    alert_id: uuid.UUID,
    user_id: uuid.UUID,
    until: datetime,
) -> models.Alert:
    alert = get_alert(db, organization_id, alert_id, user_id)
    deadline = repo_deadlines.get_deadline(db, organization_id, alert.deadline_id)
    if deadline is not None and until > deadline.due_date:
        raise InvalidInput("Cannot snooze past the deadline due date")
    alert.snoozed_until = until
    alert.scheduled_for = until
    alert.status = STATUS_SCHEDULED
    repo_alerts.add_audit(db, alert, "snoozed", {"until": until.isoformat()})
    db.commit()
    return alert


def unsnooze(db: Session, organization_id: uuid.UUID, alert_id: uuid.UUID, user_id: uuid.UUID) -> models.Alert:
    alert = get_alert(db, organization_id, alert_id, user_id)
    alert.snoozed_until = None
    repo_alerts.add_audit(db, alert, "unsnoozed")
    db.commit()
    return alert


def retry(
    db: Session,
    organization_id: uuid.UUID,
    alert_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> models.Alert:
    access.require_permission(db, organization_id, user_id, "alerts:manage")
    alert = _get_org_alert(db, organization_id, alert_id)
    if alert.status != STATUS_FAILED:
        raise InvalidState("Only failed alerts can be retried", status=alert.status)
    alert.status = STATUS_SCHEDULED
    alert.scheduled_for = now or now_utc()
    alert.error_message = None
    repo_alerts.add_audit(db, alert, "scheduled", {"retry": True, "manual": True})
    db.commit()
    return alert


# === Queries ===

def alert_history(db: Session, organization_id: uuid.UUID, alert_id: uuid.UUID, user_id: uuid.UUID):
    access.require_membership(db, organization_id, user_id)
    entries = repo_alerts.list_audit(db, alert_id)
    return [entry for entry in entries if entry.organization_id == organization_id]


def list_by_deadline(db: Session, organization_id: uuid.UUID, deadline_id: uuid.UUID, user_id: uuid.UUID):
    _, role = access.require_membership(db, organization_id, user_id)
    if repo_deadlines.get_deadline(db, organization_id, deadline_id) is None:
        raise NotFound("Deadline not found", deadline_id=str(deadline_id))
    alerts = repo_alerts.list_by_deadline(db, deadline_id)
    if has_permission(role, "alerts:read"):
        return alerts
    if has_permission(role, "alerts:read:own"):
        return [alert for alert in alerts if alert.user_id == user_id]
    raise Forbidden("Permission denied: alerts:read", permission="alerts:read", role=role)


def list_by_org(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    status: Optional[str] = None,
    limit: int = 100,
):
    _, role = access.require_membership(db, organization_id, user_id)
    if has_permission(role, "alerts:read"):
        return repo_alerts.list_by_org(db, organization_id, status=status, limit=limit)
    if has_permission(role, "alerts:read:own"):
        return repo_alerts.list_by_org(db, organization_id, status=status, user_id=user_id, limit=limit)
    raise Forbidden("Permission denied: alerts:read", permission="alerts:read", role=role)


def failed_alerts(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID):
    access.require_permission(db, organization_id, user_id, "alerts:read")
    return repo_alerts.list_failed(db, organization_id)


# === Delivery ===

def _recipient_email(db: Session, organization: models.Organization, alert: models.Alert, prefs: Dict[str, Any]) -> Optional[str]:
    if prefs.get("email_override"):
        return prefs["email_override"]
    if alert.user_id is not None:
        user = crud.get_user(db, alert.user_id)
        if user is not None:
            return user.email
    owner = crud.get_user(db, organization.owner_user_id)
    return owner.email if owner else None


def _deliver(
    db: Session,
    alert: models.Alert,
    deadline: models.Deadline,
    organization: models.Organization,
    prefs: Dict[str, Any],
    notifier,
    sms: SmsService,
    now: datetime,
) -> Dict[str, Any]:
    due_text = deadline.due_date.strftime("%B %d, %Y")
    relative = format_relative_date(deadline.due_date, now)

    if alert.channel == CHANNEL_EMAIL:
        to_email = _recipient_email(db, organization, alert, prefs)
        if not to_email:
            return {"success": False, "error": "No email recipient for alert"}
        return notifier.send_email(
            template_name="deadline_alert",
            to_email=to_email,
            subject=f"[{alert.urgency.upper()}] Deadline Reminder: {deadline.title}",
            context={
                "organization_name": organization.name,
                "deadline_title": deadline.title,
                "description": deadline.description,
                "category": deadline.category,
                "due_date": due_text,
                "relative_due": relative,
                "urgency": alert.urgency,
                "deadline_url": urls.build_deadline_link(deadline.id),
                "acknowledge_url": urls.build_alert_ack_link(alert.id),
            },
            organization_id=organization.id,
            user_id=alert.user_id,
            event_type="deadline_alert",
        )

    if alert.channel == CHANNEL_SMS:
        body = f"[{alert.urgency.upper()}] {deadline.title} is due {due_text}. Reply DONE to acknowledge."
        return sms.send_sms(prefs.get("phone_number"), body)

    if alert.channel == CHANNEL_IN_APP:
        recipient = alert.user_id or organization.owner_user_id
        notifier.notify(
            organization_id=organization.id,
            user_id=recipient,
            type="deadline_reminder",
            title=f"Deadline Reminder: {deadline.title}",
            message=f"Due on {due_text}. Priority: {alert.urgency}",
            data={"alert_id": str(alert.id), "deadline_id": str(deadline.id), "urgency": alert.urgency},
        )
        return {"success": True}

    if alert.channel == CHANNEL_PUSH:
        return {"success": True}

    return {"success": False, "error": f"Unsupported channel '{alert.channel}'"}


def _escalate(db: Session, alert: models.Alert, deadline: models.Deadline, prefs: Dict[str, Any], notifier) -> None:
    contacts = [str(contact) for contact in prefs.get("escalation_contacts") or []]
    repo_alerts.add_audit(
        db, alert, "escalated",
        {"escalation_contacts": contacts, "retry_count": alert.retry_count},
    )
    if not prefs.get("escalation_enabled", True):
        return
    for contact in contacts:
        contact_id = uuid.UUID(contact)
        notifier.notify(
            organization_id=alert.organization_id,
            user_id=contact_id,
            type="escalation",
            title="Alert Escalation",
            message=f"The {alert.channel} alert for '{deadline.title}' failed after {alert.retry_count} attempts and requires attention.",
            data={"alert_id": str(alert.id), "original_user_id": str(alert.user_id) if alert.user_id else None},
        )
    logger.warning("Alert %s escalated to %s contact(s)", alert.id, len(contacts))


def process_alert(
    db: Session,
    alert_id: uuid.UUID,
    now: Optional[datetime] = None,
    notifier=None,
    sms: Optional[SmsService] = None,
) -> Dict[str, Any]:
    """Deliver one scheduled alert; failed deliveries are retried, then escalated."""
    from compliance.services.notification_service import NotificationService

    now = now or now_utc()
    alert = repo_alerts.get_alert(db, alert_id)
    if alert is None:
        return {"success": False, "error": "Alert not found"}
    if alert.status != STATUS_SCHEDULED:
        return {"success": False, "error": "Alert not in scheduled status"}
    deadline = repo_deadlines.get_deadline(db, alert.organization_id, alert.deadline_id)
    organization = repo_orgs.get_organization(db, alert.organization_id)
    if deadline is None or organization is None:
        return {"success": False, "error": "Deadline not found"}

    notifier = notifier or NotificationService(db)
    sms = sms or SmsService()
    prefs = resolve_preferences(db, alert.organization_id, alert.user_id)

    result = _deliver(db, alert, deadline, organization, prefs, notifier, sms, now)
    if result.get("success"):
        mark_sent(db, alert, now=now, provider_message_id=result.get("message_id"))
        if alert.channel == CHANNEL_IN_APP:
            # The notification row is the delivery
            mark_delivered(db, alert, now=now)
        db.commit()
        return {"success": True}

    error = result.get("error") or "Unknown error"
    attempts = alert.retry_count or 0
    mark_failed(db, alert, error)
    if attempts < MAX_RETRY_ATTEMPTS:
        retry_at = now + RETRY_DELAYS[min(attempts, len(RETRY_DELAYS) - 1)]
        alert.status = STATUS_SCHEDULED
        alert.scheduled_for = retry_at
        repo_alerts.add_audit(db, alert, "scheduled", {"retry": True, "retry_at": retry_at.isoformat()})
        logger.info("Alert %s failed (%s); retry %s at %s", alert.id, error, attempts + 1, retry_at)
    else:
        _escalate(db, alert, deadline, prefs, notifier)
    db.commit()
    return {"success": False, "error": error}


def process_due_alerts(db: Session, now: Optional[datetime] = None, notifier=None, sms=None) -> Dict[str, int]:
    now = now or now_utc()
    due = repo_alerts.list_due(db, now - PROCESSING_WINDOW, now)
    succeeded = 0
    failed = 0
    for alert in due:
        result = process_alert(db, alert.id, now=now, notifier=notifier, sms=sms)
        if result["success"]:
            succeeded += 1
        else:
            failed += 1
    summary = {"processed": len(due), "succeeded": succeeded, "failed": failed}
    logger.info("Processed due alerts: %s", summary)
    return summary


def record_delivery_status(
    db: Session,
    provider_message_id: str,
    delivered: bool,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[models.Alert]:
    """Apply a provider delivery callback to the alert it sent.

    Unknown message ids are ignored. Only sent alerts move to delivered;
    a bounce after delivery still marks the alert failed so it can be
    retried by hand.
    """
    alert = repo_alerts.get_by_provider_message_id(db, provider_message_id)
    if alert is None:
        logger.debug("Delivery status for unknown message %s ignored", provider_message_id)
        return None
    if delivered:
        if alert.status != STATUS_SENT:
            return alert
        mark_delivered(db, alert, now=now)
    else:
        if alert.status not in (STATUS_SENT, STATUS_DELIVERED):
            return alert
        mark_failed(db, alert, error or "Delivery failed")
        logger.warning("Provider reported alert %s undelivered: %s", alert.id, alert.error_message)
    db.commit()
    return alert


def _phone_digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def send_test_alert(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    channel: str = "email",
    phone_number: Optional[str] = None,
    notifier=None,
    sms: Optional[SmsService] = None,
) -> Dict[str, Any]:
    from compliance.services.notification_service import NotificationService

    org, _ = access.require_membership(db, organization_id, user_id)
    if channel not in ("email", "email_sms"):
        raise InvalidInput(f"Invalid test channel '{channel}'")
    if channel == "email_sms" and len(_phone_digits(phone_number)) != 10:
        raise InvalidInput("Phone number must have 10 digits")

    user = crud.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    notifier = notifier or NotificationService(db)

    results: Dict[str, Any] = {
        "email": notifier.send_email(
            template_name="test_alert",
            to_email=user.email,
            subject="Test alert from Compliance Calendar",
            context={"organization_name": org.name, "phone_number": phone_number if channel == "email_sms" else None},
            organization_id=org.id,
            user_id=user_id,
            event_type="test_alert",
        )
    }
    if channel == "email_sms":
        sms = sms or SmsService()
        results["sms"] = sms.send_sms(phone_number, f"Test alert for {org.name}: SMS alerts are working.")

    audit.log(
        db,
        action=audit.AuditAction.ALERT_SENT,
        target_type=audit.AuditTarget.ALERT,
        actor_user_id=user_id,
        organization_id=org.id,
        metadata={"is_test": True, "channel": channel},
    )
    db.commit()
    success = all(result.get("success") for result in results.values())
    return {"success": success, "results": results}
