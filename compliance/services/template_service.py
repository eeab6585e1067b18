"""
Industry templates: catalog seeding, browsing, import into an organization
and update notifications.
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import models, schemas
from compliance.db.models.base import now_utc
from compliance.db.repositories import templates as repo_templates
from compliance.errors import Duplicate, Forbidden, InvalidInput, NotFound
from compliance.services import access, deadline_service, onboarding_service
from compliance.utils.dates import ensure_utc
from compliance.utils.feature_flags import template_import_enabled
from compliance.utils.template_dates import calculate_default_due_date, requires_custom_date
from compliance.utils.template_version import describe_version_change, is_valid_semver

logger = logging.getLogger(__name__)

CATALOG_DIR = Path(__file__).resolve().parent.parent / "templates" / "catalog"


def load_catalog(catalog_dir: Optional[Path] = None) -> List[Dict[str, Any]]:
    entries = []
    for path in sorted((catalog_dir or CATALOG_DIR).glob("*.json")):
        with path.open(encoding="utf-8") as fh:
            entries.append(json.load(fh))
    return entries


def seed_templates(db: Session, catalog_dir: Optional[Path] = None) -> int:
    """Upsert every catalog template by slug; returns how many were written."""
    count = 0
    for entry in load_catalog(catalog_dir):
        if not is_valid_semver(entry.get("version")):
            raise ValueError(f"Template {entry.get('slug')} has invalid version {entry.get('version')!r}")
        repo_templates.upsert_template(
            db,
            entry["slug"],
            industry=entry["industry"],
            sub_industry=entry.get("sub_industry"),
            name=entry["name"],
            description=entry.get("description"),
            version=entry["version"],
            deadlines=entry["deadlines"],
            document_categories=entry.get("document_categories"),
            regulatory_references=entry.get("regulatory_references"),
            is_active=entry.get("is_active", True),
        )
        count += 1
    db.commit()
    logger.info("Seeded %s industry templates", count)
    return count


def list_templates(db: Session, industry: Optional[str] = None) -> List[models.IndustryTemplate]:
    return repo_templates.list_templates(db, industry=industry)


def get_template(db: Session, template_id: uuid.UUID) -> models.IndustryTemplate:
    template = repo_templates.get_template(db, template_id)
    if template is None:
        raise NotFound("Template not found", template_id=str(template_id))
    return template


def get_by_slug(db: Session, slug: str) -> models.IndustryTemplate:
    template = repo_templates.get_template_by_slug(db, slug)
    if template is None or not template.is_active:
        raise NotFound("Template not found", slug=slug)
    return template


def industries(db: Session) -> List[Dict[str, Any]]:
    return [
        {"industry": industry, "template_count": count}
        for industry, count in repo_templates.industry_counts(db)
    ]


def get_org_import(
    db: Session,
    organization_id: uuid.UUID,
    template_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Optional[models.TemplateImport]:
    access.require_membership(db, organization_id, user_id)
    return repo_templates.get_import(db, organization_id, template_id)


def _deadline_fields(template: models.IndustryTemplate, entry: Dict[str, Any], due_date: datetime) -> Dict[str, Any]:
    return {
        "title": entry["title"],
        "description": entry.get("description"),
        "category": entry.get("category") or "other",
        "due_date": due_date,
        "recurrence": entry.get("recurrence"),
        "alert_days": entry.get("default_alert_days"),
        "importance": entry.get("importance"),
        "notes": entry.get("notes"),
        "template_id": template.id,
        "template_deadline_id": entry["id"],
        "metadata_json": {
            "regulatory_body": entry.get("regulatory_body"),
            "penalty_range": entry.get("penalty_range"),
        },
    }


def import_template(
    db: Session,
    organization_id: uuid.UUID,
    template_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.TemplateImportRequest,
    now: Optional[datetime] = None,
) -> models.TemplateImport:
    """Create the selected template deadlines in the organization.

    Fixed-date deadlines default to the next occurrence of their month and
    day; anniversary and custom ones need a date in ``custom_dates``.
    """
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:create")
    if not template_import_enabled():
        raise Forbidden("Template import is disabled")
    template = get_template(db, template_id)
    if repo_templates.get_import(db, organization_id, template_id) is not None:
        raise Duplicate("Template already imported", template_id=str(template_id))

    now = now or now_utc()
    entries = template.deadlines or []
    if payload.selected_deadline_ids is not None:
        known = {entry["id"] for entry in entries}
        unknown = sorted(set(payload.selected_deadline_ids) - known)
        if unknown:
            raise InvalidInput("Unknown template deadlines", deadline_ids=unknown)
        selected = set(payload.selected_deadline_ids)
        entries = [entry for entry in entries if entry["id"] in selected]

    planned = []
    for entry in entries:
        custom = payload.custom_dates.get(entry["id"])
        if custom is not None:
            due_date = ensure_utc(custom)
        elif requires_custom_date(entry):
            raise InvalidInput(f"Custom date required for deadline: {entry['title']}", deadline_id=entry["id"])
        else:
            due_date = calculate_default_due_date(entry, now)
        planned.append((entry, due_date))

    created_ids = []
    for entry, due_date in planned:
        deadline = deadline_service.create_deadline_record(
            db, org, user_id, _deadline_fields(template, entry, due_date), now=now
        )
        created_ids.append(str(deadline.id))

    record = repo_templates.create_import(
        db,
        organization_id=organization_id,
        template_id=template.id,
        template_version=template.version,
        imported_deadline_ids=created_ids,
        customizations={k: v.isoformat() for k, v in payload.custom_dates.items()},
        imported_by=user_id,
        imported_at=now,
        last_notified_version=template.version,
    )
    onboarding_service.mark_step_complete(db, organization_id, "template_imported", now=now)
    audit.log(
        db,
        action=audit.AuditAction.TEMPLATE_IMPORTED,
        target_type=audit.AuditTarget.TEMPLATE,
        target_id=template.id,
        target_title=template.name,
        actor_user_id=user_id,
        organization_id=organization_id,
        metadata={"version": template.version, "deadline_count": len(created_ids)},
    )
    db.commit()
    db.refresh(record)
    logger.info("Org %s imported template %s (%s deadlines)", organization_id, template.slug, len(created_ids))
    return record


def check_for_updates(db: Session, notifier=None) -> Dict[str, int]:
    """Tell org owners about templates updated since they were last notified."""
    if notifier is None:
        from compliance.services.notification_service import NotificationService
        notifier = NotificationService(db)

    checked = 0
    notified = 0
    for record in repo_templates.list_imports(db):
        checked += 1
        template = repo_templates.get_template(db, record.template_id)
        last_version = record.last_notified_version or record.template_version
        if template is None or template.version == last_version:
            continue
        org = db.query(models.Organization).filter(models.Organization.id == record.organization_id).first()
        owner = db.query(models.User).filter(models.User.id == org.owner_user_id).first() if org else None
        if owner is None:
            continue
        summary = describe_version_change(last_version, template.version)
        notifier.notify(
            organization_id=org.id,
            user_id=owner.id,
            type="template_update",
            title=f"{template.name} template updated",
            message=summary,
            data={"template_id": str(template.id), "old_version": last_version, "new_version": template.version},
        )
        notifier.send_email(
            template_name="template_update",
            to_email=owner.email,
            subject=f"Compliance template update: {template.name}",
            context={
                "template_name": template.name,
                "old_version": last_version,
                "new_version": template.version,
                "summary": summary,
            },
            event_type="template_update",
            organization_id=org.id,
            user_id=owner.id,
        )
        record.last_notified_version = template.version
        notified += 1
    db.commit()
    logger.info("Template update check: checked=%s notified=%s", checked, notified)
    return {"checked": checked, "notified": notified}
