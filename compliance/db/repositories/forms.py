"""
Form template and form fill repository functions.
"""
from __future__ import annotations

import uuid
from typing import Any, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from compliance.db import models


def create_template(db: Session, **fields: Any) -> models.FormTemplate:
    template = models.FormTemplate(**fields)
    db.add(template)
    db.flush()
    return template


def get_template(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID) -> Optional[models.FormTemplate]:
    """Org-owned or global template visible to ``organization_id``."""
    return (
        db.query(models.FormTemplate)
        .filter(
            models.FormTemplate.id == template_id,
            or_(
                models.FormTemplate.organization_id == organization_id,
                models.FormTemplate.organization_id.is_(None),
            ),
        )
        .first()
    )


def list_templates(db: Session, organization_id: uuid.UUID, industry: Optional[str] = None) -> List[models.FormTemplate]:
    query = db.query(models.FormTemplate).filter(
        or_(
            models.FormTemplate.organization_id == organization_id,
            models.FormTemplate.organization_id.is_(None),
        )
    )
    if industry:
        query = query.filter(models.FormTemplate.industry == industry)
    return query.order_by(models.FormTemplate.times_used.desc(), models.FormTemplate.name.asc()).all()


def create_fill(db: Session, **fields: Any) -> models.FormFill:
    fill = models.FormFill(**fields)
    db.add(fill)
    db.flush()
    return fill


def list_fills(db: Session, organization_id: uuid.UUID, limit: int = 50) -> List[models.FormFill]:
    return (
        db.query(models.FormFill)
        .filter(models.FormFill.organization_id == organization_id)
        .order_by(models.FormFill.created_at.desc())
        .limit(limit)
        .all()
    )


def get_fill(db: Session, organization_id: uuid.UUID, fill_id: uuid.UUID) -> Optional[models.FormFill]:
    return (
        db.query(models.FormFill)
        .filter(models.FormFill.id == fill_id, models.FormFill.organization_id == organization_id)
        .first()
    )
