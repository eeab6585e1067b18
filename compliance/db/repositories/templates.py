"""
Industry template repository functions.
"""
from __future__ import annotations

import uuid
from typing import Any, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from compliance.db import models


def get_template(db: Session, template_id: uuid.UUID) -> Optional[models.IndustryTemplate]:
    return db.query(models.IndustryTemplate).filter(models.IndustryTemplate.id == template_id).first()


def get_template_by_slug(db: Session, slug: str) -> Optional[models.IndustryTemplate]:
    return db.query(models.IndustryTemplate).filter(models.IndustryTemplate.slug == slug).first()


def list_templates(db: Session, industry: Optional[str] = None, active_only: bool = True):
    query = db.query(models.IndustryTemplate)
    if active_only:
        query = query.filter(models.IndustryTemplate.is_active.is_(True))
    if industry:
        query = query.filter(models.IndustryTemplate.industry == industry)
    return query.order_by(models.IndustryTemplate.industry.asc(), models.IndustryTemplate.name.asc()).all()


def industry_counts(db: Session) -> List[Tuple[str, int]]:
    return (
        db.query(models.IndustryTemplate.industry, func.count(models.IndustryTemplate.id))
        .filter(models.IndustryTemplate.is_active.is_(True))
        .group_by(models.IndustryTemplate.industry)
        .order_by(models.IndustryTemplate.industry.asc())
        .all()
    )


def upsert_template(db: Session, slug: str, **fields: Any) -> models.IndustryTemplate:
    template = get_template_by_slug(db, slug)
    if template is None:
        template = models.IndustryTemplate(slug=slug, **fields)
        db.add(template)
    else:
        for key, value in fields.items():
            setattr(template, key, value)
    db.flush()
    return template


def get_import(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID) -> Optional[models.TemplateImport]:
    return (
        db.query(models.TemplateImport)
        .filter(
            models.TemplateImport.organization_id == organization_id,
            models.TemplateImport.template_id == template_id,
        )
        .first()
    )


def list_imports(db: Session, organization_id: Optional[uuid.UUID] = None) -> List[models.TemplateImport]:
    query = db.query(models.TemplateImport)
    if organization_id is not None:
        query = query.filter(models.TemplateImport.organization_id == organization_id)
    return query.order_by(models.TemplateImport.imported_at.asc()).all()


def create_import(db: Session, **fields: Any) -> models.TemplateImport:
    record = models.TemplateImport(**fields)
    db.add(record)
    db.flush()
    return record
