"""
Industry template API endpoints.

Browsing the catalog is open to any signed-in user; importing creates
deadlines in the organization and needs ``deadlines:create``.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import template_service


router = APIRouter(tags=["templates"])


def _summary(template) -> schemas.IndustryTemplateSummary:
    summary = schemas.IndustryTemplateSummary.model_validate(template)
    summary.deadline_count = len(template.deadlines or [])
    return summary


@router.get("/templates", response_model=List[schemas.IndustryTemplateSummary])
def list_templates(
    industry: Optional[str] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    return [_summary(t) for t in template_service.list_templates(db, industry=industry)]


@router.get("/templates/industries", response_model=List[schemas.IndustryCount])
def list_industries(
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    return template_service.industries(db)


@router.get("/templates/by-slug/{slug}", response_model=schemas.IndustryTemplate)
def get_template_by_slug(
    slug: str,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    return template_service.get_by_slug(db, slug)


@router.get("/templates/{template_id}", response_model=schemas.IndustryTemplate)
def get_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    return template_service.get_template(db, template_id)


@router.post(
    "/organizations/{org_id}/templates/{template_id}/import",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.TemplateImport,
)
def import_template(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    payload: Optional[schemas.TemplateImportRequest] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    payload = payload or schemas.TemplateImportRequest()
    return template_service.import_template(db, org_id, template_id, user.id, payload)


@router.get(
    "/organizations/{org_id}/templates/{template_id}/import",
    response_model=Optional[schemas.TemplateImport],
)
def get_template_import(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return template_service.get_org_import(db, org_id, template_id, user.id)
