"""
Form pre-fill API endpoints.

Field analysis of an uploaded PDF, reusable form templates, and filling a
template from the organization profile.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import form_service


router = APIRouter(prefix="/organizations/{org_id}/forms", tags=["forms"])


@router.post("/analyze", response_model=schemas.FormAnalysisResult)
def analyze_form(
    org_id: uuid.UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Extract fields, classify them and match against the profile.

    Failures (disabled feature, plan limit, rate limit, LLM errors) come back
    as ``success: false`` with an error message rather than an HTTP error.
    """
    user, _ = user_context
    pdf_bytes = file.file.read()
    return form_service.analyze_form(db, org_id, user.id, pdf_bytes, file.filename or "form.pdf")


@router.get("/templates", response_model=List[schemas.FormTemplate])
def list_form_templates(
    org_id: uuid.UUID,
    industry: Optional[str] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return form_service.list_templates(db, org_id, user.id, industry=industry)


@router.post("/templates", status_code=status.HTTP_201_CREATED, response_model=schemas.FormTemplate)
def create_form_template(
    org_id: uuid.UUID,
    file: UploadFile = File(...),
    metadata: str = Form(...),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """``metadata`` is a JSON-encoded ``FormTemplateCreate`` sent beside the PDF."""
    user, _ = user_context
    payload = schemas.FormTemplateCreate.model_validate_json(metadata)
    pdf_bytes = file.file.read()
    return form_service.create_template(db, org_id, user.id, payload, pdf_bytes)


@router.get("/templates/{template_id}", response_model=schemas.FormTemplate)
def get_form_template(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return form_service.get_template(db, org_id, template_id, user.id)


@router.post("/templates/{template_id}/fill", response_model=schemas.FormFillResult)
def fill_form_template(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    payload: Optional[schemas.FormFillRequest] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    overrides = payload.overrides if payload else {}
    return form_service.fill_from_template(db, org_id, template_id, user.id, overrides=overrides)


@router.get("/fills", response_model=List[schemas.FormFill])
def list_form_fills(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return form_service.list_fills(db, org_id, user.id)


@router.get("/fills/{fill_id}/download")
def download_form_fill(
    org_id: uuid.UUID,
    fill_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    content = form_service.download_fill(db, org_id, fill_id, user.id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="filled-form-{fill_id}.pdf"'},
    )
