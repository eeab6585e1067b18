"""
Document API endpoints.

Multipart upload, download, metadata edits, trash/restore, version
history, the access log, search and the audit export ZIP.
"""
from datetime import datetime
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import client_ip, get_current_user_context
from compliance.services import document_service


router = APIRouter(prefix="/organizations/{org_id}/documents", tags=["documents"])


def _attachment(content: bytes, file_name: str, media_type: str = "application/octet-stream") -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


def _parse_deadline_ids(raw: Optional[str]) -> List[uuid.UUID]:
    if not raw:
        return []
    return [uuid.UUID(part.strip()) for part in raw.split(",") if part.strip()]


@router.get("/", response_model=List[schemas.Document])
def list_documents(
    org_id: uuid.UUID,
    category: Optional[str] = None,
    deadline_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.list_documents(db, org_id, user.id, category=category, deadline_id=deadline_id)


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.Document)
def upload_document(
    org_id: uuid.UUID,
    request: Request,
    file: UploadFile = File(...),
    category: str = Form(...),
    deadline_ids: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Upload a file; a live document with the same name gets a new version."""
    user, _ = user_context
    data = file.file.read()
    return document_service.save_document(
        db,
        org_id,
        user.id,
        file_name=file.filename or "upload",
        data=data,
        category=category,
        deadline_ids=_parse_deadline_ids(deadline_ids),
        ip_address=client_ip(request),
    )


@router.get("/search", response_model=List[schemas.Document])
def search_documents(
    org_id: uuid.UUID,
    q: Optional[str] = None,
    category: Optional[str] = None,
    deadline_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.search(
        db, org_id, user.id, q,
        category=category, deadline_id=deadline_id, date_from=date_from, date_to=date_to,
    )


@router.get("/trash", response_model=List[schemas.Document])
def list_deleted_documents(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.list_deleted(db, org_id, user.id)


@router.post("/audit-export")
def audit_export(
    org_id: uuid.UUID,
    payload: Optional[schemas.AuditExportRequest] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    payload = payload or schemas.AuditExportRequest()
    result = document_service.generate_audit_export(
        db, org_id, user.id,
        categories=payload.categories, date_from=payload.date_from, date_to=payload.date_to,
    )
    response = _attachment(result["content"], "audit-export.zip", "application/zip")
    response.headers["X-Document-Count"] = str(result["document_count"])
    return response


@router.get("/{document_id}", response_model=schemas.Document)
def get_document(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.get_document(db, org_id, document_id, user.id)


@router.get("/{document_id}/download")
def download_document(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    document, content = document_service.download_document(
        db, org_id, document_id, user.id, ip_address=client_ip(request)
    )
    return _attachment(content, document.file_name)


@router.patch("/{document_id}", response_model=schemas.Document)
def update_document(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    payload: schemas.DocumentUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.update_document(
        db, org_id, document_id, user.id, payload, ip_address=client_ip(request)
    )


@router.delete("/{document_id}", response_model=schemas.Document)
def delete_document(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.soft_delete(db, org_id, document_id, user.id, ip_address=client_ip(request))


@router.post("/{document_id}/restore", response_model=schemas.Document)
def restore_document(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.restore(db, org_id, document_id, user.id)


@router.delete("/{document_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
def hard_delete_document(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    document_service.hard_delete(db, org_id, document_id, user.id)


@router.get("/{document_id}/versions", response_model=List[schemas.Document])
def document_versions(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.version_history(db, org_id, document_id, user.id)


@router.get("/{document_id}/access-log", response_model=List[schemas.DocumentAccessEntry])
def document_access_log(
    org_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return document_service.access_log(db, org_id, document_id, user.id)
