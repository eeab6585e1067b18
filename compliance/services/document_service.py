"""
Document storage: upload with versioning, soft delete and restore, access
logging, full-text search and the audit export ZIP.

Uploading a file whose name matches a live document creates a new version
linked back to the previous one; both stay listed. Blobs live in the
local blob store and are only removed on permanent delete.
"""
from __future__ import annotations

import csv
import io
import logging
import math
import uuid
import zipfile
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import crud, models, schemas
from compliance.db.models.base import now_utc
from compliance.db.repositories import documents as repo_documents
from compliance.errors import InvalidInput, InvalidState, LimitExceeded, NotFound
from compliance.services import access, billing_service
from compliance.services.storage import get_blob_store

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_EXTRACTED_TEXT = 100_000
TRASH_RETENTION_DAYS = 30

ALLOWED_FILE_TYPES = ("pdf", "docx", "xlsx", "jpg", "jpeg", "png")
DOCUMENT_CATEGORIES = (
    "licenses",
    "certifications",
    "training_records",
    "audit_reports",
    "policies",
    "insurance",
    "contracts",
    "other",
)
ACCESS_ACTIONS = ("view", "download", "update", "delete")

MANIFEST_COLUMNS = ("file_name", "category", "version", "uploaded_at", "uploaded_by")


def file_type_for(file_name: str) -> str:
    _, _, ext = file_name.rpartition(".")
    return ext.lower() if ext != file_name else ""


def extract_text(data: bytes, file_type: str) -> str:
    """Plain text for search; PDFs only, other types get a placeholder note."""
    if file_type != "pdf":
        return f"[Text extraction not available for {file_type} files]"
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, KeyError) as e:
        logger.warning("PDF text extraction failed: %s", e)
        return ""
    return "\n".join(pages).strip()[:MAX_EXTRACTED_TEXT]


def _get_or_404(db: Session, organization_id: uuid.UUID, document_id: uuid.UUID) -> models.Document:
    document = repo_documents.get_document(db, organization_id, document_id)
    if document is None:
        raise NotFound("Document not found", document_id=str(document_id))
    return document


def _enforce_storage(db: Session, organization_id: uuid.UUID, size: int) -> None:
    result = billing_service.check_limit(db, organization_id, "storage", additional_bytes=size)
    if not result["allowed"]:
        raise LimitExceeded(
            f"Storage limit reached ({result['limit']} GB on your plan)",
            limit_type="storage",
            current_gb=result["current"],
            limit_gb=result["limit"],
        )


def _validate_upload(file_name: str, data: bytes, category: str) -> str:
    file_type = file_type_for(file_name)
    if file_type not in ALLOWED_FILE_TYPES:
        raise InvalidInput(
            f"File type '{file_type or 'unknown'}' is not allowed",
            allowed=list(ALLOWED_FILE_TYPES),
        )
    if not data:
        raise InvalidInput("File is empty")
    if len(data) > MAX_FILE_SIZE:
        raise InvalidInput("File exceeds the 50 MB size limit", size=len(data), max_size=MAX_FILE_SIZE)
    if category not in DOCUMENT_CATEGORIES:
        raise InvalidInput(f"Invalid category '{category}'", allowed=list(DOCUMENT_CATEGORIES))
    return file_type


def save_document(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    file_name: str,
    data: bytes,
    category: str,
    deadline_ids: Optional[List[uuid.UUID]] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Document:
    access.require_permission(db, organization_id, user_id, "documents:create")
    _enforce_storage(db, organization_id, len(data or b""))
    file_type = _validate_upload(file_name, data, category)
    now = now or now_utc()

    previous = repo_documents.get_latest_by_name(db, organization_id, file_name)
    storage_id = get_blob_store().put(data, file_type)
    document = repo_documents.create_document(
        db,
        organization_id=organization_id,
        file_name=file_name,
        file_type=file_type,
        file_size=len(data),
        storage_id=storage_id,
        category=category,
        deadline_ids=[str(d) for d in (deadline_ids or [])],
        uploaded_by=user_id,
        uploaded_at=now,
        version=(previous.version + 1) if previous else 1,
        previous_version_id=previous.id if previous else None,
        extracted_text=extract_text(data, file_type),
    )
    billing_service.increment_usage(db, organization_id, "documents_uploaded", now=now)
    billing_service.increment_usage(db, organization_id, "storage_used_bytes", len(data), now=now)
    repo_documents.add_access_log(
        db, document_id=document.id, user_id=user_id, action="update", ip_address=ip_address
    )
    audit.log_document(
        db,
        actor_user_id=user_id,
        document=document,
        action=audit.AuditAction.DOCUMENT_UPLOADED,
        metadata={"version": document.version, "category": category, "file_size": len(data)},
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(document)
    logger.info("Document %s v%s uploaded to org %s", document.id, document.version, organization_id)
    return document


def update_document(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.DocumentUpdate,
    ip_address: Optional[str] = None,
) -> models.Document:
    access.require_permission(db, organization_id, user_id, "documents:update")
    document = _get_or_404(db, organization_id, document_id)
    if document.deleted_at is not None:
        raise InvalidState("Cannot update deleted document")
    if payload.category is not None:
        if payload.category not in DOCUMENT_CATEGORIES:
            raise InvalidInput(f"Invalid category '{payload.category}'", allowed=list(DOCUMENT_CATEGORIES))
        document.category = payload.category
    if payload.deadline_ids is not None:
        document.deadline_ids = [str(d) for d in payload.deadline_ids]
    repo_documents.add_access_log(
        db, document_id=document.id, user_id=user_id, action="update", ip_address=ip_address
    )
    db.commit()
    db.refresh(document)
    return document


def soft_delete(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Document:
    access.require_permission(db, organization_id, user_id, "documents:delete")
    document = _get_or_404(db, organization_id, document_id)
    if document.deleted_at is not None:
        raise InvalidState("Document already deleted")
    document.deleted_at = now or now_utc()
    repo_documents.add_access_log(
        db, document_id=document.id, user_id=user_id, action="delete", ip_address=ip_address
    )
    audit.log_document(
        db,
        actor_user_id=user_id,
        document=document,
        action=audit.AuditAction.DOCUMENT_DELETED,
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(document)
    return document


def restore(db: Session, organization_id: uuid.UUID, document_id: uuid.UUID, user_id: uuid.UUID) -> models.Document:
    access.require_permission(db, organization_id, user_id, "documents:delete")
    document = _get_or_404(db, organization_id, document_id)
    if document.deleted_at is None:
        raise InvalidState("Document is not deleted")
    document.deleted_at = None
    db.commit()
    db.refresh(document)
    return document


def _purge(db: Session, document: models.Document) -> None:
    get_blob_store().delete(document.storage_id)
    repo_documents.delete_document(db, document)


def hard_delete(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> None:
    access.require_permission(db, organization_id, user_id, "documents:delete")
    document = _get_or_404(db, organization_id, document_id)
    if document.deleted_at is None:
        raise InvalidState("Document must be soft-deleted first")
    now = now or now_utc()
    eligible_at = document.deleted_at + timedelta(days=TRASH_RETENTION_DAYS)
    if now < eligible_at:
        remaining = math.ceil((eligible_at - now).total_seconds() / 86400)
        raise InvalidState(
            "Document must be in trash for 30 days before permanent deletion",
            days_remaining=remaining,
        )
    _purge(db, document)
    db.commit()
    logger.info("Document %s permanently deleted from org %s", document_id, organization_id)


def purge_old_deleted_documents(db: Session, now: Optional[datetime] = None) -> int:
    now = now or now_utc()
    purgeable = repo_documents.list_purgeable(db, now - timedelta(days=TRASH_RETENTION_DAYS))
    for document in purgeable:
        _purge(db, document)
    db.commit()
    logger.info("Purged %s documents deleted more than %s days ago", len(purgeable), TRASH_RETENTION_DAYS)
    return len(purgeable)


# === Queries ===

def log_access(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    action: str,
    ip_address: Optional[str] = None,
) -> models.DocumentAccessLog:
    if action not in ACCESS_ACTIONS:
        raise InvalidInput(f"Invalid access action '{action}'", allowed=list(ACCESS_ACTIONS))
    access.require_permission(db, organization_id, user_id, "documents:read")
    _get_or_404(db, organization_id, document_id)
    entry = repo_documents.add_access_log(
        db, document_id=document_id, user_id=user_id, action=action, ip_address=ip_address
    )
    db.commit()
    return entry


def get_document(db: Session, organization_id: uuid.UUID, document_id: uuid.UUID, user_id: uuid.UUID) -> models.Document:
    access.require_permission(db, organization_id, user_id, "documents:read")
    return _get_or_404(db, organization_id, document_id)


def download_document(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    ip_address: Optional[str] = None,
) -> Tuple[models.Document, bytes]:
    document = get_document(db, organization_id, document_id, user_id)
    data = get_blob_store().get(document.storage_id)
    repo_documents.add_access_log(
        db, document_id=document.id, user_id=user_id, action="download", ip_address=ip_address
    )
    db.commit()
    return document, data


def list_documents(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    category: Optional[str] = None,
    deadline_id: Optional[uuid.UUID] = None,
) -> List[models.Document]:
    access.require_permission(db, organization_id, user_id, "documents:read")
    return repo_documents.list_documents(db, organization_id, category=category, deadline_id=deadline_id)


def list_deleted(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[models.Document]:
    access.require_permission(db, organization_id, user_id, "documents:read")
    return repo_documents.list_documents(db, organization_id, deleted=True)


def version_history(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
) -> List[models.Document]:
    """The document followed by each earlier version, newest first."""
    document = get_document(db, organization_id, document_id, user_id)
    history = [document]
    seen = {document.id}
    while document.previous_version_id is not None and document.previous_version_id not in seen:
        document = repo_documents.get_document(db, organization_id, document.previous_version_id)
        if document is None:
            break
        seen.add(document.id)
        history.append(document)
    return history


def access_log(
    db: Session,
    organization_id: uuid.UUID,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    limit: int = 100,
) -> List[models.DocumentAccessLog]:
    get_document(db, organization_id, document_id, user_id)
    return repo_documents.list_access_log(db, document_id, limit=limit)


def search(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    query: Optional[str] = None,
    *,
    category: Optional[str] = None,
    deadline_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[models.Document]:
    access.require_permission(db, organization_id, user_id, "documents:read")
    return repo_documents.search_documents(
        db,
        organization_id,
        (query or "").strip() or None,
        category=category,
        deadline_id=deadline_id,
        date_from=date_from,
        date_to=date_to,
    )


def generate_audit_export(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    categories: Optional[List[str]] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> Dict[str, Any]:
    """ZIP of live documents, one folder per category plus ``manifest.csv``."""
    access.require_permission(db, organization_id, user_id, "documents:read")
    documents = repo_documents.list_documents(db, organization_id)
    if categories:
        documents = [d for d in documents if d.category in categories]
    if date_from is not None:
        documents = [d for d in documents if d.uploaded_at >= date_from]
    if date_to is not None:
        documents = [d for d in documents if d.uploaded_at <= date_to]

    store = get_blob_store()
    uploaders: Dict[Any, str] = {}
    manifest = io.StringIO()
    writer = csv.writer(manifest)
    writer.writerow(MANIFEST_COLUMNS)

    buffer = io.BytesIO()
    used_names = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for document in documents:
            arcname = f"{document.category}/{document.file_name}"
            if arcname in used_names:
                arcname = f"{document.category}/v{document.version}-{document.file_name}"
            used_names.add(arcname)
            archive.writestr(arcname, store.get(document.storage_id))

            if document.uploaded_by not in uploaders:
                uploader = crud.get_user(db, document.uploaded_by) if document.uploaded_by else None
                uploaders[document.uploaded_by] = uploader.email if uploader else ""
            writer.writerow((
                document.file_name,
                document.category,
                document.version,
                document.uploaded_at.isoformat(),
                uploaders[document.uploaded_by],
            ))
        archive.writestr("manifest.csv", manifest.getvalue())

    logger.info("Audit export for org %s: %s documents", organization_id, len(documents))
    return {"content": buffer.getvalue(), "document_count": len(documents)}
