"""
Document repository functions.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from compliance.db import models


def create_document(db: Session, **fields: Any) -> models.Document:
    document = models.Document(**fields)
    db.add(document)
    db.flush()
    return document


def get_document(db: Session, organization_id: uuid.UUID, document_id: uuid.UUID) -> Optional[models.Document]:
    return (
        db.query(models.Document)
        .filter(models.Document.id == document_id, models.Document.organization_id == organization_id)
        .first()
    )


def get_latest_by_name(db: Session, organization_id: uuid.UUID, file_name: str) -> Optional[models.Document]:
    return (
        db.query(models.Document)
        .filter(
            models.Document.organization_id == organization_id,
            models.Document.file_name == file_name,
            models.Document.deleted_at.is_(None),
        )
        .order_by(models.Document.version.desc())
        .first()
    )


def _matches_deadline(document: models.Document, deadline_id: uuid.UUID) -> bool:
    return str(deadline_id) in {str(d) for d in (document.deadline_ids or [])}


def list_documents(
    db: Session,
    organization_id: uuid.UUID,
    *,
    category: Optional[str] = None,
    deadline_id: Optional[uuid.UUID] = None,
    deleted: bool = False,
) -> List[models.Document]:
    query = db.query(models.Document).filter(models.Document.organization_id == organization_id)
    if deleted:
        query = query.filter(models.Document.deleted_at.isnot(None))
    else:
        query = query.filter(models.Document.deleted_at.is_(None))
    if category:
        query = query.filter(models.Document.category == category)
    rows = query.order_by(models.Document.uploaded_at.desc()).all()
    if deadline_id is not None:
        # deadline_ids is a JSON list; filtered in Python to stay dialect-neutral
        rows = [r for r in rows if _matches_deadline(r, deadline_id)]
    return rows


def search_documents(
    db: Session,
    organization_id: uuid.UUID,
    text: Optional[str] = None,
    *,
    category: Optional[str] = None,
    deadline_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = 50,
) -> List[models.Document]:
    query = db.query(models.Document).filter(
        models.Document.organization_id == organization_id,
        models.Document.deleted_at.is_(None),
    )
    if text:
        pattern = f"%{text.lower()}%"
        query = query.filter(
            or_(
                func.lower(models.Document.extracted_text).like(pattern),
                func.lower(models.Document.file_name).like(pattern),
            )
        )
    if category:
        query = query.filter(models.Document.category == category)
    if date_from is not None:
        query = query.filter(models.Document.uploaded_at >= date_from)
    if date_to is not None:
        query = query.filter(models.Document.uploaded_at <= date_to)
    rows = query.order_by(models.Document.uploaded_at.desc()).all()
    if deadline_id is not None:
        rows = [r for r in rows if _matches_deadline(r, deadline_id)]
    return rows[:limit]


def storage_used_bytes(db: Session, organization_id: uuid.UUID) -> int:
    return int(
        db.query(func.coalesce(func.sum(models.Document.file_size), 0))
        .filter(models.Document.organization_id == organization_id)
        .scalar()
        or 0
    )


def count_documents(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(func.count(models.Document.id))
        .filter(models.Document.organization_id == organization_id, models.Document.deleted_at.is_(None))
        .scalar()
        or 0
    )


def list_purgeable(db: Session, cutoff: datetime) -> List[models.Document]:
    return (
        db.query(models.Document)
        .filter(models.Document.deleted_at.isnot(None), models.Document.deleted_at <= cutoff)
        .all()
    )


def delete_document(db: Session, document: models.Document) -> None:
    db.query(models.DocumentAccessLog).filter(models.DocumentAccessLog.document_id == document.id).delete(
        synchronize_session=False
    )
    # Later versions keep existing, pointing nowhere
    db.query(models.Document).filter(models.Document.previous_version_id == document.id).update(
        {models.Document.previous_version_id: None}, synchronize_session=False
    )
    db.delete(document)
    db.flush()


def add_access_log(
    db: Session,
    *,
    document_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
    action: str,
    ip_address: Optional[str] = None,
) -> models.DocumentAccessLog:
    entry = models.DocumentAccessLog(
        document_id=document_id,
        user_id=user_id,
        action=action,
        ip_address=ip_address,
    )
    db.add(entry)
    db.flush()
    return entry


def list_access_log(db: Session, document_id: uuid.UUID, limit: int = 100) -> List[models.DocumentAccessLog]:
    return (
        db.query(models.DocumentAccessLog)
        .filter(models.DocumentAccessLog.document_id == document_id)
        .order_by(models.DocumentAccessLog.created_at.desc())
        .limit(limit)
        .all()
    )
