"""
Local filesystem blob store for uploaded documents and generated PDFs.

Blobs are addressed by an opaque storage id; the directory comes from
DOCUMENT_STORAGE_DIR.
"""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from compliance.errors import NotFound

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = "data/documents"


class LocalBlobStore:
    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or os.getenv("DOCUMENT_STORAGE_DIR", DEFAULT_STORAGE_DIR))

    def _path(self, storage_id: str) -> Path:
        # Storage ids are generated here; reject anything that could escape base_dir
        if not storage_id or "/" in storage_id or "\\" in storage_id or storage_id.startswith("."):
            raise NotFound("File not found in storage", storage_id=storage_id)
        return self.base_dir / storage_id

    def put(self, data: bytes, extension: str = "") -> str:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        suffix = f".{extension.lstrip('.')}" if extension else ""
        storage_id = f"{uuid.uuid4().hex}{suffix}"
        self._path(storage_id).write_bytes(data)
        logger.debug("Stored blob %s (%s bytes)", storage_id, len(data))
        return storage_id

    def get(self, storage_id: str) -> bytes:
        path = self._path(storage_id)
        if not path.exists():
            raise NotFound("File not found in storage", storage_id=storage_id)
        return path.read_bytes()

    def delete(self, storage_id: str) -> bool:
        path = self._path(storage_id)
        if not path.exists():
            return False
        path.unlink()
        return True


_store: Optional[LocalBlobStore] = None


def get_blob_store() -> LocalBlobStore:
    global _store
    if _store is None:
        _store = LocalBlobStore()
    return _store


def reset_blob_store() -> None:
    global _store
    _store = None
