"""
DEALROOM Core - Document Catalog
================================

Per-room document metadata and folder tree. Metadata only; the
catalog never touches file bytes.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Set
from uuid import uuid4

from .exceptions import InvalidInputError, NotFoundError
from .models import Document

logger = logging.getLogger("DEALROOM_Documents")


def normalize_folder(path: Optional[str]) -> str:
    """'/Financials/' and 'Financials' both become '/Financials'."""
    if not path:
        return "/"
    parts = [p for p in path.strip().split("/") if p]
    return "/" + "/".join(parts)


class DocumentCatalog:
    """Documents and folders keyed by room."""

    def __init__(self):
        self._documents: Dict[str, Document] = {}
        self._folders: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def add_document(
        self,
        room_id: str,
        name: str,
        page_count: int,
        folder_path: str = "/",
        document_id: Optional[str] = None,
        content_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
        uploaded_by: Optional[str] = None,
        uploaded_at: Optional[datetime] = None,
    ) -> Document:
        if not name:
            raise InvalidInputError("Document name is required")
        if page_count < 1:
            raise InvalidInputError(
                "page_count must be >= 1", details={"page_count": page_count}
            )

        folder = normalize_folder(folder_path)
        document = Document(
            document_id=document_id or f"doc_{uuid4().hex[:12]}",
            room_id=room_id,
            name=name,
            page_count=page_count,
            folder_path=folder,
            content_type=content_type,
            size_bytes=size_bytes,
            uploaded_by=uploaded_by,
            uploaded_at=uploaded_at,
        )

        with self._lock:
            if document.document_id in self._documents:
                raise InvalidInputError(f"Document already exists: {document.document_id}")
            self._documents[document.document_id] = document
            self._register_folder(room_id, folder)

        logger.info(f"Document added: {document.document_id} '{name}' room={room_id} folder={folder}")
        return document

    def replace_document(
        self,
        document_id: str,
        page_count: Optional[int] = None,
        uploaded_by: Optional[str] = None,
        uploaded_at: Optional[datetime] = None,
    ) -> Document:
        """New version under the same document_id."""
        with self._lock:
            current = self._documents.get(document_id)
            if current is None:
                raise NotFoundError(
                    f"Unknown document: {document_id}",
                    resource_type="document",
                    resource_id=document_id,
                )
            updated = replace(
                current,
                version=current.version + 1,
                page_count=page_count if page_count is not None else current.page_count,
                uploaded_by=uploaded_by or current.uploaded_by,
                uploaded_at=uploaded_at or current.uploaded_at,
            )
            self._documents[document_id] = updated
        return updated

    def create_folder(self, room_id: str, folder_path: str) -> str:
        folder = normalize_folder(folder_path)
        with self._lock:
            self._register_folder(room_id, folder)
        return folder

    def _register_folder(self, room_id: str, folder: str) -> None:
        folders = self._folders.setdefault(room_id, {"/"})
        parts = [p for p in folder.split("/") if p]
        for i in range(1, len(parts) + 1):
            folders.add("/" + "/".join(parts[:i]))

    def get(self, document_id: str, room_id: Optional[str] = None) -> Document:
        """Document by id; with room_id, the document must belong to that room."""
        document = self._documents.get(document_id)
        if document is None or (room_id is not None and document.room_id != room_id):
            raise NotFoundError(
                f"Unknown document: {document_id}",
                resource_type="document",
                resource_id=document_id,
            )
        return document

    def list_documents(self, room_id: str, folder: Optional[str] = None) -> List[Document]:
        with self._lock:
            docs = [d for d in self._documents.values() if d.room_id == room_id]
        if folder is not None:
            wanted = normalize_folder(folder)
            docs = [d for d in docs if d.folder_path == wanted]
        return sorted(docs, key=lambda d: (d.folder_path, d.name))

    def list_folders(self, room_id: str) -> List[str]:
        with self._lock:
            return sorted(self._folders.get(room_id, {"/"}))


__all__ = ["normalize_folder", "DocumentCatalog"]
