"""
Document persistence on top of an object store.

Each document owns two objects under ``documents/{id}/``: the watermarked
asset and ``metadata.json``. The asset is written first and the metadata
record last, so the metadata object acts as the commit marker: a document
is retrievable if and only if its metadata exists. When the metadata write
fails the asset is removed again.
"""

from __future__ import annotations

import json
import logging
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from .errors import DocumentNotFoundError, MalformedRequestError, StorageError
from .models import Document
from .object_store import ObjectStore
from .utils import METADATA_FILE_NAME

logger = logging.getLogger(__name__)

DOCUMENTS_PREFIX = "documents"

# Millisecond timestamp, then a 128-bit random token in hex
ID_PATTERN = re.compile(r"^\d{13,}-[0-9a-f]{32}\Z")

MAX_ID_ATTEMPTS = 5


def generate_document_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(16)}"


def document_prefix(document_id: str) -> str:
    return f"{DOCUMENTS_PREFIX}/{document_id}/"


class DocumentStore:
    """
    Creates and reads immutable Document records.

    Attributes:
        objects: Backing object store
        view_base_url: Public viewer page; links are ``{view_base_url}?id={id}``
    """

    def __init__(
        self,
        objects: ObjectStore,
        view_base_url: str,
        id_factory: Callable[[], str] = generate_document_id,
    ) -> None:
        self.objects = objects
        self.view_base_url = view_base_url
        self._id_factory = id_factory

    def exists(self, document_id: str) -> bool:
        return bool(self.objects.list(document_prefix(document_id)))

    def _new_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if not self.exists(candidate):
                return candidate
            logger.warning(f"Document id collision on {candidate}, regenerating")
        raise StorageError("Could not allocate a unique document id")

    def store(
        self,
        asset: bytes,
        media_type: str,
        file_name: str,
        client_name: str,
        title: str,
        description: Optional[str] = "",
    ) -> Document:
        """
        Persist a watermarked asset and its metadata record.

        Args:
            asset: Final (watermarked) bytes
            media_type: Final media type of ``asset``
            file_name: Final file name; becomes the last segment of the asset key
            client_name: Client the document belongs to
            title: Document title
            description: Free text, stored as ``""`` when absent

        Returns:
            The created Document

        Raises:
            MalformedRequestError: If a required field or the file name is invalid
            StorageError: If either object cannot be written
        """
        if not client_name or not title:
            raise MalformedRequestError("Missing required fields")
        if not file_name or "/" in file_name or file_name in {".", "..", METADATA_FILE_NAME}:
            raise MalformedRequestError(f"Invalid file name: {file_name!r}")

        document_id = self._new_id()
        prefix = document_prefix(document_id)

        stored = self.objects.put(prefix + file_name, asset, media_type)

        try:
            document = Document(
                id=document_id,
                client_name=client_name,
                title=title,
                description=description or "",
                file_name=file_name,
                mime_type=media_type,
                file_url=stored.url,
                upload_date=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                link=f"{self.view_base_url}?id={document_id}",
            )
            self.objects.put(prefix + METADATA_FILE_NAME, document.model_dump_json(by_alias=True).encode("utf-8"), "application/json")
        except Exception:
            logger.error(f"Metadata write failed for {document_id}, removing orphaned asset")
            try:
                self.objects.delete(stored.key)
            except StorageError as cleanup_exc:
                logger.error(f"Could not remove orphaned asset {stored.key}: {cleanup_exc}")
            raise

        logger.info(f"Stored document {document_id} ({file_name}, {media_type}, {len(asset)} bytes)")
        return document

    def retrieve(self, document_id: str) -> Document:
        """
        Load a Document by identifier.

        Raises:
            DocumentNotFoundError: Unknown id, or no metadata record under it
            StorageError: If the object store fails or the record is unreadable
        """
        if not ID_PATTERN.match(document_id or ""):
            raise DocumentNotFoundError("Document not found")

        objects = self.objects.list(document_prefix(document_id))
        if not objects:
            raise DocumentNotFoundError("Document not found")

        metadata = next((obj for obj in objects if obj.key.endswith("/" + METADATA_FILE_NAME)), None)
        if metadata is None:
            raise DocumentNotFoundError("Document metadata not found")

        raw = self.objects.get(metadata.key)
        try:
            return Document.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            logger.error(f"Unreadable metadata record for {document_id}: {exc}")
            raise StorageError(f"Unreadable metadata for document {document_id}") from exc
