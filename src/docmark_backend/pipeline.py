"""
Watermarking pipeline: validation, engine dispatch and persistence.

The WatermarkService is the single entry point used by the HTTP layer. It
validates an uploaded asset, picks the raster or paged engine from the
declared media type, and hands the result to the document store. CPU-bound
work runs on a bounded thread pool so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable, Optional, TypeVar

from omegaconf import DictConfig
from PIL import Image

from .configuration import watermark_specs
from .document_store import DocumentStore, generate_document_id
from .errors import MalformedRequestError, UnsupportedMediaTypeError
from .logo import load_logo
from .models import Document, RemoteWatermarkRequest, UploadedAsset, UploadTokenRequest, UploadTokenResponse, WatermarkSpec
from .multipart import boundary_from_content_type, decode
from .paged import apply_paged
from .raster import apply_raster
from .source_fetcher import SourceFetcher
from .utils import normalize_media_type, sanitize_file_name, with_extension

logger = logging.getLogger(__name__)

T = TypeVar("T")

PDF_MEDIA_TYPE = "application/pdf"
PNG_MEDIA_TYPE = "image/png"


class WatermarkService:
    """
    Coordinates decoding, watermarking and storage for one request at a time.

    The service holds no per-request state; the only shared pieces are the
    injected collaborators and the cached logo image.

    Attributes:
        documents: Document store used for persistence and lookups
        fetcher: Downloader for assets referenced by URL
        paged_spec: Watermark settings for PDFs
        raster_spec: Watermark settings for images
    """

    def __init__(
        self,
        documents: DocumentStore,
        fetcher: SourceFetcher,
        logo_path: Path,
        paged_spec: WatermarkSpec,
        raster_spec: WatermarkSpec,
        accepted_media_types: Iterable[str] = (PDF_MEDIA_TYPE, PNG_MEDIA_TYPE, "image/jpeg"),
        max_upload_bytes: int = 50 * 1024 * 1024,
        max_workers: int = 2,
        presign_expiration: int = 3600,
    ) -> None:
        self.documents = documents
        self.fetcher = fetcher
        self.logo_path = Path(logo_path)
        self.paged_spec = paged_spec
        self.raster_spec = raster_spec
        self.accepted_media_types = {normalize_media_type(media_type) for media_type in accepted_media_types}
        self.max_upload_bytes = max_upload_bytes
        self.presign_expiration = presign_expiration
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="watermark")
        self._logo: Optional[Image.Image] = None
        self._logo_lock = Lock()

    @classmethod
    def from_config(cls, config: DictConfig, documents: DocumentStore, fetcher: SourceFetcher) -> "WatermarkService":
        paged_spec, raster_spec = watermark_specs(config)
        return cls(
            documents=documents,
            fetcher=fetcher,
            logo_path=Path(config.watermark.logo_path),
            paged_spec=paged_spec,
            raster_spec=raster_spec,
            accepted_media_types=list(config.documents.accepted_media_types),
            max_upload_bytes=config.documents.max_upload_bytes,
            max_workers=config.server.max_workers,
            presign_expiration=config.storage.presign_expiration,
        )

    def logo(self) -> Image.Image:
        """Load the logo on first use; a failed load is retried on the next call."""
        with self._logo_lock:
            if self._logo is None:
                self._logo = load_logo(self.logo_path)
            return self._logo

    def _check_media_type(self, media_type: str) -> str:
        normalized = normalize_media_type(media_type or "")
        if normalized not in self.accepted_media_types:
            raise UnsupportedMediaTypeError(f"Unsupported file type: {media_type or 'unknown'}")
        return normalized

    def watermark(self, asset: UploadedAsset) -> Document:
        """
        Watermark an uploaded asset and store it.

        Raises:
            MalformedRequestError: Missing file or required fields
            UnsupportedMediaTypeError: Media type outside the accepted set
            CorruptDocumentError: Unreadable PDF
            LogoUnavailableError: Logo asset missing or unreadable
            StorageError: Persisting failed
        """
        if not asset.data:
            raise MalformedRequestError("No file uploaded")
        client_name = asset.fields.get("clientName", "").strip()
        title = asset.fields.get("docTitle", "").strip()
        if not client_name or not title:
            raise MalformedRequestError("Missing required fields")
        media_type = self._check_media_type(asset.media_type)
        if len(asset.data) > self.max_upload_bytes:
            raise MalformedRequestError(f"File exceeds the {self.max_upload_bytes} byte upload limit")

        file_name = sanitize_file_name(asset.file_name or "document")
        logo = self.logo()
        if media_type == PDF_MEDIA_TYPE:
            output = apply_paged(asset.data, logo, self.paged_spec)
            final_type = PDF_MEDIA_TYPE
        else:
            output = apply_raster(asset.data, logo, self.raster_spec)
            final_type = PNG_MEDIA_TYPE
            file_name = with_extension(file_name, ".png")
        logger.info(f"Watermarked {file_name} ({media_type} -> {final_type})")

        return self.documents.store(
            output,
            final_type,
            file_name,
            client_name=client_name,
            title=title,
            description=asset.fields.get("description", ""),
        )

    def watermark_upload(self, body: bytes, content_type: Optional[str]) -> Document:
        """Decode a multipart request body and watermark its file part."""
        boundary = boundary_from_content_type(content_type)
        form = decode(body, boundary)
        asset = UploadedAsset(
            data=form.file or b"",
            media_type=form.mime_type,
            file_name=form.file_name,
            fields=form.fields,
        )
        return self.watermark(asset)

    def watermark_remote(self, request: RemoteWatermarkRequest) -> Document:
        """Fetch an already-uploaded source asset, watermark it and store the result."""
        if not request.blob_url or not request.client_name.strip() or not request.doc_title.strip():
            raise MalformedRequestError("Missing required fields")
        self._check_media_type(request.mime_type)
        data = self.fetcher.fetch(request.blob_url)
        asset = UploadedAsset(
            data=data,
            media_type=request.mime_type,
            file_name=request.file_name,
            fields={
                "clientName": request.client_name,
                "docTitle": request.doc_title,
                "description": request.description or "",
            },
        )
        return self.watermark(asset)

    def retrieve(self, document_id: str) -> Document:
        return self.documents.retrieve(document_id)

    def issue_upload_token(self, request: UploadTokenRequest) -> UploadTokenResponse:
        """Presign a direct upload of a source asset to the object store."""
        media_type = self._check_media_type(request.content_type)
        key = f"uploads/{generate_document_id()}/{sanitize_file_name(request.pathname)}"
        objects = self.documents.objects
        post = objects.presign_upload(key, media_type, self.max_upload_bytes, self.presign_expiration)
        return UploadTokenResponse(
            url=post["url"],
            fields=post["fields"],
            key=key,
            blob_url=objects.url_for(key),
            maximum_size_in_bytes=self.max_upload_bytes,
        )

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(*args)`` on the watermark worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        self.fetcher.close()
