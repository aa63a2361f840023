"""
Error taxonomy for the watermarking service.

Every failure the core can produce is a subclass of DocmarkError. Each class
carries the HTTP status and the short error label used by the API layer to
build the uniform failure body ``{"error": ..., "message": ...}``.
"""

from __future__ import annotations


class DocmarkError(Exception):
    """Base exception for all watermarking and storage errors."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error)
        self.message = message or self.error


class MalformedRequestError(DocmarkError):
    """Raised for unparsable multipart bodies or missing required fields."""

    status_code = 400
    error = "Malformed request"


class UnsupportedMediaTypeError(DocmarkError):
    """Raised when the declared media type is not a supported PDF or image."""

    status_code = 400
    error = "Unsupported file type. Please upload PDF or image."


class CorruptDocumentError(DocmarkError):
    """Raised when a paged document cannot be parsed or re-serialised."""

    status_code = 500
    error = "Watermark failed"


class DocumentNotFoundError(DocmarkError):
    """Raised when an identifier has no objects or no metadata record."""

    status_code = 404
    error = "Document not found"


class StorageError(DocmarkError):
    """Raised when the object store or a source download fails."""

    status_code = 500
    error = "Storage failure"


class LogoUnavailableError(DocmarkError, OSError):
    """Raised when the watermark logo asset cannot be read or decoded."""

    status_code = 500
    error = "Watermark logo unavailable"
