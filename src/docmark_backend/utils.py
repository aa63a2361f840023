"""
Utility functions for file names and media types.

This module provides helper functions for:
- Sanitizing client-supplied file names for use as object-store keys
- Normalizing declared media types
- Rewriting file extensions after format conversion
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

# Pattern to match characters that are not safe in object keys
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")

METADATA_FILE_NAME = "metadata.json"

MEDIA_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
}


def sanitize_file_name(file_name: str, fallback: str = "document") -> str:
    """
    Generate an object-key-safe file name from client input.

    Directory components are dropped, unsafe characters collapse to hyphens
    and the extension is kept.

    Example:
        >>> sanitize_file_name("C:\\\\scans\\\\Q3 report (final).pdf")
        "Q3-report-final-.pdf"
        >>> sanitize_file_name("../../etc/passwd")
        "passwd"
    """
    base = PurePosixPath(file_name.replace("\\", "/")).name
    cleaned = SANITIZE_PATTERN.sub("-", base.strip()).strip("-_")
    # Leading dots would produce hidden files
    cleaned = cleaned.lstrip(".")
    if not cleaned:
        return fallback
    if cleaned == METADATA_FILE_NAME:
        return f"file-{cleaned}"
    return cleaned


def normalize_media_type(media_type: str) -> str:
    """
    Lowercase a media type, drop its parameters and resolve known aliases.

    Example:
        >>> normalize_media_type("Image/JPG; charset=binary")
        "image/jpeg"
    """
    essence = media_type.split(";", 1)[0].strip().lower()
    return MEDIA_TYPE_ALIASES.get(essence, essence)


def with_extension(file_name: str, extension: str) -> str:
    """
    Replace (or add) the extension of a file name.

    Example:
        >>> with_extension("photo.jpeg", ".png")
        "photo.png"
        >>> with_extension("scan", ".png")
        "scan.png"
    """
    path = PurePosixPath(file_name)
    if path.suffix:
        return str(path.with_suffix(extension))
    return f"{file_name}{extension}"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
