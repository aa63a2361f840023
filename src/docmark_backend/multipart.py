"""
Binary-safe multipart/form-data decoding.

The request body is scanned as bytes; payloads are never round-tripped
through a text codec, so PDF and image bytes come out exactly as sent.
``MultipartReader`` yields one part at a time and ``decode`` folds the parts
into form fields and a single file payload.
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional
from urllib.parse import unquote

from .errors import MalformedRequestError

DEFAULT_FILE_MEDIA_TYPE = "application/octet-stream"

CRLF = b"\r\n"

_BOUNDARY_PATTERN = re.compile(r'boundary=(?:"([^"]+)"|([^;\s]+))', re.IGNORECASE)
_PARAM_PATTERN = re.compile(r'(\w+\*?)=(?:"((?:[^"\\]|\\.)*)"|([^;\s]*))')


@dataclass
class Part:
    headers: Dict[str, str]
    data: bytes
    name: str
    filename: Optional[str] = None

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def is_file(self) -> bool:
        return self.filename is not None


@dataclass
class MultipartForm:
    fields: Dict[str, str] = field(default_factory=dict)
    file: Optional[bytes] = None
    file_name: str = ""
    mime_type: str = ""


def boundary_from_content_type(content_type: Optional[str]) -> str:
    """
    Extract the boundary token from a ``multipart/form-data`` Content-Type.

    Raises:
        MalformedRequestError: If the header is missing or has no boundary
    """
    if not content_type:
        raise MalformedRequestError("Missing Content-Type header")
    match = _BOUNDARY_PATTERN.search(content_type)
    if not match:
        raise MalformedRequestError("No boundary found")
    return match.group(1) or match.group(2)


def _parse_disposition(value: str) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for match in _PARAM_PATTERN.finditer(value):
        key = match.group(1).lower()
        quoted = match.group(2)
        params[key] = quoted.replace('\\"', '"') if quoted is not None else match.group(3)
    return params


def _extended_value(value: str) -> Optional[str]:
    """Decode an RFC 5987 ``charset'language'percent-encoded`` value."""
    charset, sep, rest = value.partition("'")
    _, sep2, encoded = rest.partition("'")
    if not (sep and sep2):
        return None
    charset = charset or "utf-8"
    try:
        codecs.lookup(charset)
        return unquote(encoded, encoding=charset, errors="strict")
    except (LookupError, UnicodeDecodeError):
        return None


def _filename(params: Dict[str, str]) -> Optional[str]:
    if "filename*" in params:
        decoded = _extended_value(params["filename*"])
        if decoded is not None:
            return decoded
    return params.get("filename")


def _parse_headers(block: bytes) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for line in block.split(CRLF):
        if not line.strip():
            continue
        name, sep, value = line.decode("utf-8", errors="replace").partition(":")
        if not sep:
            raise MalformedRequestError(f"Invalid part header: {name.strip()!r}")
        headers[name.strip().lower()] = value.strip()
    return headers


class MultipartReader:
    """
    Pull-style reader over a complete multipart body.

    ``next_part()`` returns the next ``Part`` or ``None`` once the closing
    delimiter has been consumed. Preamble and epilogue are ignored.
    """

    def __init__(self, body: bytes, boundary: str) -> None:
        if not boundary:
            raise MalformedRequestError("No boundary found")
        self._body = body
        self._delimiter = b"--" + boundary.encode("latin-1")
        self._finished = False

        start = self._find_delimiter(0)
        if start < 0:
            raise MalformedRequestError("Multipart body has no opening boundary")
        self._position = start + len(self._delimiter)

    def _find_delimiter(self, offset: int) -> int:
        # The first delimiter may start the body, every later one follows a CRLF
        if offset == 0 and self._body.startswith(self._delimiter):
            return 0
        index = self._body.find(CRLF + self._delimiter, offset)
        return index + len(CRLF) if index >= 0 else -1

    def next_part(self) -> Optional[Part]:
        if self._finished:
            return None

        body = self._body
        pos = self._position
        if body.startswith(b"--", pos):
            self._finished = True
            return None
        # Transport padding after the delimiter, then the line break
        while pos < len(body) and body[pos] in b" \t":
            pos += 1
        if not body.startswith(CRLF, pos):
            raise MalformedRequestError("Malformed multipart delimiter line")
        pos += len(CRLF)

        next_delimiter = self._find_delimiter(pos)
        if next_delimiter < 0:
            raise MalformedRequestError("Multipart body is truncated")
        # Part content ends before the CRLF that precedes the delimiter
        raw = body[pos : next_delimiter - len(CRLF)]
        self._position = next_delimiter + len(self._delimiter)

        header_end = raw.find(CRLF + CRLF)
        if header_end >= 0:
            header_block, data = raw[:header_end], raw[header_end + 4 :]
        elif raw.startswith(CRLF):
            header_block, data = b"", raw[2:]
        else:
            header_block, data = raw, b""

        headers = _parse_headers(header_block)
        disposition = headers.get("content-disposition")
        if not disposition:
            raise MalformedRequestError("Multipart part is missing Content-Disposition")
        params = _parse_disposition(disposition)
        if "name" not in params:
            raise MalformedRequestError("Content-Disposition has no field name")

        return Part(headers=headers, data=data, name=params["name"], filename=_filename(params))

    def __iter__(self) -> Iterator[Part]:
        while True:
            part = self.next_part()
            if part is None:
                return
            yield part


def decode(body: bytes, boundary: str) -> MultipartForm:
    """
    Fold a multipart body into text fields and one file payload.

    Parts are applied in order, so a repeated field name or a second file
    part overwrites what came before it. Empty parts are skipped: a file
    input left blank sends ``filename=""`` with no data and must not replace
    a file chosen in another input, and an empty text value never replaces
    an earlier one.

    Raises:
        MalformedRequestError: On structural errors in the body
    """
    form = MultipartForm()
    for part in MultipartReader(body, boundary):
        if not part.data:
            continue
        if part.is_file:
            if not part.filename:
                continue
            form.file = part.data
            form.file_name = part.filename
            form.mime_type = (part.content_type or DEFAULT_FILE_MEDIA_TYPE).strip()
        else:
            form.fields[part.name] = part.data.decode("utf-8", errors="replace")
    return form
