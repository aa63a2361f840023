"""Builders for test assets and request bodies."""

import io

import pymupdf
from PIL import Image

BOUNDARY = "----DocmarkTestBoundary7MA4YWxkTrZu0gW"


def make_logo(width: int = 40, height: int = 20) -> Image.Image:
    """Opaque red logo with a fully transparent 2px frame."""
    logo = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    logo.paste((255, 0, 0, 255), (2, 2, width - 2, height - 2))
    return logo


def make_png(width: int = 200, height: int = 120, color=(255, 255, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(width: int = 160, height: int = 90) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (30, 120, 200)).save(buffer, format="JPEG")
    return buffer.getvalue()


def make_pdf(pages: int = 2, width: float = 600, height: float = 800) -> bytes:
    doc = pymupdf.open()
    for number in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"Page {number + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def build_multipart(fields, file=None, boundary: str = BOUNDARY) -> bytes:
    """
    Encode a multipart/form-data body.

    ``file`` is a ``(field_name, file_name, content_type, data)`` tuple;
    ``content_type`` may be None to omit the header.
    """
    chunks = []
    for name, value in fields:
        chunks.append(f"--{boundary}\r\n".encode())
        chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
        chunks.append(value.encode("utf-8") + b"\r\n")
    if file is not None:
        field_name, file_name, content_type, data = file
        chunks.append(f"--{boundary}\r\n".encode())
        chunks.append(f'Content-Disposition: form-data; name="{field_name}"; filename="{file_name}"\r\n'.encode())
        if content_type:
            chunks.append(f"Content-Type: {content_type}\r\n".encode())
        chunks.append(b"\r\n" + data + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks)
