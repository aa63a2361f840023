"""
Paged (PDF) watermark engine.

The logo is faded to the requested opacity and embedded once into a scratch
document holding one tile sheet per distinct page size. Each sheet draws
every logo copy from a single content stream, and each target page receives
its sheet through one ``show_pdf_page`` call, so the image stays shared and
every page's resources are touched once. PyMuPDF has no per-draw opacity for
images, so the opacity lives in the embedded image's soft mask instead.
"""

from __future__ import annotations

import io
import logging
from typing import Dict, Tuple

import pymupdf
from PIL import Image

from .errors import CorruptDocumentError
from .layout import paged_placements
from .logo import fade
from .models import WatermarkSpec

logger = logging.getLogger(__name__)


def _encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _open(data: bytes) -> pymupdf.Document:
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")  # type: ignore[no-untyped-call]
    except Exception as exc:
        raise CorruptDocumentError(f"Could not parse PDF: {exc}") from exc
    if doc.needs_pass:
        doc.close()
        raise CorruptDocumentError("Encrypted PDFs cannot be watermarked")
    if doc.page_count == 0:
        doc.close()
        raise CorruptDocumentError("PDF has no pages")
    return doc


class TileSheets:
    """
    Transparent pages carrying the logo grid, one per page size.

    The first sheet embeds the logo image; later sheets reference the same
    xref by its resource name.
    """

    def __init__(self, stamp: bytes, logo_size: Tuple[float, float], spec: WatermarkSpec) -> None:
        self.doc = pymupdf.open()
        self.stamp = stamp
        self.logo_w, self.logo_h = logo_size
        self.spec = spec
        self.xref = 0
        self._pages: Dict[Tuple[float, float], Tuple[int, int]] = {}

    def sheet_for(self, width: float, height: float) -> Tuple[int, int]:
        """Return ``(page number, copies drawn)`` of the sheet for this size."""
        key = (round(width, 3), round(height, 3))
        if key not in self._pages:
            self._pages[key] = self._build(width, height)
        return self._pages[key]

    def _build(self, width: float, height: float) -> Tuple[int, int]:
        sheet = self.doc.new_page(width=width, height=height)
        bounds = sheet.rect
        anchor = pymupdf.Rect(0, 0, self.logo_w, self.logo_h)
        if self.xref:
            sheet.insert_image(anchor, xref=self.xref, keep_proportion=False)
        else:
            self.xref = sheet.insert_image(anchor, stream=self.stamp, keep_proportion=False)
        name = next(item[7] for item in sheet.get_images(full=True) if item[0] == self.xref)

        operators = []
        for x, y in paged_placements((width, height), (self.logo_w, self.logo_h), self.spec.placement, self.spec.spacing):
            if not pymupdf.Rect(x, y, x + self.logo_w, y + self.logo_h).intersects(bounds):
                continue
            # PDF space has its origin at the bottom-left corner
            operators.append(
                f"q {self.logo_w:.4f} 0 0 {self.logo_h:.4f} {x:.4f} {height - y - self.logo_h:.4f} cm /{name} Do Q"
            )

        contents = self.doc.get_new_xref()
        self.doc.update_object(contents, "<<>>")
        self.doc.update_stream(contents, "\n".join(operators).encode("ascii"))
        sheet.set_contents(contents)
        return sheet.number, len(operators)

    def close(self) -> None:
        self.doc.close()


def apply_paged(document: bytes, logo: Image.Image, spec: WatermarkSpec) -> bytes:
    """
    Watermark every page of a PDF and return the re-serialised bytes.

    Page count, order and sizes are unchanged.

    Raises:
        CorruptDocumentError: If ``document`` is not a readable PDF
    """
    stamp = _encode_png(fade(logo, spec.opacity))
    with _open(document) as doc:
        sheets = TileSheets(stamp, (logo.width * spec.scale, logo.height * spec.scale), spec)
        drawn = 0
        try:
            for page in doc:
                bounds = page.rect
                number, copies = sheets.sheet_for(bounds.width, bounds.height)
                page.show_pdf_page(bounds, sheets.doc, number, keep_proportion=False, overlay=True)
                drawn += copies
            output = doc.tobytes()
        except Exception as exc:
            raise CorruptDocumentError(f"Could not watermark PDF: {exc}") from exc
        finally:
            sheets.close()

        logger.debug(f"Drew {drawn} logo copies across {doc.page_count} page(s)")
    return output
