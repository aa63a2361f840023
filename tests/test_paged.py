"""
Tests for the PDF watermark engine.
"""

import time

import pymupdf
import pytest

from docmark_backend.errors import CorruptDocumentError
from docmark_backend.layout import paged_placements
from docmark_backend.models import Placement, WatermarkSpec
from docmark_backend.paged import apply_paged

from helpers import make_pdf


def _pages(data: bytes):
    with pymupdf.open(stream=data, filetype="pdf") as doc:
        return [(page.rect.width, page.rect.height, page.get_text().strip(), len(page.get_image_info())) for page in doc]


class TestApplyPaged:
    """Tests for apply_paged."""

    def test_page_count_and_sizes_unchanged(self, sample_pdf, logo):
        """Watermarking keeps every page and its size."""
        output = apply_paged(sample_pdf, logo, WatermarkSpec(opacity=0.25, scale=0.2, spacing=2.0))

        pages = _pages(output)
        assert len(pages) == 2
        assert [(w, h) for w, h, _, _ in pages] == [(600, 800), (600, 800)]

    def test_text_content_and_order_preserved(self, sample_pdf, logo):
        """Existing page text survives in the original order."""
        pages = _pages(apply_paged(sample_pdf, logo, WatermarkSpec()))

        assert [text for _, _, text, _ in pages] == ["Page 1", "Page 2"]

    def test_tiled_draws_many_copies_on_every_page(self, sample_pdf, logo):
        """Tiled placement draws every visible grid cell on each page."""
        spec = WatermarkSpec(placement=Placement.TILED, scale=1.0, spacing=2.0)
        expected = sum(
            1
            for x, y in paged_placements((600, 800), (40, 20), Placement.TILED, 2.0)
            if pymupdf.Rect(x, y, x + 40, y + 20).intersects(pymupdf.Rect(0, 0, 600, 800))
        )

        pages = _pages(apply_paged(sample_pdf, logo, spec))

        # 40x20 pt logo, 80x40 pt stride over 600x800 pt
        assert expected > 50
        assert [images for _, _, _, images in pages] == [expected, expected]

    def test_logo_embedded_once(self, sample_pdf, logo):
        """All pages and tiles share a single embedded image."""
        output = apply_paged(sample_pdf, logo, WatermarkSpec(placement=Placement.TILED))

        with pymupdf.open(stream=output, filetype="pdf") as doc:
            xrefs = {image[0] for page in doc for image in page.get_images(full=True)}
        assert len(xrefs) == 1

    def test_centered_draws_one_copy_per_page(self, logo):
        """Centered placement draws one logo in the middle of each page."""
        output = apply_paged(make_pdf(pages=3), logo, WatermarkSpec(placement=Placement.CENTERED, scale=1.0))

        with pymupdf.open(stream=output, filetype="pdf") as doc:
            for page in doc:
                infos = page.get_image_info()
                assert len(infos) == 1
                x0, y0, x1, y1 = infos[0]["bbox"]
                assert (x0, y0, x1, y1) == pytest.approx((280, 390, 320, 410), abs=0.5)

    def test_mixed_page_sizes(self, logo):
        """Pages of different sizes each keep their own size."""
        doc = pymupdf.open()
        doc.new_page(width=612, height=792)
        doc.new_page(width=842, height=595)
        doc.new_page(width=612, height=792)
        source = doc.tobytes()
        doc.close()

        pages = _pages(apply_paged(source, logo, WatermarkSpec(scale=1.0)))
        assert [(w, h) for w, h, _, _ in pages] == [(612, 792), (842, 595), (612, 792)]
        assert all(images > 0 for _, _, _, images in pages)

    def test_dense_grid_finishes_quickly(self, sample_pdf, logo):
        """Two 600x800 pages at scale 0.2 draw thousands of copies in bounded time."""
        started = time.perf_counter()
        output = apply_paged(sample_pdf, logo, WatermarkSpec(opacity=0.25, scale=0.2, spacing=2.0))
        elapsed = time.perf_counter() - started

        assert elapsed < 10
        with pymupdf.open(stream=output, filetype="pdf") as doc:
            assert doc.page_count == 2
            assert len(doc[0].get_image_info()) > 1000

    def test_garbage_input(self, logo):
        """Bytes that are not a PDF are rejected as corrupt."""
        with pytest.raises(CorruptDocumentError):
            apply_paged(b"this is not a pdf", logo, WatermarkSpec())

    def test_empty_input(self, logo):
        """An empty body is rejected as corrupt."""
        with pytest.raises(CorruptDocumentError):
            apply_paged(b"", logo, WatermarkSpec())
