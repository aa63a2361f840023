import pytest

from docmark_backend.utils import normalize_media_type, sanitize_file_name, with_extension


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("report.pdf", "report.pdf"),
        ("Q3 report (final).pdf", "Q3-report-final-.pdf"),
        ("C:\\scans\\map.png", "map.png"),
        ("../../etc/passwd", "passwd"),
        (".hidden.png", "hidden.png"),
        ("metadata.json", "file-metadata.json"),
        ("???", "document"),
        ("", "document"),
    ],
)
def test_sanitize_file_name(raw, expected):
    """File names are reduced to a safe basename."""
    assert sanitize_file_name(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("application/pdf", "application/pdf"),
        ("IMAGE/PNG", "image/png"),
        ("image/jpg", "image/jpeg"),
        ("image/jpeg; charset=binary", "image/jpeg"),
        ("", ""),
    ],
)
def test_normalize_media_type(raw, expected):
    """Media types are lower-cased, stripped of parameters and aliased."""
    assert normalize_media_type(raw) == expected


def test_with_extension():
    """The extension is replaced or appended."""
    assert with_extension("photo.jpeg", ".png") == "photo.png"
    assert with_extension("archive.v2.jpg", ".png") == "archive.v2.png"
    assert with_extension("scan", ".png") == "scan.png"
