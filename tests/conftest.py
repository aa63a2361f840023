"""
Pytest configuration and fixtures for Docmark Backend tests.
"""

import os
import shutil
import tempfile

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["DOCMARK_STORAGE_BACKEND"] = "filesystem"
os.environ["DOCMARK_STORAGE_ROOT"] = tempfile.mkdtemp(prefix="docmark_test_objects_")
os.environ["DOCMARK_LOGO_PATH"] = os.path.join(os.environ["DOCMARK_STORAGE_ROOT"], "missing-logo.png")

from docmark_backend.configuration import load_config, watermark_specs  # noqa: E402
from docmark_backend.document_store import DocumentStore  # noqa: E402
from docmark_backend.main import create_app  # noqa: E402
from docmark_backend.object_store import FilesystemObjectStore  # noqa: E402
from docmark_backend.pipeline import WatermarkService  # noqa: E402
from docmark_backend.source_fetcher import SourceFetcher  # noqa: E402

from helpers import BOUNDARY, make_jpeg, make_logo, make_pdf, make_png  # noqa: E402

VIEW_BASE_URL = "https://visionfarm.tech/view"


@pytest.fixture(scope="session", autouse=True)
def cleanup_env_storage():
    """Remove the storage root used by the module-level app."""
    yield
    shutil.rmtree(os.environ["DOCMARK_STORAGE_ROOT"], ignore_errors=True)


@pytest.fixture
def logo_path(tmp_path):
    path = tmp_path / "logo-watermark.png"
    make_logo().save(path, format="PNG")
    return path


@pytest.fixture
def logo():
    return make_logo()


@pytest.fixture
def sample_pdf():
    """Two 600x800 pt pages."""
    return make_pdf()


@pytest.fixture
def sample_png():
    return make_png()


@pytest.fixture
def sample_jpeg():
    return make_jpeg()


@pytest.fixture
def object_store(tmp_path):
    return FilesystemObjectStore(tmp_path / "objects", public_base_url="http://testserver/files")


@pytest.fixture
def document_store(object_store):
    return DocumentStore(object_store, view_base_url=VIEW_BASE_URL)


@pytest.fixture
def config():
    return load_config({"documents": {"view_base_url": VIEW_BASE_URL}})


@pytest.fixture
def service(config, document_store, logo_path):
    paged_spec, raster_spec = watermark_specs(config)
    service = WatermarkService(
        documents=document_store,
        fetcher=SourceFetcher(),
        logo_path=logo_path,
        paged_spec=paged_spec,
        raster_spec=raster_spec,
    )
    yield service
    service.shutdown()


@pytest.fixture
def client(config, service):
    """Create a test client for the FastAPI app."""
    return TestClient(create_app(config, service=service))


@pytest.fixture
def upload_headers():
    return {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"}
