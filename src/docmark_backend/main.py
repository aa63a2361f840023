from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from omegaconf import DictConfig
from starlette.exceptions import HTTPException as StarletteHTTPException

from .configuration import configure_logging, load_config
from .document_store import DocumentStore
from .errors import DocmarkError, MalformedRequestError
from .models import DocumentResponse, ErrorResponse, RemoteWatermarkRequest, UploadTokenRequest, UploadTokenResponse
from .object_store import FilesystemObjectStore, create_object_store
from .pipeline import WatermarkService
from .source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def build_service(config: DictConfig) -> WatermarkService:
    """Construct the process-wide collaborators described by ``config``."""
    objects = create_object_store(config)
    documents = DocumentStore(objects, view_base_url=config.documents.view_base_url)
    fetcher = SourceFetcher(
        max_bytes=config.documents.max_upload_bytes,
        allowed_prefixes=list(config.ingest.allowed_source_prefixes),
        timeout=config.ingest.timeout_seconds,
    )
    return WatermarkService.from_config(config, documents, fetcher)


def get_service(request: Request) -> WatermarkService:
    return request.app.state.service


def _error_body(error: str, message: Optional[str] = None) -> Dict[str, str]:
    return ErrorResponse(error=error, message=message).model_dump(exclude_none=True)


def create_app(config: Optional[DictConfig] = None, service: Optional[WatermarkService] = None) -> FastAPI:
    config = config if config is not None else load_config()
    configure_logging(config.logging.level)
    service = service or build_service(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.service.shutdown()

    app = FastAPI(title="Docmark API", version="0.1.0", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.server.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    objects = service.documents.objects
    if isinstance(objects, FilesystemObjectStore):
        app.mount("/files", StaticFiles(directory=objects.root), name="files")

    @app.exception_handler(DocmarkError)
    async def handle_docmark_error(request: Request, exc: DocmarkError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error, exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = "; ".join(f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors())
        return JSONResponse(status_code=400, content=_error_body(MalformedRequestError.error, messages))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"{request.method} {request.url.path} crashed")
        return JSONResponse(status_code=500, content=_error_body("Internal server error", str(exc)))

    @app.get("/healthz")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/upload", response_model=DocumentResponse, responses=ERROR_RESPONSES)
    async def upload(request: Request, service: WatermarkService = Depends(get_service)) -> DocumentResponse:
        body = await request.body()
        document = await service.run(service.watermark_upload, body, request.headers.get("content-type"))
        return DocumentResponse(document=document)

    @app.post("/api/watermark", response_model=DocumentResponse, responses=ERROR_RESPONSES)
    async def watermark(payload: RemoteWatermarkRequest, service: WatermarkService = Depends(get_service)) -> DocumentResponse:
        document = await service.run(service.watermark_remote, payload)
        return DocumentResponse(document=document)

    @app.get("/api/documents", response_model=DocumentResponse, responses=ERROR_RESPONSES)
    def get_document(
        id: Optional[str] = Query(None),
        service: WatermarkService = Depends(get_service),
    ) -> DocumentResponse:
        if not id:
            raise MalformedRequestError("Document ID is required")
        return DocumentResponse(document=service.retrieve(id))

    @app.post("/api/upload-token", response_model=UploadTokenResponse, responses=ERROR_RESPONSES)
    def upload_token(payload: UploadTokenRequest, service: WatermarkService = Depends(get_service)) -> UploadTokenResponse:
        return service.issue_upload_token(payload)

    return app


app = create_app()


def run() -> None:
    """
    Convenience entrypoint, also exposed as the ``docmark-api`` script:

        uvicorn docmark_backend.main:app --host 0.0.0.0 --port 8000
    """
    import uvicorn

    uvicorn.run("docmark_backend.main:app", host="0.0.0.0", port=8000, reload=False)
