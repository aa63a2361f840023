"""
Docmark Backend - watermarking and document hosting API

This package provides a FastAPI-based web service that stamps a translucent
brand logo onto client documents and hosts the result. It enables:

- Multipart uploads decoded without a framework form parser
- Tiled or centered logo overlays on PDFs and raster images
- Watermarking of assets uploaded directly to object storage
- Document metadata records retrievable by generated identifier

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - pipeline: Validation, engine dispatch and worker pool
    - multipart: Binary-safe multipart/form-data decoder
    - raster / paged: Watermark engines for images and PDFs
    - document_store: Identifier scheme and metadata persistence
    - object_store: Filesystem and S3 storage backends
    - configuration: Config loading and merging logic

Usage:
    Run the API server with:
        uvicorn docmark_backend.main:app --reload --host 0.0.0.0 --port 8000
"""
