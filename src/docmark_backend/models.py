from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Placement(str, Enum):
    TILED = "tiled"
    CENTERED = "centered"


class WatermarkSpec(BaseModel):
    """
    How a logo is laid over an asset.

    Attributes:
        opacity: Alpha multiplier for the logo, strictly between 0 and 1
        placement: Tiled grid or a single centered copy
        scale: Raster engine: fraction of min(width, height).
            Paged engine: factor on the logo's natural size.
        spacing: Stride multiplier between repeated tiles (> 1 leaves gaps)
        logo_width: Absolute tile width in pixels (raster only, overrides scale)
    """

    model_config = ConfigDict(frozen=True)

    opacity: float = Field(0.25, gt=0, lt=1)
    placement: Placement = Placement.TILED
    scale: float = Field(0.2, gt=0)
    spacing: float = Field(2.0, gt=1)
    logo_width: Optional[int] = Field(None, gt=0)


@dataclass
class UploadedAsset:
    data: bytes
    media_type: str
    file_name: str
    fields: Dict[str, str] = field(default_factory=dict)


class Document(BaseModel):
    """Persisted metadata record; serialised with the camelCase wire names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    client_name: str = Field(alias="clientName", min_length=1)
    title: str = Field(alias="docTitle", min_length=1)
    description: str = ""
    file_name: str = Field(alias="fileName")
    mime_type: str = Field(alias="mimeType")
    file_url: str = Field(alias="fileUrl")
    upload_date: str = Field(alias="uploadDate")
    link: str


class DocumentResponse(BaseModel):
    success: bool = True
    document: Document


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None


class RemoteWatermarkRequest(BaseModel):
    """JSON body for watermarking an asset that was uploaded directly to storage."""

    model_config = ConfigDict(populate_by_name=True)

    blob_url: str = Field("", alias="blobUrl")
    file_name: str = Field("", alias="fileName")
    mime_type: str = Field("", alias="mimeType")
    client_name: str = Field("", alias="clientName")
    doc_title: str = Field("", alias="docTitle")
    description: Optional[str] = None


class UploadTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pathname: str
    content_type: str = Field(alias="contentType")


class UploadTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    fields: Dict[str, str]
    key: str
    blob_url: str = Field(alias="blobUrl")
    maximum_size_in_bytes: int = Field(alias="maximumSizeInBytes")
