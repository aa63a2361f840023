"""
Object store backends for watermarked assets and metadata records.

This module provides:
- The ObjectStore interface used by the document store
- A filesystem backend for local development and tests
- An S3 backend for deployments, including presigned direct uploads

Every backend reports failures as StorageError so callers never see
boto3 or OS exceptions directly.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from omegaconf import DictConfig

from .errors import StorageError
from .utils import ensure_directory

logger = logging.getLogger(__name__)

# Where the API mounts the filesystem backend when no public URL is configured
DEFAULT_FILES_URL = "http://localhost:8000/files"


@dataclass(frozen=True)
class StoredObject:
    key: str
    url: str
    size: int = 0


class ObjectStore(ABC):
    """Flat key/value blob storage with public read locators."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    def list(self, prefix: str) -> List[StoredObject]:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def url_for(self, key: str) -> str:
        ...

    def presign_upload(self, key: str, content_type: str, max_bytes: int, expires_in: int) -> Dict[str, Any]:
        """
        Return ``{"url": ..., "fields": {...}}`` for a direct browser upload.

        Raises:
            StorageError: If the backend cannot issue direct uploads
        """
        raise StorageError(f"{type(self).__name__} does not support direct uploads")


class FilesystemObjectStore(ObjectStore):
    """
    Stores objects as files below ``root``.

    Keys map to relative paths; anything resolving outside ``root`` is
    rejected. ``public_base_url`` is the prefix under which the API serves
    the root directory.
    """

    def __init__(self, root: Path, public_base_url: str = "") -> None:
        self.root = ensure_directory(Path(root)).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"Invalid object key: {key}")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        path = self._path(key)
        tmp_path = path.with_name(f".{path.name}.partial")
        try:
            ensure_directory(path.parent)
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as exc:
            logger.error(f"Filesystem write failed for {key}: {exc}")
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {key}: {exc}") from exc
        logger.info(f"Stored {key} ({len(data)} bytes, {content_type})")
        return StoredObject(key=key, url=self.url_for(key), size=len(data))

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc

    def list(self, prefix: str) -> List[StoredObject]:
        directory = self._path(prefix)
        if not directory.is_dir():
            return []
        try:
            files = sorted(p for p in directory.rglob("*") if p.is_file() and not p.name.endswith(".partial"))
        except OSError as exc:
            raise StorageError(f"Failed to list {prefix}: {exc}") from exc
        objects = []
        for file_path in files:
            key = file_path.relative_to(self.root).as_posix()
            objects.append(StoredObject(key=key, url=self.url_for(key), size=file_path.stat().st_size))
        return objects

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {key}: {exc}") from exc


class S3ObjectStore(ObjectStore):
    """
    Stores objects in an S3 bucket.

    Objects get a public-read ACL only when ``public_read`` is set. Buckets
    with ACLs disabled grant read access through a bucket policy instead.
    """

    def __init__(
        self,
        bucket: str,
        client: Any = None,
        public_base_url: str = "",
        region: str = "",
        public_read: bool = False,
    ) -> None:
        if not bucket:
            raise StorageError("S3_BUCKET_NAME not configured")
        self.bucket = bucket
        self.client = client or boto3.client("s3", region_name=region or None)
        self.region = region
        self.public_base_url = public_base_url.rstrip("/")
        self.public_read = public_read

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        params: Dict[str, Any] = {"Bucket": self.bucket, "Key": key, "Body": data, "ContentType": content_type}
        if self.public_read:
            params["ACL"] = "public-read"
        try:
            logger.info(f"Uploading {key} to s3://{self.bucket}")
            self.client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 upload failed: {e}")
            raise StorageError(f"Failed to store {key}: {e}") from e
        return StoredObject(key=key, url=self.url_for(key), size=len(data))

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 download failed for {key}: {e}")
            raise StorageError(f"Failed to read {key}: {e}") from e

    def list(self, prefix: str) -> List[StoredObject]:
        objects: List[StoredObject] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    objects.append(StoredObject(key=item["Key"], url=self.url_for(item["Key"]), size=item.get("Size", 0)))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 list failed for {prefix}: {e}")
            raise StorageError(f"Failed to list {prefix}: {e}") from e
        return objects

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 delete failed for {key}: {e}")
            raise StorageError(f"Failed to delete {key}: {e}") from e

    def presign_upload(self, key: str, content_type: str, max_bytes: int, expires_in: int) -> Dict[str, Any]:
        try:
            post = self.client.generate_presigned_post(
                Bucket=self.bucket,
                Key=key,
                Fields={"Content-Type": content_type},
                Conditions=[
                    {"Content-Type": content_type},
                    ["content-length-range", 1, max_bytes],
                ],
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned upload: {e}")
            raise StorageError(f"Failed to issue upload token: {e}") from e
        logger.info(f"Generated presigned upload for {key} (expires in {expires_in}s)")
        return post


def create_object_store(config: DictConfig, client: Optional[Any] = None) -> ObjectStore:
    """Build the object store named by ``config.storage.backend``."""
    storage = config.storage
    if storage.backend == "filesystem":
        return FilesystemObjectStore(Path(storage.root), public_base_url=storage.public_base_url or DEFAULT_FILES_URL)
    if storage.backend == "s3":
        return S3ObjectStore(
            storage.bucket,
            client=client,
            public_base_url=storage.public_base_url,
            region=storage.region,
            public_read=storage.public_read,
        )
    raise ValueError(f"Unknown storage backend: {storage.backend}")
