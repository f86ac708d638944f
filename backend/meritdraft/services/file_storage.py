"""
Byte storage for uploaded petition documents (CVs, job offers).

Two backends behind one interface: a local directory and an S3 bucket.
Paths are opaque strings produced by ``generate_storage_path``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional
from uuid import UUID

import boto3
from botocore.exceptions import ClientError

from meritdraft.core.config import settings
from meritdraft.core.logger import logger


def generate_storage_path(file_id: UUID, filename: str) -> str:
    """``<2-char prefix>/<file_id>_<sanitized name><ext>``"""
    base, ext = os.path.splitext(os.path.basename(filename.replace("\\", "/")) or "file")
    base = base.replace(" ", "_").replace("/", "_").replace("\\", "_")
    file_id_str = str(file_id)
    return f"{file_id_str[:2]}/{file_id_str}_{base}{ext}"


class FileStorage:
    """Interface shared by the storage backends."""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def download(self, path: str) -> bytes:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError


class LocalFileStorage(FileStorage):
    def __init__(self, base_dir: str = settings.LOCAL_STORAGE_DIR):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        full = (self.base_dir / path).resolve()
        if full != self.base_dir and self.base_dir not in full.parents:
            raise ValueError(f"Storage path escapes base directory: {path}")
        return full

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        full = self._resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        try:
            full.write_bytes(data)
        except OSError:
            full.unlink(missing_ok=True)
            raise
        logger.info("Stored %d bytes at %s", len(data), path)
        return path

    def download(self, path: str) -> bytes:
        full = self._resolve(path)
        if not full.is_file():
            raise FileNotFoundError(path)
        return full.read_bytes()

    def delete(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)
        logger.info("Deleted %s", path)


class S3FileStorage(FileStorage):
    def __init__(self, bucket: str = settings.S3_BUCKET_NAME, client=None):
        self.bucket = bucket
        self.s3_client = client or boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        )

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            self.s3_client.put_object(Bucket=self.bucket, Key=path, Body=data, ContentType=content_type)
        except ClientError as e:
            logger.error("Failed to upload s3://%s/%s: %s", self.bucket, path, e)
            raise
        logger.info("Uploaded %d bytes to s3://%s/%s", len(data), self.bucket, path)
        return path

    def download(self, path: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404"):
                raise FileNotFoundError(path) from e
            logger.error("Failed to download s3://%s/%s: %s", self.bucket, path, e)
            raise
        return response["Body"].read()

    def delete(self, path: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            logger.error("Failed to delete s3://%s/%s: %s", self.bucket, path, e)
            raise
        logger.info("Deleted s3://%s/%s", self.bucket, path)


_storage: Optional[FileStorage] = None


def get_file_storage() -> FileStorage:
    """Backend selected by STORAGE_BACKEND, created on first use."""
    global _storage
    if _storage is None:
        backend = settings.STORAGE_BACKEND.lower()
        if backend == "s3":
            _storage = S3FileStorage()
        elif backend == "local":
            _storage = LocalFileStorage()
        else:
            raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    return _storage
