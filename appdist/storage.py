"""
Blob storage for uploaded binaries: S3-compatible, local disk and in-memory.

Every client returns a fully-qualified, directly fetchable URL for what it
stores. Failures are raised as ``StorageError``.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from appdist.errors import StorageError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_fileobj(
        self, fileobj: BinaryIO, dest_path: str, content_type: str | None = None
    ) -> str:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None
    fail_uploads: bool = False

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_fileobj(
        self, fileobj: BinaryIO, dest_path: str, content_type: str | None = None
    ) -> str:
        if self.fail_uploads:
            raise StorageError(f"Simulated upload failure for {dest_path}")
        self.stored_objects[dest_path] = fileobj.read()
        return f"{self.base_url}/{dest_path}"

    def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self.stored_objects if k.startswith(prefix)]
        for key in keys:
            del self.stored_objects[key]
        return len(keys)

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class LocalStorageClient:
    """
    Stores blobs under ``root`` on local disk; the app serves that directory
    at ``/files``.
    """

    root: str
    base_url: str

    def _resolve(self, path: str) -> Path:
        root = Path(self.root).resolve()
        target = (root / path).resolve()
        if root not in target.parents and target != root:
            raise StorageError(f"Refusing to touch path outside storage root: {path}")
        return target

    def upload_fileobj(
        self, fileobj: BinaryIO, dest_path: str, content_type: str | None = None
    ) -> str:
        target = self._resolve(dest_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                shutil.copyfileobj(fileobj, out)
        except OSError as exc:
            raise StorageError(f"Failed to write {dest_path}: {exc}") from exc
        return f"{self.base_url.rstrip('/')}/files/{quote(dest_path)}"

    def delete_prefix(self, prefix: str) -> int:
        target = self._resolve(prefix)
        if not target.exists():
            logger.warning("Nothing to delete at %s", target)
            return 0
        try:
            if target.is_dir():
                count = sum(1 for p in target.rglob("*") if p.is_file())
                shutil.rmtree(target)
                return count
            target.unlink()
            return 1
        except OSError as exc:
            raise StorageError(f"Failed to delete {prefix}: {exc}") from exc


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, Tencent COS, MinIO, ...).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""
    timeout_seconds: float = 120.0

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
            connect_timeout=min(self.timeout_seconds, 10.0),
            read_timeout=self.timeout_seconds,
            retries={"max_attempts": 2, "mode": "standard"},
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quote(path)}"
        if self.endpoint:
            scheme, _, host = self.endpoint.partition("://")
            return f"{scheme}://{self.bucket}.{host.rstrip('/')}/{quote(path)}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(path)}"

    def upload_fileobj(
        self, fileobj: BinaryIO, dest_path: str, content_type: str | None = None
    ) -> str:
        extra_args = {"ContentType": content_type or "application/octet-stream"}
        try:
            self._client.upload_fileobj(
                fileobj, self.bucket, dest_path, ExtraArgs=extra_args
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload {dest_path}: {exc}") from exc
        return self.public_url(dest_path)

    def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                objects = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                if not objects:
                    continue
                self._client.delete_objects(
                    Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True}
                )
                deleted += len(objects)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete {prefix}: {exc}") from exc
        return deleted
