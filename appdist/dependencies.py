"""
Dependency wiring for the FastAPI app.

Clients are built once per process from settings and handed to routes through
``Depends``; tests swap them with ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from appdist.config import get_settings
from appdist.db import DbClient, InMemoryDbClient, PostgresDbClient
from appdist.releases import ReleaseManager
from appdist.storage import (
    InMemoryStorageClient,
    LocalStorageClient,
    S3StorageClient,
    StorageClient,
)

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so the connection pool is shared across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory document store")
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _storage_client = InMemoryStorageClient()
    elif settings.s3_bucket:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url or "",
            timeout_seconds=settings.storage_timeout_seconds,
        )
    elif settings.local_upload_dir:
        _storage_client = LocalStorageClient(
            root=settings.local_upload_dir, base_url=settings.public_base_url
        )
    else:
        logger.info("Using in-memory blob storage")
        _storage_client = InMemoryStorageClient()
    return _storage_client


def get_release_manager(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> ReleaseManager:
    return ReleaseManager(db, storage)
