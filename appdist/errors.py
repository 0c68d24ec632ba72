"""
Error taxonomy for the distribution backend.

Domain code raises these; the app boundary (``appdist.app``) turns them into
the uniform response envelope with the matching HTTP status.
"""

from __future__ import annotations

from typing import Optional


class AppDistError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppDistError):
    """Missing or malformed client input. Never retried automatically."""

    status_code = 400


class NotFoundError(AppDistError):
    status_code = 404


class ConflictError(AppDistError):
    """The exact content already exists."""

    status_code = 409


class StorageError(Exception):
    """Raised by storage clients when a blob operation fails or times out."""


class StorageUploadError(AppDistError):
    """
    Blob upload failed before anything was written to the document store.
    Safe for the caller to retry.
    """

    status_code = 500


class PartialFailureError(AppDistError):
    """
    The blob was committed but the project document could not be saved.

    The blob at ``blob_path`` is orphaned. Re-uploading would orphan a second
    blob, so callers are told to contact support instead of retrying.
    """

    status_code = 500

    def __init__(self, message: str, blob_path: str, details: Optional[str] = None):
        super().__init__(message, details)
        self.blob_path = blob_path
