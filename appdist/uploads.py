"""
Multipart upload intake: extension filter, size ceiling, temp-file cleanup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath
from typing import BinaryIO, Optional

from fastapi import UploadFile

from appdist.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".apk", ".ipa", ".zip", ".jsbundle", ".bundle")


@dataclass
class IncomingFile:
    """An uploaded file that passed the intake checks."""

    filename: str
    size: int
    stream: BinaryIO
    content_type: Optional[str] = None


def safe_filename(filename: str) -> str:
    # Browsers on Windows may send full paths.
    return PurePosixPath(PureWindowsPath(filename).name).name


def check_extension(filename: str) -> None:
    extension = os.path.splitext(filename)[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            "Invalid file type. Only "
            f"{', '.join(ALLOWED_EXTENSIONS)} files are allowed. "
            f"Detected: {extension or '(none)'}"
        )


def _measure(stream: BinaryIO) -> int:
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def accept_upload(upload: Optional[UploadFile], max_bytes: int) -> Optional[IncomingFile]:
    """
    Validate an uploaded file before anything is persisted.

    Returns ``None`` when no file was sent so callers can report the missing
    payload in their own terms.
    """
    if upload is None or not upload.filename:
        return None
    filename = safe_filename(upload.filename)
    check_extension(filename)
    size = _measure(upload.file)
    if size > max_bytes:
        raise ValidationError(
            f"File too large. Max size is {max_bytes // (1024 * 1024)}MB."
        )
    return IncomingFile(
        filename=filename,
        size=size,
        stream=upload.file,
        content_type=upload.content_type,
    )


def discard_upload(upload: Optional[UploadFile]) -> None:
    """Close the spooled temp file; failures are logged, never raised."""
    if upload is None:
        return
    try:
        upload.file.close()
    except OSError:
        logger.warning("Failed to clean up temp upload %s", upload.filename, exc_info=True)
