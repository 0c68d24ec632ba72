"""
Project CRUD and platform-set updates.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from appdist.db import DbClient
from appdist.errors import StorageError, ValidationError
from appdist.models import BUNDLE_PLATFORMS, NATIVE_PLATFORMS, Project, new_id
from appdist.releases import load_project, version_blob_prefix
from appdist.storage import StorageClient

logger = logging.getLogger(__name__)


def _clean_platforms(value: Any, allowed: tuple[str, ...], field_name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ValidationError(f"{field_name} must be an array of strings.")
    platforms = [p.strip().lower() for p in value]
    invalid = [p for p in platforms if p not in allowed]
    if invalid:
        raise ValidationError(
            f"Invalid {field_name}: {', '.join(invalid)}. "
            f"Allowed: {', '.join(allowed)}."
        )
    return list(dict.fromkeys(platforms))


def create_project(
    db: DbClient,
    name: Optional[str],
    platforms: Any,
    description: Optional[str] = None,
    rn_platforms: Any = None,
) -> Project:
    if (
        not name
        or not name.strip()
        or not isinstance(platforms, list)
        or not platforms
    ):
        raise ValidationError("Project name and at least one platform are required.")
    project = Project(
        id=new_id(),
        name=name.strip(),
        description=(description or "").strip(),
        platforms=_clean_platforms(platforms, NATIVE_PLATFORMS, "platforms"),
        rn_platforms=(
            _clean_platforms(rn_platforms, BUNDLE_PLATFORMS, "rnPlatforms")
            if rn_platforms is not None
            else []
        ),
        created_at=round(time.time(), 6),
    )
    db.save_project(project)
    logger.info("Created project %s (%s)", project.id, project.name)
    return project


def update_project_details(
    db: DbClient,
    project_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    platforms: Any = None,
) -> Project:
    project = load_project(db, project_id)
    if name is not None:
        if not name.strip():
            raise ValidationError("Project name cannot be empty.")
        project.name = name.strip()
    if description is not None:
        project.description = description.strip()
    if platforms is not None:
        cleaned = _clean_platforms(platforms, NATIVE_PLATFORMS, "platforms")
        if not cleaned:
            raise ValidationError("At least one platform is required.")
        project.platforms = cleaned
    db.save_project(project)
    return project


def update_rn_platforms(db: DbClient, project_id: str, rn_platforms: Any) -> Project:
    """Replace the bundle platforms. An empty list disables bundle uploads."""
    cleaned = _clean_platforms(rn_platforms, BUNDLE_PLATFORMS, "rnPlatforms")
    project = load_project(db, project_id)
    project.rn_platforms = cleaned
    db.save_project(project)
    logger.info("Project %s bundle platforms set to %s", project.id, cleaned)
    return project


def delete_project(db: DbClient, storage: StorageClient, project_id: str) -> None:
    project = load_project(db, project_id)
    try:
        removed = storage.delete_prefix(version_blob_prefix(project.id))
        logger.info("Removed %d version blobs for project %s", removed, project.id)
    except StorageError:
        logger.warning(
            "Could not delete version blobs for project %s", project.id, exc_info=True
        )
    db.delete_project(project.id)
    logger.info("Deleted project %s", project.id)
