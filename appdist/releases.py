"""
Ingestion and resolution of native app versions and OTA bundle updates.

Ordering policy: recency. Stored collections are kept newest-first by creation
time and the client-facing "latest bundle" query returns the most recently
created bundle for the platform. Semantic versions are validated and
normalized but never compared.

Creating a record is a three-step sequence: reserve an id, commit the blob to
a path built from that id, then commit the project document. A storage
failure leaves the document untouched; a document failure after the blob is
committed is reported as a partial failure because the blob is left orphaned.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional

from appdist.db import DbClient
from appdist.errors import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    StorageError,
    StorageUploadError,
    ValidationError,
)
from appdist.models import (
    APP_VERSION_PLATFORMS,
    BUNDLE_PLATFORMS,
    ENVIRONMENTS,
    AppVersion,
    BundleUpdate,
    Project,
    format_file_size,
    new_id,
)
from appdist.storage import StorageClient
from appdist.uploads import IncomingFile
from appdist.versioning import require_version

logger = logging.getLogger(__name__)

MIN_BUNDLE_HASH_LENGTH = 10
_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def check_id(value: str, label: str) -> None:
    if not _ID_RE.match(value or ""):
        raise ValidationError(f"Invalid {label} ID format.")


def load_project(db: DbClient, project_id: str) -> Project:
    check_id(project_id, "project")
    project = db.get_project(project_id)
    if project is None:
        raise NotFoundError("Project not found.")
    return project


def parse_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def version_blob_prefix(project_id: str, version_id: str | None = None) -> str:
    if version_id is None:
        return f"projects/{project_id}/versions/"
    return f"projects/{project_id}/versions/{version_id}/"


def bundle_blob_prefix(project_id: str, bundle_id: str) -> str:
    return f"projects/{project_id}/bundles/{bundle_id}/"


class ReleaseManager:
    """Owns every mutation of a project's versions and bundle updates."""

    def __init__(
        self,
        db: DbClient,
        storage: StorageClient,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.storage = storage
        self.clock = clock

    def _commit_blob(self, incoming: IncomingFile, blob_path: str, kind: str) -> str:
        try:
            return self.storage.upload_fileobj(
                incoming.stream, blob_path, incoming.content_type
            )
        except StorageError as exc:
            logger.exception("Storage upload failed for %s", blob_path)
            raise StorageUploadError(
                f"Failed to upload {kind} file to storage. Please try again.",
                details=str(exc),
            ) from exc

    def _commit_project(self, project: Project, blob_path: str, kind: str) -> None:
        try:
            self.db.save_project(project)
        except Exception as exc:
            logger.critical(
                "ORPHANED_BLOB project=%s path=%s: %s stored but project save failed",
                project.id,
                blob_path,
                kind,
                exc_info=True,
            )
            raise PartialFailureError(
                f"The {kind} file was stored but the project could not be updated. "
                "Do not re-upload; please contact support.",
                blob_path=blob_path,
                details=str(exc),
            ) from exc

    # Bundle updates

    def ingest_bundle(
        self,
        project_id: str,
        incoming: Optional[IncomingFile],
        platform: Optional[str],
        bundle_version: Optional[str],
        bundle_hash: Optional[str],
        description: Optional[str] = None,
        is_mandatory=False,
    ) -> BundleUpdate:
        if incoming is None:
            raise ValidationError("Bundle file (.zip or .jsbundle) is required.")
        if not platform or not bundle_version or not bundle_hash:
            raise ValidationError(
                "Platform, bundle version, and bundle hash are required."
            )
        platform = platform.strip().lower()
        if platform not in BUNDLE_PLATFORMS:
            raise ValidationError(
                f"Invalid platform: {platform}. Must be one of: "
                f"{', '.join(BUNDLE_PLATFORMS)}."
            )
        if not isinstance(bundle_hash, str) or len(bundle_hash) < MIN_BUNDLE_HASH_LENGTH:
            raise ValidationError(
                f"Bundle hash must be at least {MIN_BUNDLE_HASH_LENGTH} characters."
            )
        normalized_version = require_version(bundle_version)

        project = load_project(self.db, project_id)
        if not project.rn_platforms:
            raise ValidationError(
                "This project has no bundle platforms configured. "
                "Enable rnPlatforms for the project before uploading bundles."
            )
        if platform not in project.rn_platforms:
            raise ValidationError(
                f"Project does not support bundle platform: {platform}. "
                f"Supported: {', '.join(project.rn_platforms)}."
            )
        for existing in project.bundle_updates:
            if existing.platform == platform and existing.bundle_hash == bundle_hash:
                raise ConflictError(
                    f"A bundle with hash {bundle_hash} already exists for platform "
                    f"{platform} (version {existing.bundle_version})."
                )

        bundle_id = new_id()
        blob_path = bundle_blob_prefix(project.id, bundle_id) + incoming.filename
        bundle_url = self._commit_blob(incoming, blob_path, "bundle")

        bundle = BundleUpdate(
            id=bundle_id,
            platform=platform,
            bundle_version=normalized_version,
            bundle_hash=bundle_hash,
            bundle_url=bundle_url,
            file_name=incoming.filename,
            file_size=format_file_size(incoming.size),
            file_path=blob_path,
            description=description or "",
            is_mandatory=parse_flag(is_mandatory),
            # Documents store timestamps at microsecond precision.
            created_at=round(self.clock(), 6),
        )
        project.add_bundle_update(bundle)
        self._commit_project(project, blob_path, "bundle")
        logger.info(
            "Stored bundle %s (%s %s) for project %s",
            bundle.id,
            platform,
            normalized_version,
            project.id,
        )
        return bundle

    def resolve_latest_bundle(
        self,
        project_id: str,
        platform: Optional[str],
        current_version: Optional[str],
    ) -> Optional[BundleUpdate]:
        """
        Return the bundle the client should fetch next, or ``None``.

        The client's version is validated only; the newest upload for the
        platform wins even when its version is not greater.
        """
        if not platform or not current_version:
            raise ValidationError(
                "Platform and current client bundle version are required "
                "query parameters."
            )
        require_version(current_version, "current client bundle version")
        platform = platform.strip().lower()
        if platform not in BUNDLE_PLATFORMS:
            raise ValidationError(
                f"Invalid platform: {platform}. Must be one of: "
                f"{', '.join(BUNDLE_PLATFORMS)}."
            )
        project = load_project(self.db, project_id)

        candidates = project.bundles_for_platform(platform)
        if not candidates or not candidates[0].bundle_hash:
            return None
        return candidates[0]

    def delete_bundle(self, project_id: str, bundle_id: str) -> None:
        project = load_project(self.db, project_id)
        check_id(bundle_id, "bundle")
        bundle = project.find_bundle_update(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle update not found in this project.")
        # Bundle blobs are URL-addressed and left in place.
        project.bundle_updates.remove(bundle)
        self.db.save_project(project)
        logger.info("Deleted bundle %s from project %s", bundle_id, project_id)

    # Native app versions

    def ingest_app_version(
        self,
        project_id: str,
        incoming: Optional[IncomingFile],
        platform: Optional[str],
        version_name: Optional[str],
        build_number: Optional[str],
        release_notes: Optional[str] = None,
    ) -> AppVersion:
        if incoming is None:
            raise ValidationError("App file is required.")
        if not platform or not version_name or not build_number:
            raise ValidationError(
                "Platform, version name, and build number are required."
            )
        project = load_project(self.db, project_id)
        key = platform.strip().lower()
        if key not in APP_VERSION_PLATFORMS or key not in project.platforms:
            raise ValidationError(
                f"Platform '{platform}' is not supported by this project. "
                f"Supported platforms: {', '.join(project.platforms)}."
            )

        version_id = new_id()
        blob_path = version_blob_prefix(project.id, version_id) + incoming.filename
        download_url = self._commit_blob(incoming, blob_path, "app")

        version = AppVersion(
            id=version_id,
            platform=APP_VERSION_PLATFORMS[key],
            version_name=version_name,
            build_number=build_number,
            file_name=incoming.filename,
            file_size=format_file_size(incoming.size),
            file_path=blob_path,
            download_url=download_url,
            release_notes=release_notes or "",
            upload_date=round(self.clock(), 6),
        )
        project.add_version(version)
        self._commit_project(project, blob_path, "app")
        logger.info(
            "Stored app version %s (%s %s build %s) for project %s",
            version.id,
            version.platform,
            version_name,
            build_number,
            project.id,
        )
        return version

    def delete_app_version(self, project_id: str, version_id: str) -> None:
        project = load_project(self.db, project_id)
        check_id(version_id, "version")
        version = project.find_version(version_id)
        if version is None:
            raise NotFoundError("Version not found in this project.")
        try:
            self.storage.delete_prefix(version_blob_prefix(project.id, version.id))
        except StorageError:
            logger.warning(
                "Could not delete blobs for version %s; removing record anyway",
                version.id,
                exc_info=True,
            )
        project.versions.remove(version)
        self.db.save_project(project)
        logger.info("Deleted version %s from project %s", version_id, project_id)

    def update_version_environments(
        self, project_id: str, version_id: str, environments
    ) -> AppVersion:
        if not isinstance(environments, list):
            raise ValidationError("activeEnvironments must be an array.")
        invalid = [e for e in environments if e not in ENVIRONMENTS]
        if invalid:
            raise ValidationError(
                f"Invalid environments: {', '.join(map(str, invalid))}. "
                f"Allowed: {', '.join(ENVIRONMENTS)}."
            )
        project = load_project(self.db, project_id)
        check_id(version_id, "version")
        version = project.find_version(version_id)
        if version is None:
            raise NotFoundError("Version not found in this project.")
        version.active_environments = list(dict.fromkeys(environments))
        self.db.save_project(project)
        return version
