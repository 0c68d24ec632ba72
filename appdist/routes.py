"""
HTTP routes for the distribution backend API.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from appdist import projects
from appdist.config import Settings, get_settings
from appdist.db import DbClient
from appdist.dependencies import get_db_client, get_release_manager, get_storage_client
from appdist.releases import ReleaseManager, load_project
from appdist.responses import success_response
from appdist.schemas import (
    CreateProjectRequest,
    UpdateEnvironmentsRequest,
    UpdateProjectRequest,
    UpdateRnPlatformsRequest,
)
from appdist.storage import StorageClient
from appdist.uploads import accept_upload, discard_upload

logger = logging.getLogger(__name__)

router = APIRouter()


# Projects


@router.post("/projects", status_code=201)
def create_project(
    payload: CreateProjectRequest, db: DbClient = Depends(get_db_client)
):
    project = projects.create_project(
        db,
        name=payload.name,
        platforms=payload.platforms,
        description=payload.description,
        rn_platforms=payload.rn_platforms,
    )
    return success_response(201, project.as_dict(), "Project created successfully.")


@router.get("/projects")
def list_projects(db: DbClient = Depends(get_db_client)):
    return success_response(200, [p.as_dict() for p in db.list_projects()])


@router.get("/projects/{project_id}")
def get_project(project_id: str, db: DbClient = Depends(get_db_client)):
    project = load_project(db, project_id)
    return success_response(200, project.as_dict())


@router.put("/projects/{project_id}")
def update_project_details(
    project_id: str,
    payload: UpdateProjectRequest,
    db: DbClient = Depends(get_db_client),
):
    project = projects.update_project_details(
        db,
        project_id,
        name=payload.name,
        description=payload.description,
        platforms=payload.platforms,
    )
    return success_response(
        200, project.as_dict(), "Project details updated successfully."
    )


@router.put("/projects/{project_id}/rn-platforms")
def update_rn_platforms(
    project_id: str,
    payload: UpdateRnPlatformsRequest,
    db: DbClient = Depends(get_db_client),
):
    project = projects.update_rn_platforms(db, project_id, payload.rn_platforms)
    return success_response(
        200, project.as_dict(), "Bundle platforms updated successfully."
    )


@router.delete("/projects/{project_id}")
def delete_project(
    project_id: str,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    projects.delete_project(db, storage, project_id)
    return success_response(
        200, None, "Project and associated files deleted successfully."
    )


# Native app versions (APK/IPA)


@router.post("/projects/{project_id}/versions", status_code=201)
def add_app_version(
    project_id: str,
    app_file: Optional[UploadFile] = File(None, alias="appFile"),
    platform: Optional[str] = Form(None),
    version_name: Optional[str] = Form(None, alias="versionName"),
    build_number: Optional[str] = Form(None, alias="buildNumber"),
    release_notes: Optional[str] = Form(None, alias="releaseNotes"),
    manager: ReleaseManager = Depends(get_release_manager),
    settings: Settings = Depends(get_settings),
):
    try:
        incoming = accept_upload(app_file, settings.max_upload_bytes)
        version = manager.ingest_app_version(
            project_id,
            incoming,
            platform=platform,
            version_name=version_name,
            build_number=build_number,
            release_notes=release_notes,
        )
    finally:
        discard_upload(app_file)
    return success_response(201, version.as_dict(), "App version added successfully.")


@router.delete("/projects/{project_id}/versions/{version_id}")
def delete_app_version(
    project_id: str,
    version_id: str,
    manager: ReleaseManager = Depends(get_release_manager),
):
    manager.delete_app_version(project_id, version_id)
    return success_response(200, None, "Version deleted successfully.")


@router.put("/projects/{project_id}/versions/{version_id}/environments")
def update_version_environments(
    project_id: str,
    version_id: str,
    payload: UpdateEnvironmentsRequest,
    manager: ReleaseManager = Depends(get_release_manager),
):
    version = manager.update_version_environments(
        project_id, version_id, payload.active_environments
    )
    return success_response(
        200, version.as_dict(), "Version environments updated successfully."
    )


# OTA bundle updates


@router.post("/projects/{project_id}/bundles", status_code=201)
def upload_bundle_update(
    project_id: str,
    bundle_file: Optional[UploadFile] = File(None, alias="bundleFile"),
    platform: Optional[str] = Form(None),
    bundle_version: Optional[str] = Form(None, alias="bundleVersion"),
    bundle_hash: Optional[str] = Form(None, alias="bundleHash"),
    description: Optional[str] = Form(None),
    is_mandatory: Optional[str] = Form(None, alias="isMandatory"),
    manager: ReleaseManager = Depends(get_release_manager),
    settings: Settings = Depends(get_settings),
):
    try:
        incoming = accept_upload(bundle_file, settings.max_upload_bytes)
        bundle = manager.ingest_bundle(
            project_id,
            incoming,
            platform=platform,
            bundle_version=bundle_version,
            bundle_hash=bundle_hash,
            description=description,
            is_mandatory=is_mandatory,
        )
    finally:
        discard_upload(bundle_file)
    return success_response(
        201, bundle.as_dict(), "Bundle update uploaded successfully."
    )


@router.get("/projects/{project_id}/bundles/latest")
def get_latest_bundle_info(
    project_id: str,
    platform: Optional[str] = Query(None),
    current_version: Optional[str] = Query(None, alias="currentClientBundleVersion"),
    manager: ReleaseManager = Depends(get_release_manager),
):
    bundle = manager.resolve_latest_bundle(project_id, platform, current_version)
    if bundle is None:
        return Response(status_code=204)
    return success_response(200, bundle.as_update_info())


@router.delete("/projects/{project_id}/bundles/{bundle_id}")
def delete_bundle_update(
    project_id: str,
    bundle_id: str,
    manager: ReleaseManager = Depends(get_release_manager),
):
    manager.delete_bundle(project_id, bundle_id)
    return success_response(200, None, "Bundle update deleted successfully.")


@router.get("/health")
def health(db: DbClient = Depends(get_db_client)):
    return success_response(
        200,
        {
            "status": "OK",
            "database": "connected" if db.ping() else "disconnected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
