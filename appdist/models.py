"""
Project aggregate and its owned child records.

``AppVersion`` and ``BundleUpdate`` records only exist inside a ``Project``;
they are created, looked up and removed through the parent, and the whole
project is persisted as one document.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

NATIVE_PLATFORMS = ("ios", "android")
BUNDLE_PLATFORMS = ("android", "ios")
APP_VERSION_PLATFORMS = {"android": "Android", "ios": "iOS"}
ENVIRONMENTS = ("Development", "Staging", "Production")


def new_id() -> str:
    return uuid.uuid4().hex


def format_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def parse_timestamp(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return datetime.fromisoformat(value).timestamp()


def format_file_size(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"


@dataclass
class AppVersion:
    id: str
    platform: str
    version_name: str
    build_number: str
    file_name: str
    file_size: str
    file_path: str
    download_url: str
    release_notes: str = ""
    upload_date: float = field(default_factory=lambda: time.time())
    active_environments: list[str] = field(default_factory=list)

    @property
    def qr_code_value(self) -> str:
        return self.download_url

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "platform": self.platform,
            "versionName": self.version_name,
            "buildNumber": self.build_number,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "filePath": self.file_path,
            "downloadUrl": self.download_url,
            "qrCodeValue": self.qr_code_value,
            "releaseNotes": self.release_notes,
            "uploadDate": format_timestamp(self.upload_date),
            "activeEnvironments": list(self.active_environments),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppVersion":
        return cls(
            id=data["id"],
            platform=data["platform"],
            version_name=data["versionName"],
            build_number=data["buildNumber"],
            file_name=data["fileName"],
            file_size=data["fileSize"],
            file_path=data["filePath"],
            download_url=data["downloadUrl"],
            release_notes=data.get("releaseNotes") or "",
            upload_date=parse_timestamp(data["uploadDate"]),
            active_environments=list(data.get("activeEnvironments") or []),
        )


@dataclass
class BundleUpdate:
    id: str
    platform: str
    bundle_version: str
    bundle_hash: str
    bundle_url: str
    file_name: str
    file_size: str
    file_path: str
    description: str = ""
    is_mandatory: bool = False
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "platform": self.platform,
            "bundleVersion": self.bundle_version,
            "bundleHash": self.bundle_hash,
            "bundleUrl": self.bundle_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "filePath": self.file_path,
            "description": self.description,
            "isMandatory": self.is_mandatory,
            "createdAt": format_timestamp(self.created_at),
        }

    def as_update_info(self) -> dict:
        """Payload returned to clients polling for the latest bundle."""
        return {
            "version": self.bundle_version,
            "bundleUrl": self.bundle_url,
            "hash": self.bundle_hash,
            "createdAt": format_timestamp(self.created_at),
            "description": self.description,
            "isMandatory": self.is_mandatory,
            "fileName": self.file_name,
            "fileSize": self.file_size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BundleUpdate":
        return cls(
            id=data["id"],
            platform=data["platform"],
            bundle_version=data["bundleVersion"],
            bundle_hash=data["bundleHash"],
            bundle_url=data["bundleUrl"],
            file_name=data["fileName"],
            file_size=data["fileSize"],
            file_path=data["filePath"],
            description=data.get("description") or "",
            is_mandatory=bool(data.get("isMandatory", False)),
            created_at=parse_timestamp(data["createdAt"]),
        )


@dataclass
class Project:
    id: str
    name: str
    platforms: list[str]
    description: str = ""
    rn_platforms: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=lambda: time.time())
    versions: list[AppVersion] = field(default_factory=list)
    bundle_updates: list[BundleUpdate] = field(default_factory=list)

    def find_version(self, version_id: str) -> Optional[AppVersion]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    def find_bundle_update(self, bundle_id: str) -> Optional[BundleUpdate]:
        for bundle in self.bundle_updates:
            if bundle.id == bundle_id:
                return bundle
        return None

    def add_version(self, version: AppVersion) -> None:
        # sorted() is stable with reverse=True, so the new record stays ahead
        # of any existing record sharing its timestamp.
        self.versions.insert(0, version)
        self.versions = sorted(
            self.versions, key=lambda v: v.upload_date, reverse=True
        )

    def add_bundle_update(self, bundle: BundleUpdate) -> None:
        self.bundle_updates.insert(0, bundle)
        self.bundle_updates = sorted(
            self.bundle_updates, key=lambda b: b.created_at, reverse=True
        )

    def bundles_for_platform(self, platform: str) -> list[BundleUpdate]:
        """Bundles for ``platform``, most recently created first."""
        return sorted(
            (b for b in self.bundle_updates if b.platform == platform),
            key=lambda b: b.created_at,
            reverse=True,
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "platforms": list(self.platforms),
            "rnPlatforms": list(self.rn_platforms),
            "createdAt": format_timestamp(self.created_at),
            "versions": [v.as_dict() for v in self.versions],
            "bundleUpdates": [b.as_dict() for b in self.bundle_updates],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description") or "",
            platforms=list(data.get("platforms") or []),
            rn_platforms=list(data.get("rnPlatforms") or []),
            created_at=parse_timestamp(data["createdAt"]),
            versions=[AppVersion.from_dict(v) for v in data.get("versions") or []],
            bundle_updates=[
                BundleUpdate.from_dict(b) for b in data.get("bundleUpdates") or []
            ],
        )
