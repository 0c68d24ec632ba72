import io
import itertools
import unittest

from appdist.db import InMemoryDbClient
from appdist.errors import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    StorageUploadError,
    ValidationError,
)
from appdist.models import Project, new_id
from appdist.releases import ReleaseManager
from appdist.storage import InMemoryStorageClient
from appdist.uploads import IncomingFile


def make_file(name="main.jsbundle", payload=b"bundle-bytes"):
    return IncomingFile(filename=name, size=len(payload), stream=io.BytesIO(payload))


class FailingSaveDbClient(InMemoryDbClient):
    def __init__(self):
        super().__init__()
        self.fail_saves = False

    def save_project(self, project):
        if self.fail_saves:
            raise RuntimeError("document store unavailable")
        super().save_project(project)


class ReleaseManagerTestCase(unittest.TestCase):
    def setUp(self):
        self.db = FailingSaveDbClient()
        self.storage = InMemoryStorageClient()
        ticks = itertools.count(1_700_000_000, 10)
        self.manager = ReleaseManager(self.db, self.storage, clock=lambda: float(next(ticks)))
        self.project = Project(
            id=new_id(),
            name="Demo",
            platforms=["android", "ios"],
            rn_platforms=["android", "ios"],
        )
        self.db.save_project(self.project)

    def ingest(self, **overrides):
        kwargs = {
            "incoming": make_file(),
            "platform": "android",
            "bundle_version": "1.0.0",
            "bundle_hash": "a" * 64,
        }
        kwargs.update(overrides)
        return self.manager.ingest_bundle(self.project.id, **kwargs)


class BundleIngestionTests(ReleaseManagerTestCase):
    def test_stores_normalized_version_and_blob(self):
        bundle = self.ingest(bundle_version="2", platform="Android", is_mandatory="true")
        self.assertEqual(bundle.bundle_version, "2.0.0")
        self.assertEqual(bundle.platform, "android")
        self.assertTrue(bundle.is_mandatory)
        self.assertIn(bundle.id, bundle.file_path)
        self.assertEqual(self.storage.get_bytes(bundle.file_path), b"bundle-bytes")

        stored = self.db.get_project(self.project.id)
        self.assertEqual([b.id for b in stored.bundle_updates], [bundle.id])

    def test_missing_file_is_checked_first(self):
        with self.assertRaises(ValidationError) as ctx:
            self.ingest(incoming=None, bundle_hash="short")
        self.assertIn("file", ctx.exception.message)

    def test_missing_fields(self):
        with self.assertRaises(ValidationError):
            self.ingest(bundle_hash=None)

    def test_unknown_platform(self):
        with self.assertRaises(ValidationError):
            self.ingest(platform="windows")

    def test_short_hash_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.ingest(bundle_hash="123456789")
        self.assertIn("hash", ctx.exception.message)
        self.assertEqual(self.storage.stored_objects, {})

    def test_invalid_version_mentions_raw_value(self):
        with self.assertRaises(ValidationError) as ctx:
            self.ingest(bundle_version="abc")
        self.assertIn("abc", ctx.exception.message)

    def test_unknown_project(self):
        with self.assertRaises(NotFoundError):
            self.manager.ingest_bundle(
                new_id(),
                make_file(),
                platform="android",
                bundle_version="1.0.0",
                bundle_hash="a" * 64,
            )

    def test_no_bundle_platforms_configured_rejects_before_duplicate_check(self):
        self.ingest()
        project = self.db.get_project(self.project.id)
        project.rn_platforms = []
        self.db.save_project(project)
        # Same hash as the stored bundle: must fail on configuration, not conflict.
        with self.assertRaises(ValidationError) as ctx:
            self.ingest()
        self.assertIn("no bundle platforms", ctx.exception.message)

    def test_platform_not_enabled_for_project(self):
        project = self.db.get_project(self.project.id)
        project.rn_platforms = ["ios"]
        self.db.save_project(project)
        with self.assertRaises(ValidationError):
            self.ingest(platform="android")

    def test_duplicate_hash_conflicts(self):
        self.ingest(bundle_version="1.0.0")
        with self.assertRaises(ConflictError):
            self.ingest(bundle_version="1.0.1", incoming=make_file())
        self.assertEqual(len(self.db.get_project(self.project.id).bundle_updates), 1)

    def test_same_hash_on_other_platform_is_allowed(self):
        self.ingest(platform="android")
        self.ingest(platform="ios", incoming=make_file())
        self.assertEqual(len(self.db.get_project(self.project.id).bundle_updates), 2)

    def test_same_version_different_hash_keeps_both(self):
        first = self.ingest(bundle_hash="a" * 64)
        second = self.ingest(bundle_hash="b" * 64, incoming=make_file())
        stored = self.db.get_project(self.project.id)
        self.assertEqual([b.id for b in stored.bundle_updates], [second.id, first.id])

    def test_storage_failure_leaves_project_untouched(self):
        self.storage.fail_uploads = True
        with self.assertRaises(StorageUploadError):
            self.ingest()
        self.assertEqual(self.db.get_project(self.project.id).bundle_updates, [])

    def test_document_failure_after_upload_is_partial_failure(self):
        self.db.fail_saves = True
        with self.assertRaises(PartialFailureError) as ctx:
            self.ingest()
        self.assertIn(ctx.exception.blob_path, self.storage.stored_objects)
        self.assertIn("contact support", ctx.exception.message)


class ResolutionTests(ReleaseManagerTestCase):
    def test_sub_microsecond_uploads_resolve_to_the_newest(self):
        ticks = iter([1_700_000_000.0000006, 1_700_000_000.0000008])
        self.manager.clock = lambda: next(ticks)
        self.ingest(bundle_hash="a" * 64)
        newer = self.ingest(bundle_hash="b" * 64)

        stored = self.db.get_project(self.project.id)
        self.assertEqual(stored.bundles_for_platform("android")[0].id, newer.id)
        latest = self.manager.resolve_latest_bundle(self.project.id, "android", "1.0.0")
        self.assertEqual(latest.id, newer.id)

    def test_no_bundles_returns_none(self):
        self.assertIsNone(
            self.manager.resolve_latest_bundle(self.project.id, "android", "1.0.0")
        )

    def test_most_recent_upload_wins_over_higher_version(self):
        self.ingest(bundle_version="1.0.0", bundle_hash="a" * 64)
        newer = self.ingest(
            bundle_version="0.5.0", bundle_hash="b" * 64, incoming=make_file()
        )
        latest = self.manager.resolve_latest_bundle(self.project.id, "android", "1.0.0")
        self.assertEqual(latest.id, newer.id)
        self.assertEqual(latest.bundle_version, "0.5.0")

    def test_client_version_does_not_filter(self):
        only = self.ingest(bundle_version="1.0.0")
        latest = self.manager.resolve_latest_bundle(self.project.id, "android", "9")
        self.assertEqual(latest.id, only.id)

    def test_filters_by_platform(self):
        self.ingest(platform="ios")
        self.assertIsNone(
            self.manager.resolve_latest_bundle(self.project.id, "android", "1.0")
        )

    def test_invalid_client_version(self):
        with self.assertRaises(ValidationError):
            self.manager.resolve_latest_bundle(self.project.id, "android", "abc")

    def test_missing_query_parameters(self):
        with self.assertRaises(ValidationError):
            self.manager.resolve_latest_bundle(self.project.id, None, "1.0.0")

    def test_deleted_bundle_is_no_longer_resolved(self):
        older = self.ingest(bundle_hash="a" * 64)
        newer = self.ingest(bundle_hash="b" * 64, incoming=make_file())
        self.manager.delete_bundle(self.project.id, newer.id)

        stored = self.db.get_project(self.project.id)
        self.assertEqual([b.id for b in stored.bundle_updates], [older.id])
        latest = self.manager.resolve_latest_bundle(self.project.id, "android", "1.0.0")
        self.assertEqual(latest.id, older.id)

    def test_delete_unknown_bundle(self):
        with self.assertRaises(NotFoundError):
            self.manager.delete_bundle(self.project.id, new_id())


class AppVersionTests(ReleaseManagerTestCase):
    def add_version(self, **overrides):
        kwargs = {
            "incoming": make_file("app-release.apk", b"apk"),
            "platform": "Android",
            "version_name": "1.2.0",
            "build_number": "42",
        }
        kwargs.update(overrides)
        return self.manager.ingest_app_version(self.project.id, **kwargs)

    def test_stores_version_newest_first(self):
        first = self.add_version()
        second = self.add_version(incoming=make_file("app-release.apk", b"apk"))
        stored = self.db.get_project(self.project.id)
        self.assertEqual([v.id for v in stored.versions], [second.id, first.id])
        self.assertEqual(first.qr_code_value, first.download_url)
        self.assertTrue(
            first.file_path.startswith(f"projects/{self.project.id}/versions/{first.id}/")
        )

    def test_platform_must_be_enabled(self):
        project = self.db.get_project(self.project.id)
        project.platforms = ["ios"]
        self.db.save_project(project)
        with self.assertRaises(ValidationError):
            self.add_version(platform="Android")

    def test_ios_platform_is_canonicalized(self):
        version = self.add_version(platform="ios", incoming=make_file("App.ipa", b"ipa"))
        self.assertEqual(version.platform, "iOS")

    def test_missing_fields(self):
        with self.assertRaises(ValidationError):
            self.add_version(build_number="")

    def test_delete_removes_blob(self):
        version = self.add_version()
        self.assertIn(version.file_path, self.storage.stored_objects)
        self.manager.delete_app_version(self.project.id, version.id)
        self.assertNotIn(version.file_path, self.storage.stored_objects)
        self.assertEqual(self.db.get_project(self.project.id).versions, [])

    def test_update_environments(self):
        version = self.add_version()
        updated = self.manager.update_version_environments(
            self.project.id, version.id, ["Staging", "Production", "Staging"]
        )
        self.assertEqual(updated.active_environments, ["Staging", "Production"])
        stored = self.db.get_project(self.project.id).find_version(version.id)
        self.assertEqual(stored.active_environments, ["Staging", "Production"])

    def test_update_environments_rejects_unknown_values(self):
        version = self.add_version()
        with self.assertRaises(ValidationError):
            self.manager.update_version_environments(
                self.project.id, version.id, ["QA"]
            )
        with self.assertRaises(ValidationError):
            self.manager.update_version_environments(
                self.project.id, version.id, "Production"
            )


if __name__ == "__main__":
    unittest.main()
