import unittest

from appdist.errors import ValidationError
from appdist.versioning import is_valid_semver, normalize_version, require_version


class NormalizeVersionTests(unittest.TestCase):
    def test_expands_relaxed_forms(self):
        self.assertEqual(normalize_version("2"), "2.0.0")
        self.assertEqual(normalize_version("2.5"), "2.5.0")
        self.assertEqual(normalize_version("2.5.1"), "2.5.1")

    def test_keeps_prerelease_and_build(self):
        self.assertEqual(normalize_version("1.0.0-beta.1"), "1.0.0-beta.1")
        self.assertEqual(normalize_version("1.0.0+build.7"), "1.0.0+build.7")

    def test_unparseable_input_is_returned_unchanged(self):
        self.assertEqual(normalize_version("abc"), "abc")
        self.assertFalse(is_valid_semver(normalize_version("abc")))
        self.assertEqual(normalize_version("1.2.3.4"), "1.2.3.4")
        self.assertFalse(is_valid_semver("1.2.3.4"))

    def test_is_idempotent(self):
        for raw in ["1", "1.0", "1.0.0", "abc", "01", "1.2.3.4", "", "10.20", "1.0.0-rc.1"]:
            once = normalize_version(raw)
            self.assertEqual(normalize_version(once), once, raw)

    def test_require_version_reports_raw_input(self):
        with self.assertRaises(ValidationError) as ctx:
            require_version("abc")
        self.assertIn("abc", ctx.exception.message)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_leading_zeros_are_rejected(self):
        with self.assertRaises(ValidationError):
            require_version("01.2")


if __name__ == "__main__":
    unittest.main()
