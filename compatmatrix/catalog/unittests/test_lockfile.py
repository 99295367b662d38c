import json
import os
import tempfile
import unittest

from compatmatrix.catalog.lockfile import LockfileResolver, build_lock, write_lockfile
from compatmatrix.catalog.static import StaticCatalog
from compatmatrix.errors import ConfigurationError
from compatmatrix.matrix.version import Version, VersionRange


class TestLockfile(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "matrix.lock.json")

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_build_lock_keys_by_canonical_range(self):
        catalog = StaticCatalog(["5.6.4", "7.3.3", "7.6.4"])
        ranges = [VersionRange.parse("5.0"), VersionRange.parse("[5.0,*)"), VersionRange.parse("7.3")]
        lock = build_lock(ranges, catalog)
        self.assertEqual(lock, {"[5.0,*)": ["5.6.4", "7.3.3", "7.6.4"], "[7.3,*)": ["7.3.3", "7.6.4"]})

    def test_write_and_load(self):
        write_lockfile(self.path, {"[7.3,*)": ["7.3.3", "7.6.4"]})
        with open(self.path) as f:
            self.assertEqual(json.load(f), {"[7.3,*)": ["7.3.3", "7.6.4"]})

        resolver = LockfileResolver.load(self.path)
        # bare version and bracket form are the same range
        self.assertEqual(resolver(VersionRange.parse("7.3")), [Version("7.3.3"), Version("7.6.4")])

    def test_unpinned_range_resolves_empty(self):
        resolver = LockfileResolver({"[7.3,*)": ["7.3.3"]})
        self.assertEqual(resolver(VersionRange.parse("[5.0,*)")), [])

    def test_missing_lockfile(self):
        with self.assertRaises(ConfigurationError):
            LockfileResolver.load(self.path)

    def test_lockfile_must_be_mapping(self):
        with open(self.path, "w") as f:
            json.dump(["7.3.3"], f)
        with self.assertRaises(ConfigurationError):
            LockfileResolver.load(self.path)

    def test_invalid_range_in_lockfile(self):
        with self.assertRaises(ConfigurationError):
            LockfileResolver({"[9.0,7.0)": ["8.0"]})


if __name__ == "__main__":
    unittest.main()
