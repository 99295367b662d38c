import argparse
import contextlib
import io
import json
import os
import tempfile
import unittest

import yaml

from compatmatrix.input.generate.lockfile import LockfileGenerator


class TestLockfileGenerator(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.generator = LockfileGenerator()

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_matrix(self, catalog):
        path = os.path.join(self.tmpdir.name, "matrix.yaml")
        config = {
            "suite": {"command": "./gradlew test"},
            "catalog": catalog,
            "matrices": [
                {"name": "java8", "runtime": {"name": "java", "version": "8"}, "tool_range": "[5.0,7.0)"},
                {"name": "java11", "runtime": {"name": "java", "version": "11"}, "tool_range": "[5.0,7.0)"},
                {"name": "java17", "runtime": {"name": "java", "version": "17"}, "tool_range": "7.3"},
            ],
        }
        with open(path, "w") as f:
            yaml.safe_dump(config, f)
        return path

    def generate(self, argv):
        args = self.generator.get_parser().parse_args(argv)
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            self.generator.generate(args)
        return out.getvalue()

    def test_writes_configured_lockfile(self):
        path = self.write_matrix(
            {"versions": ["5.6.4", "6.9.3", "6.9.4", "7.3.3", "7.6.4"], "lockfile": "matrix.lock.json"}
        )
        output = self.generate(["--matrix_file", path])

        lockfile = os.path.join(self.tmpdir.name, "matrix.lock.json")
        self.assertIn(f"Generated lockfile: {lockfile}", output)
        with open(lockfile) as f:
            lock = json.load(f)
        self.assertEqual(lock, {"[5.0,7.0)": ["5.6.4", "6.9.4"], "[7.3,*)": ["7.3.3", "7.6.4"]})

    def test_existing_lockfile_is_regenerated_from_catalog(self):
        path = self.write_matrix({"versions": ["5.6.4", "7.6.4"], "lockfile": "matrix.lock.json"})
        lockfile = os.path.join(self.tmpdir.name, "matrix.lock.json")
        with open(lockfile, "w") as f:
            json.dump({"[5.0,7.0)": ["5.0"]}, f)

        self.generate(["--matrix_file", path])
        with open(lockfile) as f:
            self.assertEqual(json.load(f)["[5.0,7.0)"], ["5.6.4"])

    def test_explicit_output(self):
        path = self.write_matrix({"versions": ["5.6.4", "7.6.4"]})
        output_file = os.path.join(self.tmpdir.name, "pins", "lock.json")
        self.generate(["--matrix_file", path, "--output_file", output_file])
        self.assertTrue(os.path.exists(output_file))

    def test_no_output_location(self):
        path = self.write_matrix({"versions": ["5.6.4", "7.6.4"]})
        with self.assertRaises(SystemExit) as ctx:
            self.generate(["--matrix_file", path])
        self.assertEqual(ctx.exception.code, 2)

    def test_unsatisfiable_range_writes_nothing(self):
        path = self.write_matrix({"versions": ["5.6.4"], "lockfile": "matrix.lock.json"})
        with self.assertRaises(SystemExit) as ctx:
            self.generate(["--matrix_file", path])
        self.assertEqual(ctx.exception.code, 2)
        self.assertFalse(os.path.exists(os.path.join(self.tmpdir.name, "matrix.lock.json")))


if __name__ == "__main__":
    unittest.main()
