import argparse
import contextlib
import io
import os
import tempfile
import unittest

import yaml

from compatmatrix.input.generate.matrix_file import MatrixFileGenerator, parse_declaration
from compatmatrix.parsers.schemas import DockerProvisionerConfig, MatrixFile


class TestParseDeclaration(unittest.TestCase):
    def test_named(self):
        self.assertEqual(
            parse_declaration("modern=java:17:[7.3,*)"),
            {"name": "modern", "runtime_name": "java", "runtime_version": "17", "tool_range": "[7.3,*)"},
        )

    def test_default_name(self):
        self.assertEqual(parse_declaration("java:11:5.0")["name"], "java11")

    def test_malformed(self):
        for text in ("java:11", "java::5.0", "=java"):
            with self.subTest(text=text):
                with self.assertRaises(argparse.ArgumentTypeError):
                    parse_declaration(text)


class TestMatrixFileGenerator(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.output = os.path.join(self.tmpdir.name, "matrix.yaml")
        self.generator = MatrixFileGenerator()

    def tearDown(self):
        self.tmpdir.cleanup()

    def generate(self, *extra):
        argv = [
            "--output_file", self.output,
            "--command", "./gradlew test -PgradleVersion={tool_version}",
            "--matrix", "java:11:[5.0,8.0)",
            "--matrix", "java17=java:17:7.3",
            *extra,
        ]
        args = self.generator.get_parser().parse_args(argv)
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            self.generator.generate(args)
        return out.getvalue()

    def load(self):
        with open(self.output) as f:
            return MatrixFile.model_validate(yaml.safe_load(f))

    def test_local_file(self):
        output = self.generate("--versions", "6.9.4", "7.6.4", "--lockfile", "matrix.lock.json", "--concurrency", "3")
        self.assertIn("Declarations: java11, java17", output)

        config = self.load()
        self.assertEqual(config.suite.command, "./gradlew test -PgradleVersion={tool_version}")
        self.assertEqual(config.catalog.versions, ["6.9.4", "7.6.4"])
        self.assertEqual(config.catalog.lockfile, "matrix.lock.json")
        self.assertEqual(config.execution.concurrency, 3)
        self.assertEqual(config.report.json_path, "build/compatmatrix/report.json")
        self.assertEqual([m.tool_range for m in config.matrices], ["[5.0,8.0)", "7.3"])
        self.assertEqual(config.matrices[1].runtime.version, "17")

    def test_runtime_homes_placeholders(self):
        self.generate("--versions", "7.6.4", "--runtime_home_env", "JAVA_HOME")
        config = self.load()
        self.assertEqual(config.provisioner.runtime_home_env, "JAVA_HOME")
        self.assertEqual(sorted(config.provisioner.runtime_homes), ["java11", "java17"])

    def test_docker_file(self):
        self.generate("--catalog_file", "versions.json", "--policy", "latest-minor", "--provisioner", "docker")
        config = self.load()
        self.assertIsInstance(config.provisioner, DockerProvisionerConfig)
        self.assertEqual(config.provisioner.image, "eclipse-temurin:{runtime_version}-jdk")
        self.assertEqual(config.catalog.file, "versions.json")
        self.assertEqual(config.catalog.policy, "latest-minor")

    def test_requires_catalog_source(self):
        with self.assertRaises(SystemExit) as ctx:
            self.generate()
        self.assertEqual(ctx.exception.code, 1)
        self.assertFalse(os.path.exists(self.output))

    def test_refuses_to_overwrite(self):
        with open(self.output, "w") as f:
            f.write("# hand written\n")
        with self.assertRaises(SystemExit):
            self.generate("--versions", "7.6.4")
        with open(self.output) as f:
            self.assertEqual(f.read(), "# hand written\n")

        self.generate("--versions", "7.6.4", "--force")
        self.assertEqual(len(self.load().matrices), 2)

    def test_invalid_range_rejected_before_writing(self):
        args = self.generator.get_parser().parse_args(
            ["--output_file", self.output, "--command", "make", "--versions", "7.6.4", "--matrix", "java:17:[9.0,8.0)"]
        )
        with contextlib.redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                self.generator.generate(args)
        self.assertEqual(ctx.exception.code, 2)
        self.assertFalse(os.path.exists(self.output))


if __name__ == "__main__":
    unittest.main()
