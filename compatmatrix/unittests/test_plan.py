import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from compatmatrix.catalog import LockfileResolver, StaticCatalog
from compatmatrix.errors import ConfigurationError
from compatmatrix.parsers.schemas import MatrixFile
from compatmatrix.plan import MatrixPlan, Overrides, load_plan
from compatmatrix.provisioners.local import LocalProvisioner
from compatmatrix.reports import ConsoleReportSink, GitPublishSink, HtmlReportSink, JsonReportSink


def make_plan(base_dir, overrides=None, **sections):
    raw = {
        "suite": {"command": "./gradlew test -PgradleVersion={tool_version}", "timeout_seconds": 600},
        "catalog": {"versions": ["7.3.3", "7.6.4", "8.5"]},
        "matrices": [{"name": "java17", "runtime": {"name": "java", "version": "17"}, "tool_range": "7.3"}],
    }
    raw.update(sections)
    return MatrixPlan(MatrixFile.model_validate(raw), Path(base_dir), overrides or Overrides())


class TestMatrixPlan(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.base = self.tmpdir.name

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_paths_resolve_against_matrix_file(self):
        plan = make_plan(self.base)
        self.assertEqual(plan.path("logs"), Path(self.base) / "logs")
        self.assertEqual(plan.path("/abs/logs"), Path("/abs/logs"))
        self.assertEqual(plan.path("~/logs"), Path(os.path.expanduser("~/logs")))
        self.assertIsNone(plan.path(None))

    def test_cells_from_inline_catalog(self):
        cells = make_plan(self.base).cells()
        self.assertEqual([str(c.tool_version) for c in cells], ["7.3.3", "7.6.4", "8.5"])
        self.assertEqual({c.declaration for c in cells}, {"java17"})

    def test_catalog_file(self):
        with open(os.path.join(self.base, "versions.json"), "w") as f:
            json.dump(["7.3.1", "7.3.3", "7.6.4"], f)
        plan = make_plan(self.base, catalog={"file": "versions.json", "policy": "latest-minor"})
        catalog = plan.catalog()
        self.assertIsInstance(catalog, StaticCatalog)
        self.assertEqual([str(c.tool_version) for c in plan.cells()], ["7.6.4"])

    def test_lockfile_preferred_when_present(self):
        catalog = {"versions": ["7.3.3", "7.6.4", "8.5"], "lockfile": "matrix.lock.json"}
        plan = make_plan(self.base, catalog=catalog)
        self.assertIsInstance(plan.resolver(), StaticCatalog)

        with open(os.path.join(self.base, "matrix.lock.json"), "w") as f:
            json.dump({"[7.3,*)": ["7.6.4"]}, f)
        self.assertIsInstance(plan.resolver(), LockfileResolver)
        self.assertEqual([str(c.tool_version) for c in plan.cells()], ["7.6.4"])

        bypass = make_plan(self.base, Overrides(use_lockfile=False), catalog=catalog)
        self.assertIsInstance(bypass.resolver(), StaticCatalog)

    def test_missing_lockfile_without_catalog(self):
        plan = make_plan(self.base, catalog={"lockfile": "matrix.lock.json"})
        with self.assertRaises(ConfigurationError):
            plan.cells()

    def test_overrides_take_precedence(self):
        execution = {"concurrency": 2, "timeout_seconds": 3600, "output_dir": "logs", "provision_retries": 4}
        plan = make_plan(self.base, execution=execution)
        self.assertEqual(plan.runner_config().concurrency, 2)
        self.assertEqual(plan.runner_config().timeout_seconds, 3600)
        self.assertEqual(plan.executor_config().output_dir, Path(self.base) / "logs")
        self.assertEqual(plan.executor_config().provision_retries, 4)

        overridden = make_plan(
            self.base, Overrides(concurrency=8, timeout_seconds=60, output_dir="/tmp/out"), execution=execution
        )
        self.assertEqual(overridden.runner_config().concurrency, 8)
        self.assertEqual(overridden.runner_config().timeout_seconds, 60)
        self.assertEqual(overridden.output_dir(), Path("/tmp/out"))

    def test_local_provisioner(self):
        plan = make_plan(
            self.base,
            provisioner={"type": "local", "project_dir": "plugin", "runtime_home_env": "JAVA_HOME",
                         "runtime_homes": {"java17": "/opt/jdk17"}},
        )
        provisioner = plan.provisioner()
        self.assertIsInstance(provisioner, LocalProvisioner)
        self.assertEqual(provisioner.project_dir, Path(self.base) / "plugin")
        self.assertEqual(provisioner.runtime_home_env, "JAVA_HOME")

    def test_docker_provisioner(self):
        plan = make_plan(self.base, provisioner={"type": "docker", "image": "eclipse-temurin:{runtime_version}-jdk"})
        provisioner = plan.provisioner()
        self.assertEqual(type(provisioner).__name__, "DockerProvisioner")
        self.assertEqual(provisioner.image, "eclipse-temurin:{runtime_version}-jdk")

    def test_suite(self):
        suite = make_plan(self.base).suite()
        self.assertEqual(suite.timeout_seconds, 600)

    def test_sinks(self):
        plan = make_plan(self.base, report={"json": "out/report.json", "html": "out/index.html"})
        sinks = plan.sinks()
        self.assertEqual([type(s) for s in sinks], [ConsoleReportSink, JsonReportSink, HtmlReportSink])
        self.assertEqual(sinks[1].path, Path(self.base) / "out" / "report.json")

        console_only = make_plan(self.base, Overrides(json_path="r.json"))
        self.assertEqual([type(s) for s in console_only.sinks()], [ConsoleReportSink, JsonReportSink])

    def test_publish_sink(self):
        report = {"publish": {"repo_uri": "https://git.example.com/org/plugin.git", "repo_dir": "clone"}}
        execution = {"output_dir": "logs"}
        plan = make_plan(self.base, Overrides(publish=True), report=report, execution=execution)
        with mock.patch.dict(os.environ, {"GIT_USERNAME": "bot", "GIT_PASSWORD": "s3cret"}):
            sink = plan.sinks()[-1]
        self.assertIsInstance(sink, GitPublishSink)
        self.assertEqual(sink.repo_dir, Path(self.base) / "clone")
        self.assertEqual(sink.contents, [Path(self.base) / "logs"])
        self.assertTrue(sink.has_credentials)
        self.assertIsNone(sink.sign_commit)
        self.assertIsNone(sink.reference_repo_uri)

    def test_publish_sink_options(self):
        report = {
            "publish": {
                "repo_uri": "https://git.example.com/org/plugin.git",
                "sign_commit": False,
                "reference_repo_uri": "mirror",
            }
        }
        sink = make_plan(self.base, Overrides(publish=True), report=report).sinks()[-1]
        self.assertIs(sink.sign_commit, False)
        self.assertEqual(sink.reference_repo_uri, str(Path(self.base) / "mirror"))

    def test_publish_requires_section(self):
        with self.assertRaises(ConfigurationError):
            make_plan(self.base, Overrides(publish=True)).sinks()

    def test_load_plan(self):
        path = os.path.join(self.base, "matrix.json")
        with open(path, "w") as f:
            json.dump(
                {
                    "suite": {"command": "make test"},
                    "catalog": {"versions": ["7.6.4"]},
                    "matrices": [{"name": "java17", "runtime": {"name": "java", "version": "17"}, "tool_range": "7.0"}],
                },
                f,
            )
        plan = load_plan(path)
        self.assertEqual(plan.base_dir, Path(path).resolve().parent)
        self.assertEqual(len(plan.cells()), 1)


if __name__ == "__main__":
    unittest.main()
