import os
import tempfile
import threading
import time
import unittest
from pathlib import Path

from compatmatrix.matrix.models import RuntimeSpec
from compatmatrix.matrix.version import Version
from compatmatrix.provisioners.base import ExecCancelled, ExecTimeout, ProvisionError, placeholders, render, render_env
from compatmatrix.provisioners.local import LocalProvisioner


class TestPlaceholders(unittest.TestCase):
    def test_values(self):
        values = placeholders(RuntimeSpec("java", "17"), Version("7.6.4"), workdir=Path("/w"))
        self.assertEqual(values["runtime_label"], "java17")
        self.assertEqual(values["tool_version"], "7.6.4")
        self.assertEqual(values["workdir"], "/w")

    def test_render_env(self):
        rendered = render_env({"GRADLE_VERSION": "{tool_version}"}, {"tool_version": "8.5"})
        self.assertEqual(rendered, {"GRADLE_VERSION": "8.5"})

    def test_shell_braces_are_left_alone(self):
        values = {"tool_version": "8.5", "runtime_label": "java17"}
        self.assertEqual(render('test -n "${HOME}" && echo {tool_version}', values), 'test -n "${HOME}" && echo 8.5')
        self.assertEqual(render("awk '{print $1}' {runtime_label}.txt", values), "awk '{print $1}' java17.txt")
        self.assertEqual(render("find . -name {runtime_name} -exec rm {} +", values), "find . -name {runtime_name} -exec rm {} +")
        self.assertEqual(render("{unknown}-{tool_version}", values), "{unknown}-8.5")


class TestLocalProvisioner(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.work_root = self.root / "work"
        self.runtime = RuntimeSpec("java", "11")
        self.tool = Version("7.6.4")

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_provision_fresh_workdir_per_cell(self):
        provisioner = LocalProvisioner(work_root=self.work_root)
        first = provisioner.provision(self.runtime, self.tool)
        second = provisioner.provision(self.runtime, self.tool)
        try:
            self.assertNotEqual(first.workdir, second.workdir)
            self.assertTrue(first.workdir.is_dir())
            self.assertEqual(first.workdir.parent, self.work_root)
        finally:
            first.teardown()
            second.teardown()
        self.assertFalse(first.workdir.exists())

    def test_environment_variables(self):
        provisioner = LocalProvisioner(work_root=self.work_root, env={"GRADLE_VERSION": "{tool_version}"})
        handle = provisioner.provision(self.runtime, self.tool)
        try:
            code, output = handle.exec('echo "$RUNTIME_NAME $RUNTIME_VERSION $TOOL_VERSION $GRADLE_VERSION $EXTRA"', env={"EXTRA": "x"})
        finally:
            handle.teardown()
        self.assertEqual(code, 0)
        self.assertEqual(output.strip(), "java 11 7.6.4 7.6.4 x")

    def test_exit_code_and_combined_output(self):
        handle = LocalProvisioner(work_root=self.work_root).provision(self.runtime, self.tool)
        try:
            code, output = handle.exec("echo out; echo err 1>&2; exit 3")
        finally:
            handle.teardown()
        self.assertEqual(code, 3)
        self.assertIn("out", output)
        self.assertIn("err", output)

    def test_project_dir_is_copied(self):
        project = self.root / "project"
        (project / "build").mkdir(parents=True)
        (project / "build.gradle").write_text("plugins {}")
        (project / "build" / "stale.txt").write_text("x")

        handle = LocalProvisioner(project_dir=project, work_root=self.work_root).provision(self.runtime, self.tool)
        try:
            self.assertTrue((handle.workdir / "build.gradle").exists())
            self.assertFalse((handle.workdir / "build").exists())
        finally:
            handle.teardown()

    def test_missing_project_dir(self):
        provisioner = LocalProvisioner(project_dir=self.root / "missing", work_root=self.work_root)
        with self.assertRaises(ProvisionError):
            provisioner.provision(self.runtime, self.tool)
        self.assertEqual(list(self.work_root.iterdir()), [])

    def test_runtime_home(self):
        home = self.root / "jdk-11"
        (home / "bin").mkdir(parents=True)
        provisioner = LocalProvisioner(
            runtime_homes={"java11": str(home)}, runtime_home_env="JAVA_HOME", work_root=self.work_root
        )
        handle = provisioner.provision(self.runtime, self.tool)
        try:
            self.assertEqual(handle.env["JAVA_HOME"], str(home))
            self.assertTrue(handle.env["PATH"].startswith(os.path.join(str(home), "bin")))
        finally:
            handle.teardown()

    def test_runtime_home_by_version(self):
        home = self.root / "jdk"
        home.mkdir()
        provisioner = LocalProvisioner(runtime_homes={"11": str(home)}, runtime_home_env="JAVA_HOME", work_root=self.work_root)
        handle = provisioner.provision(self.runtime, self.tool)
        handle.teardown()
        self.assertEqual(handle.env["JAVA_HOME"], str(home))

    def test_runtime_home_not_configured(self):
        provisioner = LocalProvisioner(runtime_homes={}, runtime_home_env="JAVA_HOME", work_root=self.work_root)
        with self.assertRaises(ProvisionError):
            provisioner.provision(self.runtime, self.tool)

    def test_runtime_home_does_not_exist(self):
        provisioner = LocalProvisioner(
            runtime_homes={"java11": str(self.root / "nope")}, runtime_home_env="JAVA_HOME", work_root=self.work_root
        )
        with self.assertRaises(ProvisionError):
            provisioner.provision(self.runtime, self.tool)

    def test_setup_command_failure(self):
        provisioner = LocalProvisioner(setup_command="exit 7", work_root=self.work_root)
        with self.assertRaises(ProvisionError) as ctx:
            provisioner.provision(self.runtime, self.tool)
        self.assertIn("exit code 7", str(ctx.exception))
        self.assertEqual(list(self.work_root.iterdir()), [])

    def test_setup_command_runs_in_workdir(self):
        provisioner = LocalProvisioner(setup_command="touch ready-{tool_version}", work_root=self.work_root)
        handle = provisioner.provision(self.runtime, self.tool)
        try:
            self.assertTrue((handle.workdir / "ready-7.6.4").exists())
        finally:
            handle.teardown()

    def test_setup_command_with_shell_braces(self):
        command = 'test -d "${HOME}" && touch "ready-{runtime_label}"'
        provisioner = LocalProvisioner(setup_command=command, work_root=self.work_root, env={"HOME": "{workdir}"})
        handle = provisioner.provision(self.runtime, self.tool)
        try:
            self.assertTrue((handle.workdir / "ready-java11").exists())
        finally:
            handle.teardown()

    def test_exec_timeout(self):
        handle = LocalProvisioner(work_root=self.work_root).provision(self.runtime, self.tool)
        try:
            start = time.monotonic()
            with self.assertRaises(ExecTimeout):
                handle.exec("sleep 30", timeout=0.5)
            self.assertLess(time.monotonic() - start, 10)
        finally:
            handle.teardown()

    def test_cancel_interrupts_running_command(self):
        handle = LocalProvisioner(work_root=self.work_root).provision(self.runtime, self.tool)
        timer = threading.Timer(0.5, handle.cancel)
        timer.start()
        try:
            with self.assertRaises(ExecCancelled):
                handle.exec("sleep 30")
            with self.assertRaises(ExecCancelled):
                handle.exec("true")
        finally:
            timer.cancel()
            handle.teardown()

    def test_keep_workdir(self):
        handle = LocalProvisioner(work_root=self.work_root, keep_workdirs=True).provision(self.runtime, self.tool)
        handle.teardown()
        self.assertTrue(handle.workdir.exists())


if __name__ == "__main__":
    unittest.main()
