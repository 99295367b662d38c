import unittest
from unittest.mock import MagicMock

from compatmatrix.matrix.models import RuntimeSpec
from compatmatrix.matrix.version import Version
from compatmatrix.provisioners.base import ExecTimeout
from compatmatrix.runners.suite import CommandSuite


class TestCommandSuite(unittest.TestCase):
    def setUp(self):
        self.handle = MagicMock()
        self.handle.runtime = RuntimeSpec("java", "17")
        self.handle.tool_version = Version("8.5")

    def test_renders_placeholders(self):
        self.handle.exec.return_value = (0, "BUILD SUCCESSFUL")
        suite = CommandSuite(
            "./gradlew compatTest -PgradleVersion={tool_version} -Pjdk={runtime_version}",
            timeout_seconds=60,
            env={"MATRIX_CELL": "{runtime_label}-{tool_version}"},
        )
        outcome = suite.run(self.handle)

        self.handle.exec.assert_called_once_with(
            "./gradlew compatTest -PgradleVersion=8.5 -Pjdk=17", env={"MATRIX_CELL": "java17-8.5"}, timeout=60
        )
        self.assertTrue(outcome.passed)
        self.assertEqual(outcome.exit_code, 0)
        self.assertEqual(outcome.details, "BUILD SUCCESSFUL")

    def test_non_zero_exit_fails(self):
        self.handle.exec.return_value = (1, "FAILURE: Build failed")
        outcome = CommandSuite("./gradlew test").run(self.handle)
        self.assertFalse(outcome.passed)
        self.assertEqual(outcome.exit_code, 1)

    def test_timeout_fails(self):
        self.handle.exec.side_effect = ExecTimeout("./gradlew test", 5, "partial output")
        outcome = CommandSuite("./gradlew test", timeout_seconds=5).run(self.handle)
        self.assertFalse(outcome.passed)
        self.assertTrue(outcome.metadata["timed_out"])
        self.assertIn("partial output", outcome.details)

    def test_render(self):
        self.assertEqual(CommandSuite("echo {runtime_name}").render(self.handle), "echo java")


if __name__ == "__main__":
    unittest.main()
