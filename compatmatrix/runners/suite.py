"""
Test suite runners executed inside a provisioned environment.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import time
import logging

from compatmatrix.errors import CellError
from compatmatrix.provisioners.base import EnvironmentHandle, ExecTimeout, placeholders, render, render_env

log = logging.getLogger(__name__)


class SuiteFailure(CellError):
    """The test suite itself reported failing assertions."""

    def __init__(self, message, details: str = ""):
        self.details = details
        super().__init__(message)


@dataclass
class SuiteOutcome:
    """Outcome of one suite execution."""

    passed: bool
    details: str = ""
    exit_code: Optional[int] = None
    duration_seconds: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


class SuiteRunner(ABC):
    """Executes the fixed test suite inside a provisioned handle."""

    @abstractmethod
    def run(self, handle: EnvironmentHandle) -> SuiteOutcome:
        """
        Run the suite.

        Returns a SuiteOutcome, or raises SuiteFailure when the suite
        fails. Anything else raised is treated as an infrastructure error.
        """
        pass


class CommandSuite(SuiteRunner):
    """
    Runs a shell command template and treats exit code 0 as a pass.

    The command may reference ``{runtime_name}``, ``{runtime_version}``,
    ``{runtime_label}`` and ``{tool_version}``, e.g.
    ``./gradlew --no-daemon compatTest -PgradleVersion={tool_version}``.
    A command exceeding ``timeout_seconds`` fails the cell.
    """

    def __init__(self, command: str, timeout_seconds: Optional[float] = None, env: Optional[Dict[str, str]] = None):
        self.command = command
        self.timeout_seconds = timeout_seconds
        self.env = dict(env or {})

    def render(self, handle: EnvironmentHandle) -> str:
        return render(self.command, placeholders(handle.runtime, handle.tool_version))

    def run(self, handle: EnvironmentHandle) -> SuiteOutcome:
        command = self.render(handle)
        env = render_env(self.env, placeholders(handle.runtime, handle.tool_version))

        start = time.time()
        try:
            exit_code, output = handle.exec(command, env=env, timeout=self.timeout_seconds)
        except ExecTimeout as e:
            return SuiteOutcome(
                passed=False,
                details=f"{e.output}\n{e}",
                exit_code=None,
                duration_seconds=time.time() - start,
                metadata={"timed_out": True, "command": command},
            )

        return SuiteOutcome(
            passed=exit_code == 0,
            details=output,
            exit_code=exit_code,
            duration_seconds=time.time() - start,
            metadata={"command": command},
        )
