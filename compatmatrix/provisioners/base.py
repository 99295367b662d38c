"""
Environment provisioner interface.

A provisioner turns one (runtime, tool version) pairing into an isolated
execution context. Each cell gets its own handle; handles are never shared
between cells.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
import re
import logging

from compatmatrix.errors import CellError
from compatmatrix.matrix.models import RuntimeSpec
from compatmatrix.matrix.version import Version

log = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_]\w*)\}")


class ProvisionError(CellError):
    """The runtime or tool for a cell could not be obtained."""


class ExecTimeout(CellError):
    """A command inside a handle exceeded its timeout."""

    def __init__(self, command, timeout, output=""):
        self.command = command
        self.timeout = timeout
        self.output = output
        super().__init__(f"Command timed out after {timeout}s: {command}")


class ExecCancelled(CellError):
    """A command inside a handle was interrupted by cancellation."""


def placeholders(runtime: RuntimeSpec, tool_version: Version, **extra) -> Dict[str, str]:
    """Values available to command, image and environment templates."""
    values = {
        "runtime_name": runtime.name,
        "runtime_version": str(runtime.version),
        "runtime_label": runtime.label,
        "tool_version": str(tool_version),
    }
    values.update({k: str(v) for k, v in extra.items()})
    return values


def render(template: str, values: Dict[str, str]) -> str:
    """
    Substitute ``{name}`` for every name in ``values``.

    Any other brace text (``${HOME}``, ``awk '{print $1}'``, ``find -exec {}``)
    is shell syntax and is left untouched.
    """
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def render_env(template: Dict[str, str], values: Dict[str, str]) -> Dict[str, str]:
    return {key: render(str(value), values) for key, value in template.items()}


class EnvironmentHandle(ABC):
    """An isolated, provisioned execution context for a single cell."""

    def __init__(self, runtime: RuntimeSpec, tool_version: Version):
        self.runtime = runtime
        self.tool_version = tool_version

    @abstractmethod
    def exec(
        self, command: str, env: Optional[Dict[str, str]] = None, timeout: Optional[float] = None
    ) -> Tuple[int, str]:
        """
        Run a shell command inside the environment.

        Returns:
            Tuple of (exit_code, combined stdout/stderr output)

        Raises:
            ExecTimeout: if the command exceeded ``timeout`` seconds
            ExecCancelled: if ``cancel()`` interrupted the command
        """
        pass

    @abstractmethod
    def cancel(self):
        """Interrupt any running command. Safe to call from another thread."""
        pass

    @abstractmethod
    def teardown(self):
        """Release everything the handle holds."""
        pass

    def describe(self) -> str:
        return f"{self.__class__.__name__}({self.runtime.label}, tool {self.tool_version})"


class Provisioner(ABC):
    """Supplies an EnvironmentHandle per cell, or raises ProvisionError."""

    @abstractmethod
    def provision(self, runtime: RuntimeSpec, tool_version: Version) -> EnvironmentHandle:
        pass

    def close(self):
        """Release provisioner-wide resources once the matrix is done."""
        return None
