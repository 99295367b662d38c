"""
Provisioners module - isolated execution environments per cell.

Provisioners are responsible for:
- Obtaining the runtime and tool version a cell needs
- Creating a fresh, private environment for the cell
- Releasing that environment afterwards

Provisioners should NOT:
- Run the test suite
- Decide pass/fail
"""

from compatmatrix.provisioners.base import (
    EnvironmentHandle,
    ExecCancelled,
    ExecTimeout,
    ProvisionError,
    Provisioner,
)
from compatmatrix.provisioners.local import LocalHandle, LocalProvisioner

__all__ = [
    "EnvironmentHandle",
    "ExecCancelled",
    "ExecTimeout",
    "ProvisionError",
    "Provisioner",
    "LocalHandle",
    "LocalProvisioner",
]
