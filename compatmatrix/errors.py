"""
Exception hierarchy shared across compatmatrix.

Configuration errors abort a matrix before any cell executes and map to
CLI exit code 2. Cell-level errors (provisioning, suite failures) are
recorded on the cell and never abort the matrix.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""


class CompatMatrixError(Exception):
    """Base class for all compatmatrix errors."""


class ConfigurationError(CompatMatrixError):
    """The matrix declaration cannot be turned into executable cells."""


class ConfigFileError(ConfigurationError):
    """The matrix declaration file is missing, unreadable or invalid."""

    def __init__(self, path, message):
        self.path = path
        super().__init__(f"{path}: {message}")


class CellError(CompatMatrixError):
    """Raised while executing a single matrix cell."""
