"""
Matrix module - declarations, cells and reports.

The matrix layer is pure data: it knows how to expand declarations into
cells and how to aggregate cell results, but never executes anything.
"""

from compatmatrix.matrix.version import Version, VersionRange, InvalidVersionError, InvalidRangeError
from compatmatrix.matrix.models import (
    CellStatus,
    IllegalTransitionError,
    MatrixCell,
    MatrixDeclaration,
    MatrixReport,
    ReportFinalizedError,
    RuntimeSpec,
    ToolRange,
)
from compatmatrix.matrix.builder import MatrixBuilder, NoCompatibleVersionError

__all__ = [
    "Version",
    "VersionRange",
    "InvalidVersionError",
    "InvalidRangeError",
    "CellStatus",
    "IllegalTransitionError",
    "MatrixCell",
    "MatrixDeclaration",
    "MatrixReport",
    "ReportFinalizedError",
    "RuntimeSpec",
    "ToolRange",
    "MatrixBuilder",
    "NoCompatibleVersionError",
]
