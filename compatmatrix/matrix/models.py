"""
Core matrix data structures: runtimes, tool ranges, cells and the report.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple
import time
import logging

from compatmatrix.errors import CompatMatrixError
from compatmatrix.matrix.version import Version, VersionRange

log = logging.getLogger(__name__)


class CellStatus(Enum):
    """Status of a matrix cell."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"

    @property
    def terminal(self) -> bool:
        return self in (CellStatus.PASSED, CellStatus.FAILED, CellStatus.ERRORED)


class IllegalTransitionError(CompatMatrixError):
    """A cell status change that the cell lifecycle does not allow."""


class ReportFinalizedError(CompatMatrixError):
    """The report was modified after it was finalized."""


@dataclass(frozen=True)
class RuntimeSpec:
    """One language-runtime variant, e.g. ``java`` version ``11``."""

    name: str
    version: Version

    def __post_init__(self):
        if not isinstance(self.version, Version):
            object.__setattr__(self, "version", Version(self.version))

    @property
    def label(self) -> str:
        return f"{self.name}{self.version}"

    def __str__(self):
        return self.label


@dataclass(frozen=True)
class ToolRange:
    """The span of host-tool versions a runtime is expected to support."""

    compatible_range: VersionRange

    def __post_init__(self):
        if not isinstance(self.compatible_range, VersionRange):
            object.__setattr__(self, "compatible_range", VersionRange.parse(self.compatible_range))


@dataclass(frozen=True)
class MatrixDeclaration:
    """A named ``(RuntimeSpec, ToolRange)`` pair as written in the matrix file."""

    name: str
    runtime: RuntimeSpec
    tool_range: ToolRange


@dataclass(eq=False)
class MatrixCell:
    """
    One concrete (runtime, tool version) combination.

    Status changes go through ``start()`` and ``finish()``, which hold the
    cell lock. A terminal cell never changes again: ``finish()`` on an
    already terminal cell returns False and leaves it untouched.
    """

    runtime: RuntimeSpec
    tool_version: Version
    declaration: Optional[str] = None
    status: CellStatus = CellStatus.PENDING
    attempts: int = 0
    message: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    log_path: Optional[Path] = None
    details: Dict[str, Any] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    @property
    def key(self) -> Tuple[str, Version, Version]:
        return (self.runtime.name, self.runtime.version, self.tool_version)

    @property
    def label(self) -> str:
        return f"{self.runtime.label}/{self.tool_version}"

    @property
    def terminal(self) -> bool:
        return self.status.terminal

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def start(self):
        with self._lock:
            if self.status != CellStatus.PENDING:
                raise IllegalTransitionError(f"Cell {self.label} cannot start from {self.status.value}")
            self.status = CellStatus.RUNNING
            self.started_at = time.time()

    def finish(self, status: CellStatus, message: Optional[str] = None) -> bool:
        if not status.terminal:
            raise IllegalTransitionError(f"Cell {self.label} cannot finish with non-terminal status {status.value}")
        with self._lock:
            if self.status.terminal:
                return False
            self.status = status
            self.message = message
            self.finished_at = time.time()
            return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "declaration": self.declaration,
            "runtime": {"name": self.runtime.name, "version": str(self.runtime.version)},
            "tool_version": str(self.tool_version),
            "status": self.status.value,
            "attempts": self.attempts,
            "message": self.message,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "log_path": str(self.log_path) if self.log_path else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatrixCell":
        runtime = RuntimeSpec(data["runtime"]["name"], Version(data["runtime"]["version"]))
        return cls(
            runtime=runtime,
            tool_version=Version(data["tool_version"]),
            declaration=data.get("declaration"),
            status=CellStatus(data.get("status", CellStatus.PENDING.value)),
            attempts=data.get("attempts", 0),
            message=data.get("message"),
            started_at=data.get("started_at"),
            finished_at=data.get("finished_at"),
            log_path=Path(data["log_path"]) if data.get("log_path") else None,
        )


class MatrixReport:
    """
    Ordered results for every cell of a matrix run.

    The report owns its cells. Results are written through ``record()``
    under the report lock so each cell is recorded exactly once, and
    ``finalize()`` makes the report read-only.
    """

    def __init__(self, cells: List[MatrixCell], started_at: Optional[float] = None):
        self._cells = list(cells)
        self._lock = Lock()
        self.started_at = started_at if started_at is not None else time.time()
        self.finished_at: Optional[float] = None

    @property
    def cells(self) -> Tuple[MatrixCell, ...]:
        return tuple(self._cells)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def record(self, cell: MatrixCell, status: CellStatus, message: Optional[str] = None) -> bool:
        """Record the terminal status of a cell. Returns False if it was already recorded."""
        with self._lock:
            if self.finished:
                raise ReportFinalizedError(f"Report is finalized, cannot record {cell.label}")
            recorded = cell.finish(status, message)
        if recorded:
            log.info(f"Cell {cell.label}: {status.value}" + (f" ({message})" if message else ""))
        else:
            log.warning(f"Ignoring late {status.value} result for {cell.label}, already {cell.status.value}")
        return recorded

    def incomplete(self) -> List[MatrixCell]:
        return [cell for cell in self._cells if not cell.terminal]

    def finalize(self, finished_at: Optional[float] = None):
        with self._lock:
            if self.finished:
                raise ReportFinalizedError("Report is already finalized")
            self.finished_at = finished_at if finished_at is not None else time.time()

    @property
    def result(self) -> CellStatus:
        """PASSED iff every cell passed, FAILED otherwise."""
        if all(cell.status == CellStatus.PASSED for cell in self._cells):
            return CellStatus.PASSED
        return CellStatus.FAILED

    @property
    def succeeded(self) -> bool:
        return self.result == CellStatus.PASSED

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def counts(self) -> Dict[CellStatus, int]:
        counts = {status: 0 for status in CellStatus}
        for cell in self._cells:
            counts[cell.status] += 1
        return counts

    def cells_with_status(self, status: CellStatus) -> List[MatrixCell]:
        return [cell for cell in self._cells if cell.status == status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "summary": {status.value: count for status, count in self.counts().items()},
            "cells": [cell.to_dict() for cell in self._cells],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatrixReport":
        report = cls([MatrixCell.from_dict(c) for c in data.get("cells", [])], started_at=data.get("started_at"))
        report.finished_at = data.get("finished_at")
        return report
