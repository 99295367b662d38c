"""
Report sinks: where a finished MatrixReport goes.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Tuple, Union
import json
import sys
import logging

from jinja2 import Template

from compatmatrix.matrix.models import CellStatus, MatrixCell, MatrixReport
from compatmatrix.matrix.version import Version

log = logging.getLogger(__name__)

STATUS_COLORS = {
    CellStatus.PASSED: "#2e9d5b",
    CellStatus.FAILED: "#d64545",
    CellStatus.ERRORED: "#e0a030",
    CellStatus.RUNNING: "#6b8fd6",
    CellStatus.PENDING: "#9aa0a6",
}


class ReportSink(ABC):
    """Receives the finished report for display or publication."""

    @abstractmethod
    def publish(self, report: MatrixReport):
        pass


def _format_time(ts: Optional[float]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def summary_line(report: MatrixReport) -> str:
    counts = report.counts()
    duration = f" in {report.duration_seconds:.1f}s" if report.duration_seconds is not None else ""
    return (
        f"Matrix result: {report.result.value.upper()} "
        f"({counts[CellStatus.PASSED]} passed, {counts[CellStatus.FAILED]} failed, "
        f"{counts[CellStatus.ERRORED]} errored of {len(report.cells)} cells){duration}"
    )


class ConsoleReportSink(ReportSink):
    """Prints a per-cell table followed by the overall result."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def publish(self, report: MatrixReport):
        out = self.stream or sys.stdout
        rows = [("MATRIX", "RUNTIME", "TOOL", "STATUS", "MESSAGE")]
        for cell in report.cells:
            rows.append(
                (
                    cell.declaration or "-",
                    cell.runtime.label,
                    str(cell.tool_version),
                    cell.status.value.upper(),
                    cell.message or "",
                )
            )
        widths = [max(len(row[i]) for row in rows) for i in range(4)]
        print("#========================================================#", file=out)
        print("\t\t ** Compatibility Matrix **", file=out)
        print("#========================================================#", file=out)
        for row in rows:
            line = "  ".join(col.ljust(widths[i]) for i, col in enumerate(row[:4]))
            print(f"{line}  {row[4]}".rstrip(), file=out)
        print("", file=out)
        print(summary_line(report), file=out)


class JsonReportSink(ReportSink):
    """Writes ``report.to_dict()`` as JSON."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def publish(self, report: MatrixReport):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
            f.write("\n")
        log.info(f"Wrote JSON report to {self.path}")


def heatmap_grid(report: MatrixReport) -> Tuple[List[str], List[Version], Dict[str, Dict[Version, MatrixCell]]]:
    """
    Arrange cells as runtime rows by tool-version columns.

    Returns ``(runtime_labels, tool_versions, grid)`` where
    ``grid[label][version]`` is the cell, absent when that combination was
    not part of the matrix.
    """
    grid: Dict[str, Dict[Version, MatrixCell]] = OrderedDict()
    versions = set()
    for cell in report.cells:
        grid.setdefault(cell.runtime.label, {})[cell.tool_version] = cell
        versions.add(cell.tool_version)
    return list(grid.keys()), sorted(versions), grid


def render_html(report: MatrixReport, title: str = "Compatibility Matrix") -> str:
    template_content = resources.files("compatmatrix.input.templates").joinpath("matrix_report.html.template").read_text()
    template = Template(template_content, autoescape=True)
    runtimes, versions, grid = heatmap_grid(report)
    return template.render(
        title=title,
        result=report.result.value,
        summary=summary_line(report),
        started=_format_time(report.started_at),
        finished=_format_time(report.finished_at),
        runtimes=runtimes,
        versions=versions,
        grid=grid,
        cells=report.cells,
        colors={status.value: color for status, color in STATUS_COLORS.items()},
    )


class HtmlReportSink(ReportSink):
    """Writes a runtime x tool-version heatmap as a standalone HTML page."""

    def __init__(self, path: Union[str, Path], title: str = "Compatibility Matrix"):
        self.path = Path(path)
        self.title = title

    def publish(self, report: MatrixReport):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            f.write(render_html(report, self.title))
        log.info(f"Wrote HTML report to {self.path}")
