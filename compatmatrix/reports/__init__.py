"""
Reports module - rendering and publishing matrix results.

Sinks are responsible for:
- Presenting a finalized MatrixReport (console, JSON, HTML)
- Publishing report files (git branch)

Sinks should NOT:
- Change cell results
"""

from compatmatrix.reports.sinks import (
    ConsoleReportSink,
    HtmlReportSink,
    JsonReportSink,
    ReportSink,
    heatmap_grid,
    render_html,
    summary_line,
)
from compatmatrix.reports.git_publish import GitPublishError, GitPublishSink

__all__ = [
    "ConsoleReportSink",
    "HtmlReportSink",
    "JsonReportSink",
    "ReportSink",
    "heatmap_grid",
    "render_html",
    "summary_line",
    "GitPublishError",
    "GitPublishSink",
]
