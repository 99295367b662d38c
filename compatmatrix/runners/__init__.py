"""
Runners module - matrix execution.

Runners are responsible for:
- Provisioning each cell through a provisioner
- Executing the test suite inside it
- Recording each cell's terminal status on the report

Runners should NOT:
- Resolve tool versions (that is the catalog's job)
- Render or publish reports
"""

from compatmatrix.runners._base_runner import CellExecutor, ExecutorConfig
from compatmatrix.runners.matrix_runner import MatrixRunner, RunnerConfig, default_concurrency
from compatmatrix.runners.suite import CommandSuite, SuiteFailure, SuiteOutcome, SuiteRunner

__all__ = [
    "CellExecutor",
    "ExecutorConfig",
    "MatrixRunner",
    "RunnerConfig",
    "default_concurrency",
    "CommandSuite",
    "SuiteFailure",
    "SuiteOutcome",
    "SuiteRunner",
]
