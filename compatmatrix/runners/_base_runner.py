"""
Cell executor: provisions one cell, runs the suite, records the outcome.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass
from pathlib import Path
from threading import Event, Lock
from typing import Callable, List, Optional, Tuple
import time
import logging

from compatmatrix.matrix.models import CellStatus, MatrixCell
from compatmatrix.provisioners.base import EnvironmentHandle, ExecCancelled, ProvisionError, Provisioner
from compatmatrix.runners.suite import SuiteFailure, SuiteRunner

log = logging.getLogger(__name__)

Recorder = Callable[[MatrixCell, CellStatus, Optional[str]], bool]


def _finish(cell: MatrixCell, status: CellStatus, message: Optional[str] = None) -> bool:
    return cell.finish(status, message)


@dataclass
class ExecutorConfig:
    """
    Execution settings shared by every cell.

    ``provision_retries`` is the number of retries after the first failed
    provisioning attempt, so a cell is provisioned at most
    ``provision_retries + 1`` times. Back-off grows linearly with the
    attempt number.
    """

    provision_retries: int = 2
    retry_backoff_seconds: float = 5.0
    output_dir: Optional[Path] = None


class CellExecutor:
    """
    Executes matrix cells, one at a time per calling thread.

    Lifecycle per cell:
    1. provision() - obtain an isolated environment, retried on ProvisionError
    2. run() - execute the suite inside it
    3. teardown() - always attempted once provisioning succeeded

    Terminal status: PASSED, FAILED when the suite fails (never retried),
    ERRORED when provisioning is exhausted, the run is cancelled, or
    anything unexpected happens.
    """

    def __init__(self, provisioner: Provisioner, suite: SuiteRunner, config: Optional[ExecutorConfig] = None):
        self.provisioner = provisioner
        self.suite = suite
        self.config = config or ExecutorConfig()
        self._cancelled = Event()
        self._handles: List[EnvironmentHandle] = []
        self._lock = Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def reset(self):
        """Clear a previous cancel() so the executor can run another matrix."""
        self._cancelled.clear()

    def cancel(self):
        """Stop retries and interrupt every in-flight cell."""
        self._cancelled.set()
        with self._lock:
            handles = list(self._handles)
        for handle in handles:
            try:
                handle.cancel()
            except Exception as e:
                log.warning(f"Cancel of {handle.describe()} failed: {e}")

    def log_path_for(self, cell: MatrixCell) -> Optional[Path]:
        if self.config.output_dir is None:
            return None
        return Path(self.config.output_dir) / f"{cell.runtime.name}{cell.runtime.version}-{cell.tool_version}.log"

    def execute(self, cell: MatrixCell, record: Optional[Recorder] = None) -> CellStatus:
        """Run one cell to a terminal status and record it."""
        record = record or _finish
        cell.start()
        log.info(f"Executing cell {cell.label}")

        transcript: List[str] = []
        try:
            status, message = self._run_cell(cell, transcript)
        except Exception as e:
            log.exception(f"Error during execution of cell {cell.label}")
            status, message = CellStatus.ERRORED, f"Executor error: {e}"
            transcript.append(f"executor error: {e!r}")

        self._write_log(cell, status, message, transcript)
        record(cell, status, message)
        return cell.status

    def _provision(self, cell: MatrixCell, transcript: List[str]) -> Tuple[Optional[EnvironmentHandle], Optional[str]]:
        max_attempts = self.config.provision_retries + 1
        last_error = None
        for attempt in range(1, max_attempts + 1):
            if self.cancelled:
                return None, "Cancelled before provisioning"
            cell.attempts = attempt
            try:
                handle = self.provisioner.provision(cell.runtime, cell.tool_version)
                transcript.append(f"provision attempt {attempt}: ok ({handle.describe()})")
                return handle, None
            except ProvisionError as e:
                last_error = e
                transcript.append(f"provision attempt {attempt}: {e}")
                log.warning(f"Provisioning {cell.label} failed (attempt {attempt}/{max_attempts}): {e}")
                if attempt < max_attempts:
                    # Event.wait doubles as an interruptible sleep
                    if self._cancelled.wait(self.config.retry_backoff_seconds * attempt):
                        return None, "Cancelled during provisioning retries"
        return None, f"Provisioning failed after {max_attempts} attempt(s): {last_error}"

    def _run_cell(self, cell: MatrixCell, transcript: List[str]) -> Tuple[CellStatus, Optional[str]]:
        handle, error = self._provision(cell, transcript)
        if handle is None:
            return CellStatus.ERRORED, error

        with self._lock:
            self._handles.append(handle)
        try:
            if self.cancelled:
                return CellStatus.ERRORED, "Cancelled before suite started"
            log.info(f"Running suite for {cell.label}...")
            try:
                outcome = self.suite.run(handle)
            except SuiteFailure as e:
                transcript.append(e.details or str(e))
                return CellStatus.FAILED, f"Suite failed: {e}"
            except ExecCancelled as e:
                transcript.append(str(e))
                return CellStatus.ERRORED, f"Cancelled: {e}"

            transcript.append(outcome.details)
            cell.details.update(outcome.metadata)
            cell.details["exit_code"] = outcome.exit_code
            cell.details["suite_seconds"] = outcome.duration_seconds
            if outcome.passed:
                return CellStatus.PASSED, None
            if outcome.metadata.get("timed_out"):
                return CellStatus.FAILED, "Suite timed out"
            return CellStatus.FAILED, f"Suite failed (exit code {outcome.exit_code})"
        finally:
            with self._lock:
                self._handles.remove(handle)
            log.info(f"Tearing down {handle.describe()}...")
            try:
                handle.teardown()
            except Exception as e:
                log.warning(f"Teardown error (non-fatal): {e}")

    def _write_log(self, cell: MatrixCell, status: CellStatus, message: Optional[str], transcript: List[str]):
        path = self.log_path_for(cell)
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                f.write(f"# cell: {cell.label} (matrix {cell.declaration})\n")
                f.write(f"# status: {status.value}\n")
                if message:
                    f.write(f"# message: {message}\n")
                f.write(f"# written: {time.strftime('%Y-%m-%d %H:%M:%S')}\n\n")
                for entry in transcript:
                    f.write(entry)
                    if not entry.endswith("\n"):
                        f.write("\n")
            cell.log_path = path
        except OSError as e:
            log.warning(f"Could not write log for {cell.label} to {path}: {e}")
