"""
Matrix runner: drives the cell executor over a bounded worker pool.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Event
from typing import Dict, List, Optional
import os
import time
import logging

from compatmatrix.matrix.models import (
    CellStatus,
    IllegalTransitionError,
    MatrixCell,
    MatrixReport,
    ReportFinalizedError,
)
from compatmatrix.runners._base_runner import CellExecutor

log = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Timed out: global matrix timeout elapsed"
NOT_STARTED_MESSAGE = "Timed out: not started before global matrix timeout"


def default_concurrency(cell_count: int) -> int:
    return max(1, min(cell_count, os.cpu_count() or 1))


@dataclass
class RunnerConfig:
    """
    Matrix-wide scheduling settings.

    ``concurrency`` of None sizes the pool to the available cores, capped
    at the number of cells. ``timeout_seconds`` of None disables the global
    timeout. After the timeout, in-flight cells get ``grace_period_seconds``
    to finish before they are marked ERRORED.
    """

    concurrency: Optional[int] = None
    timeout_seconds: Optional[float] = None
    grace_period_seconds: float = 30.0


class MatrixRunner:
    """
    Executes every cell and produces a finalized MatrixReport.

    Guarantees a terminal status for every cell, even when the executor
    raises or the global timeout fires. The report is the only state shared
    between workers and each cell result is recorded exactly once.
    """

    def __init__(self, executor: CellExecutor, config: Optional[RunnerConfig] = None):
        self.executor = executor
        self.config = config or RunnerConfig()
        if self.config.concurrency is not None and self.config.concurrency < 1:
            raise ValueError(f"Concurrency must be >= 1, got {self.config.concurrency}")
        self._dispatch_stopped = Event()

    def _work(self, cell: MatrixCell, report: MatrixReport):
        if self._dispatch_stopped.is_set():
            return
        try:
            self.executor.execute(cell, record=report.record)
        except IllegalTransitionError:
            log.debug(f"Cell {cell.label} was closed before its worker started")
        except ReportFinalizedError:
            log.warning(f"Cell {cell.label} finished after the report was finalized, result discarded")
        except Exception as e:
            log.exception(f"Unexpected error executing cell {cell.label}")
            try:
                report.record(cell, CellStatus.ERRORED, f"Executor crashed: {e}")
            except ReportFinalizedError:
                pass

    def run(self, cells: List[MatrixCell]) -> MatrixReport:
        report = MatrixReport(cells)
        self._dispatch_stopped.clear()
        self.executor.reset()
        if not cells:
            log.warning("No cells to run")
            report.finalize()
            return report

        workers = self.config.concurrency or default_concurrency(len(cells))
        timeout = self.config.timeout_seconds
        deadline = report.started_at + timeout if timeout else None
        log.info(
            f"Running {len(cells)} cell(s) with {workers} worker(s)"
            + (f", global timeout {timeout}s" if timeout else "")
        )

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="compatmatrix-cell")
        futures: Dict[Future, MatrixCell] = {pool.submit(self._work, cell, report): cell for cell in cells}
        timed_out = False
        try:
            pending = set(futures)
            while pending:
                remaining = None if deadline is None else deadline - time.time()
                if remaining is not None and remaining <= 0:
                    timed_out = True
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    self._check_future(future, futures[future], report)

            if timed_out:
                self._handle_timeout(futures, report)
        finally:
            # Never block on stuck workers once the timeout handling is done
            pool.shutdown(wait=not timed_out, cancel_futures=True)

        for cell in report.incomplete():
            # a worker that exited without recording
            report.record(cell, CellStatus.ERRORED, "No result recorded for cell")

        report.finalize()
        counts = report.counts()
        log.info(
            f"Matrix finished in {report.duration_seconds:.1f}s: result {report.result.value} "
            f"({counts[CellStatus.PASSED]} passed, {counts[CellStatus.FAILED]} failed, "
            f"{counts[CellStatus.ERRORED]} errored)"
        )
        return report

    def _check_future(self, future: Future, cell: MatrixCell, report: MatrixReport):
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            log.error(f"Worker for {cell.label} raised: {exc}")
            if not cell.terminal:
                report.record(cell, CellStatus.ERRORED, f"Worker crashed: {exc}")

    def _handle_timeout(self, futures: Dict[Future, MatrixCell], report: MatrixReport):
        log.error(f"Global timeout of {self.config.timeout_seconds}s elapsed, no new cells will be dispatched")
        self._dispatch_stopped.set()

        in_flight = []
        for future, cell in futures.items():
            if future.cancel():
                report.record(cell, CellStatus.ERRORED, NOT_STARTED_MESSAGE)
            elif not future.done():
                in_flight.append(future)

        if in_flight and self.config.grace_period_seconds > 0:
            log.info(f"Waiting up to {self.config.grace_period_seconds}s for {len(in_flight)} in-flight cell(s)")
            wait(in_flight, timeout=self.config.grace_period_seconds)

        for cell in report.incomplete():
            message = NOT_STARTED_MESSAGE if cell.status == CellStatus.PENDING else TIMEOUT_MESSAGE
            report.record(cell, CellStatus.ERRORED, message)

        self.executor.cancel()
