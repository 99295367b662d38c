"""In-memory provisioner and suite doubles for runner tests."""

import threading
from typing import Callable, Dict, List, Optional

from compatmatrix.provisioners.base import EnvironmentHandle, ExecCancelled, ProvisionError, Provisioner
from compatmatrix.runners.suite import SuiteFailure, SuiteOutcome, SuiteRunner


class FakeHandle(EnvironmentHandle):
    def __init__(self, runtime, tool_version):
        super().__init__(runtime, tool_version)
        self.cancelled = threading.Event()
        self.torn_down = False

    def exec(self, command, env=None, timeout=None):
        if self.cancelled.is_set():
            raise ExecCancelled("cancelled")
        return 0, ""

    def cancel(self):
        self.cancelled.set()

    def teardown(self):
        self.torn_down = True


class FakeProvisioner(Provisioner):
    """Fails the first ``failures[label]`` provisioning attempts of a cell."""

    def __init__(self, failures: Optional[Dict[str, int]] = None, always_fail: bool = False):
        self.failures = dict(failures or {})
        self.always_fail = always_fail
        self.attempts: Dict[str, int] = {}
        self.handles: List[FakeHandle] = []
        self._lock = threading.Lock()

    def provision(self, runtime, tool_version):
        label = f"{runtime.label}/{tool_version}"
        with self._lock:
            self.attempts[label] = self.attempts.get(label, 0) + 1
            attempt = self.attempts[label]
        if self.always_fail or attempt <= self.failures.get(label, 0):
            raise ProvisionError(f"cannot provision {label} (attempt {attempt})")
        handle = FakeHandle(runtime, tool_version)
        with self._lock:
            self.handles.append(handle)
        return handle


class ScriptedSuite(SuiteRunner):
    """Passes unless the cell label maps to a behaviour."""

    def __init__(self, behaviours: Optional[Dict[str, Callable[[FakeHandle], SuiteOutcome]]] = None):
        self.behaviours = dict(behaviours or {})
        self.runs: List[str] = []
        self._lock = threading.Lock()

    def run(self, handle):
        label = f"{handle.runtime.label}/{handle.tool_version}"
        with self._lock:
            self.runs.append(label)
        behaviour = self.behaviours.get(label)
        if behaviour is None:
            return SuiteOutcome(passed=True, details="ok", exit_code=0)
        return behaviour(handle)


def failing(handle):
    return SuiteOutcome(passed=False, details="1 test failed", exit_code=1)


def raising_failure(handle):
    raise SuiteFailure("assertion failed", details="expected 1 but was 2")


def crashing(handle):
    raise RuntimeError("suite exploded")


class Blocker:
    """A suite behaviour that blocks until released or the handle is cancelled."""

    def __init__(self):
        self.release = threading.Event()
        self.started = threading.Event()

    def __call__(self, handle):
        self.started.set()
        while not self.release.is_set():
            if handle.cancelled.wait(0.05):
                raise ExecCancelled("cancelled while blocked")
        return SuiteOutcome(passed=True, exit_code=0)
