"""
Local provisioner: one fresh working directory and environment per cell.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from pathlib import Path
from threading import Event, Lock
from typing import Dict, List, Optional, Tuple
import os
import shutil
import signal
import subprocess
import tempfile
import time
import logging

from compatmatrix.matrix.models import RuntimeSpec
from compatmatrix.matrix.version import Version
from compatmatrix.provisioners.base import (
    EnvironmentHandle,
    ExecCancelled,
    ExecTimeout,
    ProvisionError,
    Provisioner,
    placeholders,
    render,
    render_env,
)

log = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.2
DEFAULT_COPY_IGNORE = [".git", ".gradle", "build", "__pycache__"]


class LocalHandle(EnvironmentHandle):
    """Runs commands as subprocesses inside the cell's private work dir."""

    def __init__(
        self,
        runtime: RuntimeSpec,
        tool_version: Version,
        workdir: Path,
        env: Dict[str, str],
        keep_workdir: bool = False,
    ):
        super().__init__(runtime, tool_version)
        self.workdir = workdir
        self.env = env
        self.keep_workdir = keep_workdir
        self._cancelled = Event()
        self._procs: List[subprocess.Popen] = []
        self._lock = Lock()

    def exec(self, command, env=None, timeout=None) -> Tuple[int, str]:
        if self._cancelled.is_set():
            raise ExecCancelled(f"{self.describe()} was cancelled")

        full_env = dict(self.env)
        if env:
            full_env.update(env)

        log.debug(f"[{self.runtime.label}/{self.tool_version}] exec: {command}")
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=str(self.workdir),
            env=full_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=True,
        )
        with self._lock:
            self._procs.append(proc)

        deadline = time.monotonic() + timeout if timeout else None
        chunks = []
        try:
            while True:
                try:
                    out, _ = proc.communicate(timeout=POLL_INTERVAL_SECONDS)
                    chunks.append(out or "")
                    break
                except subprocess.TimeoutExpired:
                    if self._cancelled.is_set():
                        self._kill(proc)
                        proc.communicate()
                        raise ExecCancelled(f"{self.describe()} was cancelled while running: {command}")
                    if deadline is not None and time.monotonic() >= deadline:
                        self._kill(proc)
                        out, _ = proc.communicate()
                        raise ExecTimeout(command, timeout, out or "")
        finally:
            with self._lock:
                self._procs.remove(proc)

        if self._cancelled.is_set():
            # killed by cancel() between polls
            raise ExecCancelled(f"{self.describe()} was cancelled while running: {command}")
        return proc.returncode, "".join(chunks)

    @staticmethod
    def _kill(proc: subprocess.Popen):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            proc.kill()

    def cancel(self):
        self._cancelled.set()
        with self._lock:
            procs = list(self._procs)
        for proc in procs:
            if proc.poll() is None:
                self._kill(proc)

    def teardown(self):
        self.cancel()
        if self.keep_workdir:
            log.info(f"Keeping work dir {self.workdir} for {self.runtime.label}/{self.tool_version}")
            return
        shutil.rmtree(self.workdir, ignore_errors=True)


class LocalProvisioner(Provisioner):
    """
    Provision cells on the local machine.

    Each cell gets a new temporary directory (optionally seeded with a copy
    of the project under test) and its own environment: the parent
    environment plus ``RUNTIME_NAME``, ``RUNTIME_VERSION``, ``TOOL_VERSION``
    and, when ``runtime_home_env`` is set, the runtime's home directory
    looked up in ``runtime_homes`` by label (``java11``) or version (``11``).
    """

    def __init__(
        self,
        runtime_homes: Optional[Dict[str, str]] = None,
        runtime_home_env: Optional[str] = None,
        project_dir: Optional[Path] = None,
        copy_ignore: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        setup_command: Optional[str] = None,
        setup_timeout_seconds: Optional[float] = None,
        work_root: Optional[Path] = None,
        keep_workdirs: bool = False,
        inherit_env: bool = True,
    ):
        self.runtime_homes = dict(runtime_homes or {})
        self.runtime_home_env = runtime_home_env
        self.project_dir = Path(project_dir) if project_dir else None
        self.copy_ignore = DEFAULT_COPY_IGNORE if copy_ignore is None else list(copy_ignore)
        self.env = dict(env or {})
        self.setup_command = setup_command
        self.setup_timeout_seconds = setup_timeout_seconds
        self.work_root = Path(work_root) if work_root else None
        self.keep_workdirs = keep_workdirs
        self.inherit_env = inherit_env

    def _runtime_home(self, runtime: RuntimeSpec) -> Optional[str]:
        for key in (runtime.label, str(runtime.version)):
            if key in self.runtime_homes:
                return self.runtime_homes[key]
        return None

    def _build_env(self, runtime: RuntimeSpec, tool_version: Version, workdir: Path) -> Dict[str, str]:
        env = dict(os.environ) if self.inherit_env else {}
        env["RUNTIME_NAME"] = runtime.name
        env["RUNTIME_VERSION"] = str(runtime.version)
        env["TOOL_VERSION"] = str(tool_version)

        values = placeholders(runtime, tool_version, workdir=workdir)
        if self.runtime_home_env:
            home = self._runtime_home(runtime)
            if home is None:
                raise ProvisionError(f"No home configured for runtime {runtime.label}")
            home = render(home, values)
            if not os.path.isdir(home):
                raise ProvisionError(f"Runtime home for {runtime.label} does not exist: {home}")
            env[self.runtime_home_env] = home
            env["PATH"] = os.pathsep.join([os.path.join(home, "bin"), env.get("PATH", "")])
            values["runtime_home"] = home

        env.update(render_env(self.env, values))
        return env

    def provision(self, runtime: RuntimeSpec, tool_version: Version) -> LocalHandle:
        if self.work_root:
            self.work_root.mkdir(parents=True, exist_ok=True)
        prefix = f"compatmatrix-{runtime.label}-{tool_version}-"
        try:
            workdir = Path(tempfile.mkdtemp(prefix=prefix, dir=str(self.work_root) if self.work_root else None))
        except OSError as e:
            raise ProvisionError(f"Could not create work dir for {runtime.label}/{tool_version}: {e}") from e

        try:
            env = self._build_env(runtime, tool_version, workdir)
            if self.project_dir:
                if not self.project_dir.is_dir():
                    raise ProvisionError(f"Project directory does not exist: {self.project_dir}")
                log.info(f"Copying {self.project_dir} into {workdir}")
                shutil.copytree(
                    str(self.project_dir),
                    str(workdir),
                    ignore=shutil.ignore_patterns(*self.copy_ignore),
                    dirs_exist_ok=True,
                )
        except ProvisionError:
            shutil.rmtree(workdir, ignore_errors=True)
            raise
        except (OSError, shutil.Error) as e:
            shutil.rmtree(workdir, ignore_errors=True)
            raise ProvisionError(f"Could not prepare work dir for {runtime.label}/{tool_version}: {e}") from e

        handle = LocalHandle(runtime, tool_version, workdir, env, keep_workdir=self.keep_workdirs)
        if self.setup_command:
            self._run_setup(handle)
        log.info(f"Provisioned {handle.describe()} in {workdir}")
        return handle

    def _run_setup(self, handle: LocalHandle):
        command = render(self.setup_command, placeholders(handle.runtime, handle.tool_version, workdir=handle.workdir))
        try:
            exit_code, output = handle.exec(command, timeout=self.setup_timeout_seconds)
        except ExecTimeout as e:
            handle.teardown()
            raise ProvisionError(f"Setup command timed out: {e}") from e
        except ExecCancelled:
            handle.teardown()
            raise
        if exit_code != 0:
            handle.teardown()
            raise ProvisionError(f"Setup command failed with exit code {exit_code}:\n{output[-2000:]}")
