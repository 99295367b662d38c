"""
Docker provisioner: one throwaway container per cell.

The image is chosen from a template such as
``eclipse-temurin:{runtime_version}-jdk`` so each runtime version runs in
its own image. The project under test is bind-mounted into the container.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from pathlib import Path
from threading import Event, Lock
from typing import Callable, Dict, Optional, Tuple
import re
import uuid
import logging

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.models.containers import Container

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

# exit code of coreutils `timeout` when the command ran out of time
TIMEOUT_EXIT_CODE = 124


class DockerHandle(EnvironmentHandle):
    """Runs commands with ``docker exec`` inside the cell's container."""

    def __init__(
        self,
        runtime: RuntimeSpec,
        tool_version: Version,
        container: Container,
        env: Dict[str, str],
        workdir: str,
    ):
        super().__init__(runtime, tool_version)
        self.container = container
        self.env = env
        self.workdir = workdir
        self._cancelled = Event()

    def exec(self, command, env=None, timeout=None) -> Tuple[int, str]:
        if self._cancelled.is_set():
            raise ExecCancelled(f"{self.describe()} was cancelled")

        full_env = dict(self.env)
        if env:
            full_env.update(env)

        cmd = ["sh", "-c", command]
        if timeout:
            cmd = ["timeout", str(int(max(1, timeout)))] + cmd

        log.debug(f"[{self.runtime.label}/{self.tool_version}] docker exec: {command}")
        try:
            exit_code, output = self.container.exec_run(cmd, environment=full_env, workdir=self.workdir)
        except (APIError, DockerException) as e:
            if self._cancelled.is_set():
                raise ExecCancelled(f"{self.describe()} was cancelled while running: {command}") from e
            raise

        output_str = output.decode("utf-8", errors="replace") if isinstance(output, bytes) else str(output or "")
        if self._cancelled.is_set():
            raise ExecCancelled(f"{self.describe()} was cancelled while running: {command}")
        if timeout and exit_code == TIMEOUT_EXIT_CODE:
            raise ExecTimeout(command, timeout, output_str)
        return exit_code, output_str

    def cancel(self):
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        try:
            self.container.kill()
        except (APIError, DockerException) as e:
            log.debug(f"Kill of {self.container.name} during cancel failed: {e}")

    def teardown(self):
        try:
            self.container.remove(force=True)
            log.info(f"Removed container {self.container.name}")
        except NotFound:
            pass
        except (APIError, DockerException) as e:
            log.warning(f"Teardown error (non-fatal): {e}")


class DockerProvisioner(Provisioner):
    """
    Provision each cell as a fresh container.

    Image pulls and container launches that fail raise ProvisionError so
    the executor can retry them.
    """

    def __init__(
        self,
        image: str,
        project_dir: Optional[Path] = None,
        container_workdir: str = "/workspace",
        env: Optional[Dict[str, str]] = None,
        setup_command: Optional[str] = None,
        network_mode: Optional[str] = None,
        pull: bool = True,
        client_factory: Optional[Callable[[], "docker.DockerClient"]] = None,
    ):
        self.image = image
        self.project_dir = Path(project_dir) if project_dir else None
        self.container_workdir = container_workdir
        self.env = dict(env or {})
        self.setup_command = setup_command
        self.network_mode = network_mode
        self.pull = pull
        self.client_factory = client_factory or docker.from_env
        self._client = None
        self._lock = Lock()
        self._pulled = set()

    @property
    def client(self) -> "docker.DockerClient":
        with self._lock:
            if self._client is None:
                try:
                    self._client = self.client_factory()
                    self._client.ping()
                except DockerException as e:
                    self._client = None
                    raise ProvisionError(f"Cannot connect to Docker daemon: {e}") from e
            return self._client

    @staticmethod
    def container_name(runtime: RuntimeSpec, tool_version: Version) -> str:
        base = re.sub(r"[^a-zA-Z0-9_.-]", "-", f"compatmatrix-{runtime.label}-{tool_version}")
        return f"{base}-{uuid.uuid4().hex[:8]}"

    def _pull(self, image: str):
        with self._lock:
            if image in self._pulled:
                return
        log.info(f"Pulling image {image}...")
        try:
            self.client.images.pull(image)
        except ImageNotFound as e:
            raise ProvisionError(f"Image not found: {image}") from e
        except (APIError, DockerException) as e:
            raise ProvisionError(f"Failed to pull {image}: {e}") from e
        with self._lock:
            self._pulled.add(image)

    def provision(self, runtime: RuntimeSpec, tool_version: Version) -> DockerHandle:
        values = placeholders(runtime, tool_version, workdir=self.container_workdir)
        image = render(self.image, values)
        if self.pull:
            self._pull(image)

        env = {"RUNTIME_NAME": runtime.name, "RUNTIME_VERSION": str(runtime.version), "TOOL_VERSION": str(tool_version)}
        env.update(render_env(self.env, values))

        volumes = {}
        if self.project_dir:
            volumes[str(self.project_dir.resolve())] = {"bind": self.container_workdir, "mode": "rw"}

        name = self.container_name(runtime, tool_version)
        log.info(f"Launching container {name} from {image}")
        try:
            container = self.client.containers.run(
                image=image,
                name=name,
                detach=True,
                network_mode=self.network_mode,
                volumes=volumes,
                working_dir=self.container_workdir,
                environment=env,
                command="tail -f /dev/null",
            )
            container.reload()
        except ImageNotFound as e:
            raise ProvisionError(f"Image not found: {image}") from e
        except (APIError, DockerException) as e:
            raise ProvisionError(f"Failed to launch container from {image}: {e}") from e

        handle = DockerHandle(runtime, tool_version, container, env, self.container_workdir)
        if container.status != "running":
            handle.teardown()
            raise ProvisionError(f"Container {name} failed to start: {container.status}")

        if self.setup_command:
            command = render(self.setup_command, values)
            try:
                exit_code, output = handle.exec(command)
            except (APIError, DockerException) as e:
                handle.teardown()
                raise ProvisionError(f"Setup command could not run in {name}: {e}") from e
            except ExecCancelled:
                handle.teardown()
                raise
            if exit_code != 0:
                handle.teardown()
                raise ProvisionError(f"Setup command failed with exit code {exit_code}:\n{output[-2000:]}")

        log.info(f"Container {name} running for {runtime.label}/{tool_version} (ID: {container.short_id})")
        return handle

    def close(self):
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()
