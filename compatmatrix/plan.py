"""
Turns a validated matrix file into the objects that execute it.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union
import os
import logging

from compatmatrix.catalog import LockfileResolver, StaticCatalog, load_catalog_file
from compatmatrix.errors import ConfigurationError
from compatmatrix.matrix import MatrixBuilder, MatrixCell, MatrixDeclaration, RuntimeSpec, ToolRange
from compatmatrix.matrix.builder import Resolver
from compatmatrix.parsers.schemas import (
    DockerProvisionerConfig,
    LocalProvisionerConfig,
    MatrixFile,
    validate_config_file,
)
from compatmatrix.provisioners.base import Provisioner
from compatmatrix.provisioners.local import LocalProvisioner
from compatmatrix.reports.git_publish import GitPublishSink
from compatmatrix.reports.sinks import ConsoleReportSink, HtmlReportSink, JsonReportSink, ReportSink
from compatmatrix.runners import CellExecutor, CommandSuite, ExecutorConfig, MatrixRunner, RunnerConfig

log = logging.getLogger(__name__)


@dataclass
class Overrides:
    """Command line values that take precedence over the matrix file."""

    concurrency: Optional[int] = None
    timeout_seconds: Optional[float] = None
    output_dir: Optional[str] = None
    json_path: Optional[str] = None
    html_path: Optional[str] = None
    publish: bool = False
    use_lockfile: bool = True


@dataclass
class MatrixPlan:
    """Everything needed to run one matrix file."""

    config: MatrixFile
    base_dir: Path
    overrides: Overrides = field(default_factory=Overrides)

    def path(self, value: Optional[str]) -> Optional[Path]:
        """Resolve a path from the matrix file relative to the file's directory."""
        if value is None:
            return None
        p = Path(os.path.expanduser(value))
        return p if p.is_absolute() else self.base_dir / p

    def declarations(self) -> List[MatrixDeclaration]:
        return [
            MatrixDeclaration(
                name=m.name,
                runtime=RuntimeSpec(m.runtime.name, m.runtime.version),
                tool_range=ToolRange(m.tool_range),
            )
            for m in self.config.matrices
        ]

    def catalog(self) -> StaticCatalog:
        catalog = self.config.catalog
        if catalog.file:
            return load_catalog_file(self.path(catalog.file), policy=catalog.policy)
        if catalog.versions is None:
            # only reachable when the lockfile was supposed to cover everything
            raise ConfigurationError(f"Lockfile {self.path(catalog.lockfile)} does not exist and no catalog is configured")
        return StaticCatalog(catalog.versions, policy=catalog.policy)

    def resolver(self) -> Resolver:
        """The lockfile when it exists (and is not bypassed), otherwise the catalog."""
        lockfile = self.path(self.config.catalog.lockfile)
        if lockfile is not None and self.overrides.use_lockfile and lockfile.exists():
            return LockfileResolver.load(lockfile)
        return self.catalog()

    def cells(self) -> List[MatrixCell]:
        return MatrixBuilder(self.resolver()).build(self.declarations())

    def provisioner(self) -> Provisioner:
        cfg = self.config.provisioner
        if isinstance(cfg, DockerProvisionerConfig):
            # docker SDK is only needed for this provisioner
            from compatmatrix.provisioners.docker import DockerProvisioner

            return DockerProvisioner(
                image=cfg.image,
                project_dir=self.path(cfg.project_dir),
                container_workdir=cfg.container_workdir,
                env=cfg.env,
                setup_command=cfg.setup_command,
                network_mode=cfg.network_mode,
                pull=cfg.pull,
            )
        assert isinstance(cfg, LocalProvisionerConfig)
        return LocalProvisioner(
            runtime_homes=cfg.runtime_homes,
            runtime_home_env=cfg.runtime_home_env,
            project_dir=self.path(cfg.project_dir),
            copy_ignore=cfg.copy_ignore,
            env=cfg.env,
            setup_command=cfg.setup_command,
            setup_timeout_seconds=cfg.setup_timeout_seconds,
            work_root=self.path(cfg.work_root),
            keep_workdirs=cfg.keep_workdirs,
            inherit_env=cfg.inherit_env,
        )

    def suite(self) -> CommandSuite:
        suite = self.config.suite
        return CommandSuite(suite.command, timeout_seconds=suite.timeout_seconds, env=suite.env)

    def output_dir(self) -> Optional[Path]:
        if self.overrides.output_dir:
            return Path(self.overrides.output_dir)
        return self.path(self.config.execution.output_dir)

    def executor_config(self) -> ExecutorConfig:
        execution = self.config.execution
        return ExecutorConfig(
            provision_retries=execution.provision_retries,
            retry_backoff_seconds=execution.retry_backoff_seconds,
            output_dir=self.output_dir(),
        )

    def runner_config(self) -> RunnerConfig:
        execution = self.config.execution
        return RunnerConfig(
            concurrency=self.overrides.concurrency or execution.concurrency,
            timeout_seconds=self.overrides.timeout_seconds or execution.timeout_seconds,
            grace_period_seconds=execution.grace_period_seconds,
        )

    def runner(self, provisioner: Optional[Provisioner] = None) -> MatrixRunner:
        executor = CellExecutor(provisioner or self.provisioner(), self.suite(), self.executor_config())
        return MatrixRunner(executor, self.runner_config())

    def sinks(self) -> List[ReportSink]:
        report = self.config.report
        sinks: List[ReportSink] = [ConsoleReportSink()]

        json_path = Path(self.overrides.json_path) if self.overrides.json_path else self.path(report.json_path)
        if json_path:
            sinks.append(JsonReportSink(json_path))
        html_path = Path(self.overrides.html_path) if self.overrides.html_path else self.path(report.html)
        if html_path:
            sinks.append(HtmlReportSink(html_path, title=report.title))

        if self.overrides.publish:
            publish = report.publish
            if publish is None:
                raise ConfigurationError("--publish requires a 'report.publish' section in the matrix file")
            reference = publish.reference_repo_uri
            if reference and not reference.startswith("file://"):
                reference = str(self.path(reference))
            output_dir = self.output_dir()
            sinks.append(
                GitPublishSink(
                    repo_uri=publish.repo_uri,
                    repo_dir=self.path(publish.repo_dir),
                    branch=publish.branch,
                    contents=[output_dir] if output_dir else [],
                    preserve=publish.preserve,
                    commit_message=publish.commit_message,
                    sign_commit=publish.sign_commit,
                    username=os.environ.get(publish.username_env),
                    password=os.environ.get(publish.password_env),
                    fetch_depth=publish.fetch_depth,
                    reference_repo_uri=reference,
                    title=report.title,
                )
            )
        return sinks


def load_plan(config_path: Union[str, Path], overrides: Optional[Overrides] = None) -> MatrixPlan:
    """Validate a matrix file and wrap it in a plan. Raises ConfigurationError."""
    config_path = Path(config_path)
    config = validate_config_file(config_path)
    log.info(f"Loaded matrix file {config_path} ({len(config.matrices)} declaration(s))")
    return MatrixPlan(config=config, base_dir=config_path.resolve().parent, overrides=overrides or Overrides())
