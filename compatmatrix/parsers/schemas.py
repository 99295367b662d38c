"""
Pydantic schemas for matrix declaration files.

This is the single source of truth for what a matrix file may contain.
Config validation happens early to fail fast with clear errors, before
any cell is provisioned.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional, Union
import json

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from compatmatrix.catalog.static import POLICIES, POLICY_LATEST_PATCH
from compatmatrix.errors import ConfigFileError, ConfigurationError
from compatmatrix.matrix.version import Version, VersionRange


def _check(parse, text):
    # surface parse errors as pydantic validation errors
    try:
        parse(text)
    except ConfigurationError as e:
        raise ValueError(str(e)) from e


def _version_text(v):
    # YAML reads `version: 11` as an int and `5.10` as the float 5.1
    if isinstance(v, float):
        raise ValueError(f"Version {v!r} was read as a number; quote it, e.g. '5.10'")
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


# =============================================================================
# Suite / Catalog
# =============================================================================


class SuiteConfig(BaseModel):
    """The fixed test suite executed in every cell."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(description="Shell command template, e.g. './gradlew test -PtoolVersion={tool_version}'")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Per-cell suite timeout")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment for the suite command")

    @field_validator("command")
    @classmethod
    def validate_command_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Suite command cannot be empty")
        return v


class CatalogConfig(BaseModel):
    """Where concrete tool versions come from."""

    model_config = ConfigDict(extra="forbid")

    versions: Optional[List[str]] = Field(default=None, description="Inline list of released tool versions")
    file: Optional[str] = Field(default=None, description="JSON catalog file (list or Gradle versions/all format)")
    policy: str = Field(default=POLICY_LATEST_PATCH, description=f"One of: {', '.join(POLICIES)}")
    lockfile: Optional[str] = Field(default=None, description="Pinned versions, used instead of the catalog when present")

    @field_validator("policy")
    @classmethod
    def validate_policy(cls, v: str) -> str:
        if v not in POLICIES:
            raise ValueError(f"Unknown policy '{v}', expected one of: {', '.join(POLICIES)}")
        return v

    @field_validator("versions")
    @classmethod
    def validate_versions(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        for text in v:
            _check(Version, text)
        return v

    @model_validator(mode="after")
    def validate_source(self):
        """Exactly one of versions / file, unless a lockfile pins everything."""
        if self.versions is not None and self.file is not None:
            raise ValueError("Specify either 'versions' or 'file' in catalog, not both")
        if self.versions is None and self.file is None and self.lockfile is None:
            raise ValueError("Catalog needs 'versions', 'file' or 'lockfile'")
        return self


# =============================================================================
# Provisioners
# =============================================================================


class LocalProvisionerConfig(BaseModel):
    """Fresh temporary directory per cell on this machine."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["local"]
    project_dir: Optional[str] = Field(default=None, description="Project copied into each cell's work dir")
    copy_ignore: Optional[List[str]] = Field(default=None, description="Glob patterns skipped when copying")
    runtime_home_env: Optional[str] = Field(default=None, description="Variable receiving the runtime home, e.g. JAVA_HOME")
    runtime_homes: Dict[str, str] = Field(
        default_factory=dict, description="Runtime home per label ('java11') or version ('11')"
    )
    env: Dict[str, str] = Field(default_factory=dict)
    setup_command: Optional[str] = None
    setup_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    work_root: Optional[str] = Field(default=None, description="Parent of per-cell work dirs (default: system temp)")
    keep_workdirs: bool = False
    inherit_env: bool = True

    @model_validator(mode="after")
    def validate_homes(self):
        if self.runtime_homes and not self.runtime_home_env:
            raise ValueError("'runtime_homes' requires 'runtime_home_env' (e.g. JAVA_HOME)")
        return self


class DockerProvisionerConfig(BaseModel):
    """One container per cell."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["docker"]
    image: str = Field(description="Image template, e.g. 'eclipse-temurin:{runtime_version}-jdk'")
    project_dir: Optional[str] = Field(default=None, description="Host directory bind-mounted into the container")
    container_workdir: str = "/workspace"
    env: Dict[str, str] = Field(default_factory=dict)
    setup_command: Optional[str] = None
    network_mode: Optional[str] = None
    pull: bool = True


ProvisionerConfig = Union[LocalProvisionerConfig, DockerProvisionerConfig]


# =============================================================================
# Execution / Report
# =============================================================================


class ExecutionConfig(BaseModel):
    """Scheduling and retry settings. CLI flags override these."""

    model_config = ConfigDict(extra="forbid")

    concurrency: Optional[int] = Field(default=None, ge=1, description="Worker count (default: CPU count)")
    provision_retries: int = Field(default=2, ge=0, description="Retries after a failed provisioning attempt")
    retry_backoff_seconds: float = Field(default=5.0, ge=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Global matrix timeout")
    grace_period_seconds: float = Field(default=30.0, ge=0)
    output_dir: Optional[str] = Field(default=None, description="Directory for per-cell logs")


class PublishConfig(BaseModel):
    """Publishes report files to a branch of a git repository."""

    model_config = ConfigDict(extra="forbid")

    repo_uri: str = Field(description="Remote to push to")
    branch: str = Field(default="compat-matrix")
    repo_dir: str = Field(default="/tmp/compatmatrix/publish", description="Local working clone")
    preserve: List[str] = Field(default_factory=lambda: [".git/**"], description="Globs kept when resetting")
    commit_message: str = "Update compatibility matrix"
    sign_commit: Optional[bool] = Field(default=None, description="Unset leaves commit.gpgsign to git config")
    username_env: str = "GIT_USERNAME"
    password_env: str = "GIT_PASSWORD"
    fetch_depth: Optional[int] = Field(default=None, ge=1)
    reference_repo_uri: Optional[str] = Field(
        default=None, description="Local clone whose objects are borrowed via git alternates (full fetches only)"
    )


class ReportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    json_path: Optional[str] = Field(default=None, alias="json", description="JSON report output")
    html: Optional[str] = Field(default=None, description="HTML heatmap output")
    title: str = "Compatibility Matrix"
    publish: Optional[PublishConfig] = None


# =============================================================================
# Matrices
# =============================================================================


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(description="Runtime family, e.g. 'java'")
    version: str = Field(description="Runtime version, e.g. '11'")

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v):
        v = _version_text(v)
        if isinstance(v, str):
            _check(Version, v)
        return v


class MatrixConfig(BaseModel):
    """One declaration: a runtime and the tool range it supports."""

    model_config = ConfigDict(extra="forbid")

    name: str
    runtime: RuntimeConfig
    tool_range: str = Field(description="Interval such as '[7.3,*)' or a bare lower bound such as '5.0'")

    @field_validator("tool_range", mode="before")
    @classmethod
    def validate_range(cls, v):
        v = _version_text(v)
        if isinstance(v, str):
            _check(VersionRange.parse, v)
        return v


class MatrixFile(BaseModel):
    """
    Schema for a matrix declaration file.

    Validates the whole declaration before any cell runs. Fails fast with
    clear error messages if required fields are missing.
    """

    model_config = ConfigDict(extra="forbid")  # Catch typos in top-level keys

    suite: SuiteConfig
    catalog: CatalogConfig
    provisioner: ProvisionerConfig = Field(default_factory=lambda: LocalProvisionerConfig(type="local"), discriminator="type")
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    matrices: List[MatrixConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_unique_names(self):
        seen = set()
        for matrix in self.matrices:
            if matrix.name in seen:
                raise ValueError(f"Duplicate matrix name '{matrix.name}'")
            seen.add(matrix.name)
        return self


def load_raw_config(config_path: Union[str, Path]) -> Dict:
    """Read a YAML or JSON file into a dict."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileError(config_path, "file not found")

    try:
        with open(config_path) as f:
            if config_path.suffix in (".yaml", ".yml"):
                raw_config = yaml.safe_load(f)
            else:
                raw_config = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigFileError(config_path, f"cannot parse file:\n{e}") from e

    if raw_config is None:
        raise ConfigFileError(config_path, "file is empty")
    if not isinstance(raw_config, dict):
        raise ConfigFileError(config_path, "top level must be a mapping")
    return raw_config


def validate_config_file(config_path: Union[str, Path]) -> MatrixFile:
    """
    Load and validate a matrix declaration file.

    Args:
        config_path: Path to the matrix file (YAML or JSON)

    Returns:
        Validated MatrixFile

    Raises:
        ConfigFileError: If the file is missing, unparsable or invalid
    """
    raw_config = load_raw_config(config_path)
    try:
        return MatrixFile.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigFileError(config_path, f"invalid configuration:\n{e}") from e
    except ConfigurationError as e:
        raise ConfigFileError(config_path, str(e)) from e
