"""
Parsers module - matrix declaration file schemas and loading.
"""

from compatmatrix.parsers.schemas import (
    CatalogConfig,
    DockerProvisionerConfig,
    ExecutionConfig,
    LocalProvisionerConfig,
    MatrixConfig,
    MatrixFile,
    PublishConfig,
    ReportConfig,
    RuntimeConfig,
    SuiteConfig,
    load_raw_config,
    validate_config_file,
)

__all__ = [
    "CatalogConfig",
    "DockerProvisionerConfig",
    "ExecutionConfig",
    "LocalProvisionerConfig",
    "MatrixConfig",
    "MatrixFile",
    "PublishConfig",
    "ReportConfig",
    "RuntimeConfig",
    "SuiteConfig",
    "load_raw_config",
    "validate_config_file",
]
