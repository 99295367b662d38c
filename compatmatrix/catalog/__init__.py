"""
Catalog module - version catalog resolvers.

A resolver is any callable ``VersionRange -> sequence of Version``.
"""

from compatmatrix.catalog.static import (
    POLICIES,
    POLICY_ALL,
    POLICY_LATEST,
    POLICY_LATEST_MINOR,
    POLICY_LATEST_PATCH,
    StaticCatalog,
    apply_policy,
    load_catalog_file,
    parse_catalog_entries,
)
from compatmatrix.catalog.lockfile import LockfileResolver, build_lock, write_lockfile

__all__ = [
    "POLICIES",
    "POLICY_ALL",
    "POLICY_LATEST",
    "POLICY_LATEST_MINOR",
    "POLICY_LATEST_PATCH",
    "StaticCatalog",
    "apply_policy",
    "load_catalog_file",
    "parse_catalog_entries",
    "LockfileResolver",
    "build_lock",
    "write_lockfile",
]
