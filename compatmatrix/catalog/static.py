"""
Version catalog resolvers backed by a known list of tool releases.

The catalog decides which concrete tool versions are exercised for a
declared range. A policy thins the releases inside the range:

    all           every release in the range
    latest-patch  newest patch of each major.minor line (default)
    latest-minor  newest release of each major line
    latest        only the newest release

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union
import json
import logging

from compatmatrix.errors import ConfigurationError
from compatmatrix.matrix.version import InvalidVersionError, Version, VersionRange

log = logging.getLogger(__name__)

POLICY_ALL = "all"
POLICY_LATEST_PATCH = "latest-patch"
POLICY_LATEST_MINOR = "latest-minor"
POLICY_LATEST = "latest"
POLICIES = (POLICY_ALL, POLICY_LATEST_PATCH, POLICY_LATEST_MINOR, POLICY_LATEST)

# Keys in the Gradle services "versions/all" format that mark a non-final release
_PRERELEASE_KEYS = ("snapshot", "nightly", "releaseNightly", "broken")
_PRERELEASE_FOR_KEYS = ("rcFor", "milestoneFor")


def _group_key(version: Version, policy: str) -> Tuple:
    if policy == POLICY_LATEST_PATCH:
        return (version.major, version.minor)
    if policy == POLICY_LATEST_MINOR:
        return (version.major,)
    return ()


def apply_policy(versions: Iterable[Version], policy: str) -> List[Version]:
    """Thin an ascending-sortable collection of versions according to policy."""
    if policy not in POLICIES:
        raise ConfigurationError(f"Unknown catalog policy '{policy}', expected one of: {', '.join(POLICIES)}")
    ordered = sorted(set(versions))
    if policy == POLICY_ALL:
        return ordered

    newest: Dict[Tuple, Version] = {}
    for version in ordered:
        newest[_group_key(version, policy)] = version
    return sorted(newest.values())


class StaticCatalog:
    """
    Resolver over a fixed list of releases.

    Instances are callable so they can be handed straight to MatrixBuilder.
    """

    def __init__(self, versions: Iterable[Union[str, Version]], policy: str = POLICY_LATEST_PATCH):
        if policy not in POLICIES:
            raise ConfigurationError(f"Unknown catalog policy '{policy}', expected one of: {', '.join(POLICIES)}")
        self.policy = policy
        self.versions = sorted({Version(v) for v in versions})

    def resolve(self, version_range: VersionRange) -> List[Version]:
        in_range = [v for v in self.versions if version_range.contains(v)]
        selected = apply_policy(in_range, self.policy)
        log.debug(f"Catalog resolved {version_range} -> {[str(v) for v in selected]} (policy {self.policy})")
        return selected

    def __call__(self, version_range: VersionRange) -> List[Version]:
        return self.resolve(version_range)

    def __len__(self):
        return len(self.versions)


def _is_final_release(entry: Dict) -> bool:
    if any(entry.get(key) for key in _PRERELEASE_KEYS):
        return False
    if any(entry.get(key) for key in _PRERELEASE_FOR_KEYS):
        return False
    return True


def parse_catalog_entries(raw) -> List[Version]:
    """
    Extract final release versions from catalog data.

    Accepts a plain list of version strings, a list of Gradle-style
    release objects, or a mapping with a ``versions`` key holding either.
    Entries that are not dotted-numeric (e.g. ``8.0-rc-1``) are skipped.
    """
    if isinstance(raw, dict):
        raw = raw.get("versions", [])
    if not isinstance(raw, list):
        raise ConfigurationError("Catalog must be a list of versions or a mapping with a 'versions' list")

    versions = []
    for entry in raw:
        if isinstance(entry, dict):
            if not _is_final_release(entry):
                continue
            text = entry.get("version")
        else:
            text = entry
        try:
            versions.append(Version(text))
        except InvalidVersionError:
            log.debug(f"Skipping non-release catalog entry: {text!r}")
    return versions


def load_catalog_file(path: Union[str, Path], policy: str = POLICY_LATEST_PATCH) -> StaticCatalog:
    """Load a StaticCatalog from a JSON catalog file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Catalog file not found: {path}")
    try:
        with open(path) as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Catalog file {path} is not valid JSON: {e}") from e

    versions = parse_catalog_entries(raw)
    log.info(f"Loaded {len(versions)} release(s) from catalog {path}")
    return StaticCatalog(versions, policy=policy)
