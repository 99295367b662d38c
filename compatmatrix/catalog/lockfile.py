"""
Pinned tool versions per declared range.

A lockfile records the versions a catalog resolved for every range of a
matrix so later runs exercise exactly the same cells, independent of new
releases appearing in the catalog. Format::

    {
      "[5.0,*)": ["5.6.4", "6.9.4", "7.6.4"],
      "[7.3,*)": ["7.3.3", "7.6.4"]
    }

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Sequence, Union
import json
import logging

from compatmatrix.errors import ConfigurationError
from compatmatrix.matrix.version import Version, VersionRange

log = logging.getLogger(__name__)


class LockfileResolver:
    """Resolves a range to the versions pinned for it in a lockfile."""

    def __init__(self, pins: Dict[str, Sequence[str]], path=None):
        self.path = path
        self.pins: Dict[VersionRange, List[Version]] = {}
        for range_text, versions in pins.items():
            self.pins[VersionRange.parse(range_text)] = [Version(v) for v in versions]

    @classmethod
    def load(cls, path: Union[str, Path]) -> "LockfileResolver":
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Lockfile not found: {path}")
        try:
            with open(path) as f:
                pins = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Lockfile {path} is not valid JSON: {e}") from e
        if not isinstance(pins, dict):
            raise ConfigurationError(f"Lockfile {path} must map version ranges to version lists")
        log.info(f"Using pinned tool versions from {path}")
        return cls(pins, path=path)

    def resolve(self, version_range: VersionRange) -> List[Version]:
        if version_range not in self.pins:
            log.warning(f"Range {version_range} is not pinned in lockfile {self.path}")
            return []
        return list(self.pins[version_range])

    def __call__(self, version_range: VersionRange) -> List[Version]:
        return self.resolve(version_range)


def build_lock(
    ranges: Iterable[VersionRange], resolver: Callable[[VersionRange], Sequence[Version]]
) -> Dict[str, List[str]]:
    """Resolve each distinct range once and return the lockfile mapping."""
    lock: Dict[str, List[str]] = {}
    for version_range in ranges:
        key = str(version_range)
        if key in lock:
            continue
        lock[key] = [str(v) for v in sorted(resolver(version_range))]
    return lock


def write_lockfile(path: Union[str, Path], lock: Dict[str, List[str]]):
    path = Path(path)
    if path.parent:
        path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(lock, f, indent=2, sort_keys=True)
        f.write("\n")
    log.info(f"Wrote lockfile {path} ({len(lock)} range(s))")
