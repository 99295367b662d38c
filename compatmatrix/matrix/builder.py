"""
Expands matrix declarations into concrete, executable cells.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from typing import Callable, Iterable, List, Sequence, Set, Tuple
import logging

from compatmatrix.errors import ConfigurationError
from compatmatrix.matrix.models import MatrixCell, MatrixDeclaration
from compatmatrix.matrix.version import Version, VersionRange

log = logging.getLogger(__name__)

Resolver = Callable[[VersionRange], Sequence[Version]]


class NoCompatibleVersionError(ConfigurationError):
    """A declared tool range resolved to zero concrete versions."""

    def __init__(self, declaration: MatrixDeclaration):
        self.declaration = declaration
        super().__init__(
            f"No compatible tool versions for matrix '{declaration.name}' "
            f"({declaration.runtime.label}, range {declaration.tool_range.compatible_range})"
        )


class MatrixBuilder:
    """
    Turns ``(RuntimeSpec, ToolRange)`` declarations into matrix cells.

    The resolver supplies the concrete tool versions for a range; the
    builder does not care where they come from (static list, lockfile,
    remote catalog). Cells are ordered by declaration, then by ascending
    tool version, and ``(runtime, version, tool version)`` triples are
    unique.
    """

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    def resolve(self, declaration: MatrixDeclaration) -> List[Version]:
        """
        Resolve the tool versions exercised for one declaration.

        Versions outside the declared range are dropped. Raises
        NoCompatibleVersionError when nothing is left.
        """
        compatible_range = declaration.tool_range.compatible_range
        resolved = [Version(v) for v in self.resolver(compatible_range)]

        versions = []
        seen: Set[Version] = set()
        for version in resolved:
            if not compatible_range.contains(version):
                log.warning(
                    f"Resolver returned {version} outside {compatible_range} for '{declaration.name}', skipping"
                )
                continue
            if version in seen:
                continue
            seen.add(version)
            versions.append(version)

        if not versions:
            raise NoCompatibleVersionError(declaration)
        return sorted(versions)

    def build(self, declarations: Iterable[MatrixDeclaration]) -> List[MatrixCell]:
        """
        Build the ordered, deduplicated cell list.

        Every declaration is resolved before any cell is returned, so a
        NoCompatibleVersionError never leaves a partial matrix behind.
        """
        declarations = list(declarations)
        resolved = [(declaration, self.resolve(declaration)) for declaration in declarations]

        cells: List[MatrixCell] = []
        seen: Set[Tuple] = set()
        for declaration, versions in resolved:
            log.info(
                f"Matrix '{declaration.name}': {declaration.runtime.label} x "
                f"{declaration.tool_range.compatible_range} -> {', '.join(str(v) for v in versions)}"
            )
            for version in versions:
                cell = MatrixCell(runtime=declaration.runtime, tool_version=version, declaration=declaration.name)
                if cell.key in seen:
                    log.debug(f"Skipping duplicate cell {cell.label} from '{declaration.name}'")
                    continue
                seen.add(cell.key)
                cells.append(cell)

        log.info(f"Built {len(cells)} cell(s) from {len(declarations)} declaration(s)")
        return cells
