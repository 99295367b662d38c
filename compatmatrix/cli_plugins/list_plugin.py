from collections import OrderedDict

from .base import EXIT_CONFIG_ERROR, SubcommandPlugin
from compatmatrix.errors import ConfigurationError
from compatmatrix.plan import Overrides, load_plan


class ListPlugin(SubcommandPlugin):
    def get_name(self):
        return "list"

    def get_order(self):
        return 30

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("list", help="List the cells a matrix file expands to, without running them")
        parser.add_argument("matrix_file", help="Path to the matrix declaration file (YAML or JSON)")
        parser.add_argument(
            "--ignore-lockfile", action="store_true", help="Resolve versions from the catalog even if a lockfile exists"
        )
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
List Commands:
  compatmatrix list matrix.yaml                    Show every (runtime, tool version) cell
  compatmatrix list matrix.yaml --ignore-lockfile  Show cells resolved from the catalog"""

    def load(self, matrix_file, overrides):
        """Validate the file and expand its cells, exiting with code 2 on configuration errors."""
        try:
            plan = load_plan(matrix_file, overrides)
            cells = plan.cells()
        except ConfigurationError as e:
            self.fail(e, EXIT_CONFIG_ERROR)
        return plan, cells

    def list_cells(self, matrix_file, ignore_lockfile=False):
        plan, cells = self.load(matrix_file, Overrides(use_lockfile=not ignore_lockfile))

        by_declaration = OrderedDict()
        for cell in cells:
            by_declaration.setdefault(cell.declaration, []).append(cell)

        print(f"Cells in {matrix_file}:")
        for matrix in plan.config.matrices:
            matrix_cells = by_declaration.get(matrix.name, [])
            print(f"{matrix.name} ({matrix.runtime.name}{matrix.runtime.version}, tool range {matrix.tool_range}):")
            for cell in matrix_cells:
                print(f"  - {cell.label}")
            if not matrix_cells:
                print("  (all versions already covered by an earlier matrix)")
        print(f"\nTotal: {len(cells)} cell(s)")

    def run(self, args):
        self.list_cells(args.matrix_file, args.ignore_lockfile)
