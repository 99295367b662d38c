import unittest

from compatmatrix.catalog import StaticCatalog
from compatmatrix.matrix.builder import MatrixBuilder, NoCompatibleVersionError
from compatmatrix.matrix.models import CellStatus, MatrixDeclaration, RuntimeSpec, ToolRange
from compatmatrix.matrix.version import Version


def declare(name, runtime_version, tool_range):
    return MatrixDeclaration(name, RuntimeSpec("java", runtime_version), ToolRange(tool_range))


class TestMatrixBuilder(unittest.TestCase):
    def setUp(self):
        self.catalog = StaticCatalog(["5.6.4", "6.9.4", "7.3.3", "7.6.4", "8.5"], policy="all")

    def test_cell_count_is_sum_of_resolved_versions(self):
        declarations = [declare("java8", "8", "5.0"), declare("java17", "17", "7.3")]
        cells = MatrixBuilder(self.catalog).build(declarations)
        self.assertEqual(len(cells), 5 + 3)
        self.assertTrue(all(cell.status == CellStatus.PENDING for cell in cells))

    def test_order_is_declaration_then_ascending_version(self):
        resolver = lambda r: [Version("8.5"), Version("7.3.3"), Version("7.6.4")]
        cells = MatrixBuilder(resolver).build([declare("java17", "17", "7.3"), declare("java11", "11", "7.3")])
        self.assertEqual(
            [cell.label for cell in cells],
            ["java17/7.3.3", "java17/7.6.4", "java17/8.5", "java11/7.3.3", "java11/7.6.4", "java11/8.5"],
        )

    def test_empty_range_raises_and_builds_nothing(self):
        declarations = [declare("java8", "8", "5.0"), declare("future", "21", "[9.0,10.0)")]
        with self.assertRaises(NoCompatibleVersionError) as ctx:
            MatrixBuilder(self.catalog).build(declarations)
        self.assertEqual(ctx.exception.declaration.name, "future")

    def test_duplicate_triples_keep_first(self):
        declarations = [declare("a", "11", "[7.0,8.0)"), declare("b", "11", "7.3")]
        cells = MatrixBuilder(self.catalog).build(declarations)
        self.assertEqual([cell.label for cell in cells], ["java11/7.3.3", "java11/7.6.4", "java11/8.5"])
        self.assertEqual([cell.declaration for cell in cells], ["a", "a", "b"])

    def test_out_of_range_versions_dropped(self):
        resolver = lambda r: ["6.9.4", "7.3.3", "7.3.3", "7.6.4"]
        cells = MatrixBuilder(resolver).build([declare("java17", "17", "7.3")])
        self.assertEqual([str(cell.tool_version) for cell in cells], ["7.3.3", "7.6.4"])

    def test_only_out_of_range_versions_raises(self):
        resolver = lambda r: ["5.6.4"]
        with self.assertRaises(NoCompatibleVersionError):
            MatrixBuilder(resolver).build([declare("java17", "17", "7.3")])

    def test_resolve_returns_sorted_versions(self):
        versions = MatrixBuilder(self.catalog).resolve(declare("java17", "17", "7.3"))
        self.assertEqual(versions, [Version("7.3.3"), Version("7.6.4"), Version("8.5")])


if __name__ == "__main__":
    unittest.main()
