# run_all_unittests.py
#
#   python run_all_unittests.py                          every unittests/ package
#   python run_all_unittests.py compatmatrix/runners -q  one subsystem, quiet
import argparse
import sys
import unittest

DEFAULT_START_DIR = "compatmatrix"


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the compatmatrix unit tests")
    parser.add_argument("start_dirs", nargs="*", default=[DEFAULT_START_DIR], help="Directories to discover tests in")
    parser.add_argument("-p", "--pattern", default="test_*.py", help="Test module pattern (default: test_*.py)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report failures")
    args = parser.parse_args(argv)

    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for start_dir in args.start_dirs:
        # top_level_dir keeps module names importable as compatmatrix.*
        suite.addTests(loader.discover(start_dir=start_dir, pattern=args.pattern, top_level_dir="."))

    result = unittest.TextTestRunner(verbosity=1 if args.quiet else 2).run(suite)
    return 0 if result.wasSuccessful() else 1


if __name__ == "__main__":
    sys.exit(main())
