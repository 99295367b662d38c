import sys

# Process exit codes shared by all subcommands
EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


class SubcommandPlugin:
    """Base class for compatmatrix subcommands."""

    def get_name(self):
        raise NotImplementedError

    def get_parser(self, subparsers):
        """Register the subcommand with argparse subparsers."""
        raise NotImplementedError

    def get_epilog(self):
        """Examples shown under `compatmatrix --help`."""
        return ""

    def get_order(self):
        """Lower numbers are listed first."""
        return 0

    def run(self, args):
        raise NotImplementedError

    @staticmethod
    def fail(message, code=EXIT_FAILED):
        """Print an error and exit with ``code``."""
        print(f"Error: {message}")
        sys.exit(code)
