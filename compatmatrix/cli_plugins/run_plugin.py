import argparse
import logging
import os
import sys

from .base import EXIT_CONFIG_ERROR, EXIT_FAILED, EXIT_PASSED
from .list_plugin import ListPlugin
from compatmatrix.errors import ConfigurationError
from compatmatrix.plan import Overrides

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def positive_float(value):
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {value}")
    return number


def configure_logging(log_file, log_level):
    """Everything at ``log_level`` (default INFO) goes to the log file, warnings and up to the console."""
    level = getattr(logging, log_level or "INFO")
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level if log_level else logging.WARNING)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


class RunPlugin(ListPlugin):
    def get_name(self):
        return "run"

    def get_order(self):
        return 40

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("run", help="Run every cell of a compatibility matrix")
        parser.add_argument("matrix_file", help="Path to the matrix declaration file (YAML or JSON)")
        parser.add_argument("--concurrency", type=positive_int, help="Number of cells run in parallel")
        parser.add_argument("--timeout", type=positive_float, help="Global matrix timeout in seconds")
        parser.add_argument("--output-dir", help="Directory for per-cell logs")
        parser.add_argument("--json", help="Write the JSON report to this path")
        parser.add_argument("--html", help="Write the HTML heatmap to this path")
        parser.add_argument("--publish", action="store_true", help="Publish the report to the configured git branch")
        parser.add_argument(
            "--ignore-lockfile", action="store_true", help="Resolve versions from the catalog even if a lockfile exists"
        )
        parser.add_argument(
            "--log-file",
            default="/tmp/compatmatrix/matrix.log",
            help="Path to file for logging output (default: /tmp/compatmatrix/matrix.log)",
        )
        parser.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Level of messages to log (also shown on the console when set)",
        )
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Run Commands:
  compatmatrix run matrix.yaml                         Run all cells
  compatmatrix run matrix.yaml --concurrency 4         Run at most 4 cells at a time
  compatmatrix run matrix.yaml --timeout 3600          Give up on the matrix after an hour
  compatmatrix run matrix.yaml --html report.html      Also write an HTML heatmap
  compatmatrix run matrix.yaml --publish               Push the report to the configured git branch"""

    def run(self, args):
        configure_logging(args.log_file, args.log_level)
        overrides = Overrides(
            concurrency=args.concurrency,
            timeout_seconds=args.timeout,
            output_dir=args.output_dir,
            json_path=args.json,
            html_path=args.html,
            publish=args.publish,
            use_lockfile=not args.ignore_lockfile,
        )
        sys.exit(self.run_matrix(args.matrix_file, overrides))

    def run_matrix(self, matrix_file, overrides):
        """Run the matrix and publish its report. Returns the process exit code."""
        plan, cells = self.load(matrix_file, overrides)
        try:
            sinks = plan.sinks()
            provisioner = plan.provisioner()
            runner = plan.runner(provisioner)
        except ConfigurationError as e:
            print(f"Error: {e}")
            return EXIT_CONFIG_ERROR

        print(f"Running {len(cells)} cell(s) from {matrix_file}")
        try:
            report = runner.run(cells)
        finally:
            provisioner.close()

        sink_failed = False
        for sink in sinks:
            try:
                sink.publish(report)
            except Exception as e:
                log.exception(f"Report sink {type(sink).__name__} failed")
                print(f"Error: {type(sink).__name__} failed: {e}")
                sink_failed = True

        if report.succeeded and not sink_failed:
            return EXIT_PASSED
        return EXIT_FAILED
