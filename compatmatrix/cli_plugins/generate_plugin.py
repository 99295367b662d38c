import argparse

from .base import EXIT_FAILED, SubcommandPlugin
from compatmatrix.input.generate.base import _discover_generators, _run_generator

HELP_FLAGS = ("-h", "--help")


class GeneratePlugin(SubcommandPlugin):
    """Front end for the generators in compatmatrix/input/generate/."""

    def get_name(self):
        return "generate"

    def get_order(self):
        return 20

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("generate", help="Generate lockfiles, starter matrix files or heatmaps")
        parser.add_argument("generator", nargs="?", help="Generator name; omit to list them")
        parser.add_argument("generator_args", nargs=argparse.REMAINDER, help="Options passed to the generator")
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Generate Commands:
  compatmatrix generate                                 List available generators
  compatmatrix generate lockfile --matrix_file m.yaml   Pin the versions the catalog resolves today
  compatmatrix generate matrix_file --help              Options for a starter matrix file
  compatmatrix generate heatmap --input_json r.json --output_html r.html   Re-render a report"""

    def list_generators(self, generators):
        if not generators:
            self.fail("no generators found in compatmatrix/input/generate/", EXIT_FAILED)
        print("Available generators:")
        width = max(len(name) for name in generators)
        for name in sorted(generators):
            print(f"  {name.ljust(width)} - {generators[name].get_description()}")

    def run(self, args):
        if args.generator is None:
            self.list_generators(_discover_generators())
            return

        # options main() could not place belong to the generator
        forwarded = [*args.generator_args, *(getattr(args, "extra_args", None) or [])]
        args.extra_args = []
        if forwarded and forwarded[0] in HELP_FLAGS:
            forwarded = ["--help"]
        _run_generator(args.generator, forwarded)
