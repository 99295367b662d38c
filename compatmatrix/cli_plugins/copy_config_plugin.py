import os
import shutil
from pathlib import Path

from .base import SubcommandPlugin

EXAMPLE_SUFFIXES = (".yaml", ".yml", ".json")
EXAMPLES_ROOT = Path(__file__).resolve().parent.parent / "input" / "config_file"


class CopyConfigPlugin(SubcommandPlugin):
    """Lists the example matrix files shipped with the package and copies them out."""

    def __init__(self, examples_root=EXAMPLES_ROOT):
        self.examples_root = Path(examples_root)

    def get_name(self):
        return "copy-config"

    def get_order(self):
        return 10

    def get_parser(self, subparsers):
        parser = subparsers.add_parser(
            "copy-config", help="List or copy example matrix files. Lists files if --output not specified."
        )
        parser.add_argument("path", nargs="?", help="Example file or subdirectory (e.g. gradle-plugin.yaml)")
        parser.add_argument("--all", action="store_true", help="Copy every example, keeping relative paths")
        parser.add_argument("--output", help="Destination file or directory")
        parser.add_argument("--force", action="store_true", help="Overwrite files that already exist")
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Copy-Config Commands:
  compatmatrix copy-config                                           List all example matrix files
  compatmatrix copy-config gradle-plugin.yaml --output matrix.yaml   Copy one example
  compatmatrix copy-config --all --output /tmp/compatmatrix/input/   Copy every example
  compatmatrix copy-config --all --output /tmp/compatmatrix/input/ --force   Overwrite existing files"""

    def examples(self, subpath=""):
        """Example files under ``subpath``, relative to the examples root."""
        base = self.examples_root / subpath
        if base.is_file():
            candidates = [base]
        elif base.is_dir():
            candidates = [p for p in base.rglob("*") if p.is_file()]
        else:
            return []
        return sorted(p.relative_to(self.examples_root).as_posix() for p in candidates if p.suffix in EXAMPLE_SUFFIXES)

    @staticmethod
    def copy_file(src, dest, force):
        """Copy ``src`` to ``dest``. Returns False, leaving ``dest`` alone, if it exists and not ``force``."""
        if os.path.exists(dest) and not force:
            print(f"Error: File {dest} already exists. Use --force to overwrite.")
            return False
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        return True

    def show(self, subpath):
        names = self.examples(subpath)
        if not names:
            print("No example files found at the specified path.")
            return
        print(f"Examples under {self.examples_root / subpath if subpath else self.examples_root}:")
        for name in names:
            print(f"  {name}")

    def copy_all(self, output, force):
        copied = 0
        for name in self.examples():
            if not self.copy_file(self.examples_root / name, os.path.join(output, name), force):
                return
            copied += 1
        print(f"Copied {copied} example file(s) to {output}")

    def copy_one(self, name, output, force):
        src = self.examples_root / name
        if not src.is_file():
            print(f"Example file not found: {name}")
            return
        dest = os.path.join(output, src.name) if os.path.isdir(output) else output
        if self.copy_file(src, dest, force):
            print(f"Copied {src} to {dest}")

    def run(self, args):
        if args.all:
            if not args.output:
                print("Error: --output required when using --all")
                return
            self.copy_all(args.output, args.force)
        elif not args.output:
            self.show(args.path or "")
        elif not args.path:
            print("Error: path to an example file required for copying")
        else:
            self.copy_one(args.path, args.output, args.force)
