#!/usr/bin/env python3
'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
'''

import argparse

from compatmatrix.catalog import build_lock, write_lockfile
from compatmatrix.errors import ConfigurationError
from compatmatrix.input.generate.base import GeneratorPlugin
from compatmatrix.matrix import MatrixBuilder
from compatmatrix.plan import Overrides, load_plan


class LockfileGenerator(GeneratorPlugin):
    """Pins the tool versions the catalog currently resolves for each declared range"""

    def get_name(self):
        return "lockfile"

    def get_description(self):
        return "Resolve every tool range of a matrix file and pin the versions in a lockfile"

    def get_parser(self):
        parser = argparse.ArgumentParser(description="Generate a tool version lockfile")
        parser.add_argument("--matrix_file", required=True, help="Matrix declaration file (YAML or JSON)")
        parser.add_argument(
            "--output_file", help="Lockfile to write (default: catalog.lockfile from the matrix file)"
        )
        return parser

    def generate(self, args):
        try:
            plan = load_plan(args.matrix_file, Overrides(use_lockfile=False))
            catalog = plan.catalog()
            declarations = plan.declarations()
            # fail on ranges the catalog cannot satisfy before writing anything
            MatrixBuilder(catalog).build(declarations)
        except ConfigurationError as e:
            self.abort(e, code=2)

        output = args.output_file or plan.path(plan.config.catalog.lockfile)
        if output is None:
            self.abort("--output_file required when the matrix file has no catalog.lockfile", code=2)

        lock = build_lock((d.tool_range.compatible_range for d in declarations), catalog)
        write_lockfile(output, lock)

        print(f"Generated lockfile: {output}")
        for range_text, versions in sorted(lock.items()):
            print(f"  {range_text}: {', '.join(versions)}")


def main():
    generator = LockfileGenerator()
    args = generator.get_parser().parse_args()
    generator.generate(args)


if __name__ == "__main__":
    main()
