#!/usr/bin/env python3
'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
'''

import argparse
import os
from importlib import resources

import yaml
from jinja2 import Template
from pydantic import ValidationError

from compatmatrix.input.generate.base import GeneratorPlugin
from compatmatrix.parsers.schemas import MatrixFile


def parse_declaration(text):
    """
    Parse ``NAME=RUNTIME:VERSION:RANGE`` or ``RUNTIME:VERSION:RANGE``.

    Without a name the declaration is named after the runtime label,
    e.g. ``java:11:5.0`` becomes ``java11``.
    """
    name = None
    if "=" in text:
        name, text = text.split("=", 1)
    parts = text.split(":", 2)
    if len(parts) != 3 or not all(parts):
        raise argparse.ArgumentTypeError(f"expected [NAME=]RUNTIME:VERSION:RANGE, got '{text}'")
    runtime_name, runtime_version, tool_range = parts
    return {
        "name": name or f"{runtime_name}{runtime_version}",
        "runtime_name": runtime_name,
        "runtime_version": runtime_version,
        "tool_range": tool_range,
    }


class MatrixFileGenerator(GeneratorPlugin):
    """Generator plugin for creating starter matrix declaration files"""

    def get_name(self):
        return "matrix_file"

    def get_description(self):
        return "Generate a starter matrix declaration file"

    def get_parser(self):
        parser = argparse.ArgumentParser(description="Generate a matrix declaration file")
        parser.add_argument("--output_file", required=True, help="YAML file to write")
        parser.add_argument(
            "--matrix",
            dest="matrices",
            action="append",
            type=parse_declaration,
            required=True,
            help="Declaration as [NAME=]RUNTIME:VERSION:RANGE, e.g. java17=java:17:[7.3,*) (repeatable)",
        )
        parser.add_argument("--command", required=True, help="Suite command, may use {tool_version} etc.")
        parser.add_argument("--versions", nargs="+", help="Known tool releases for an inline catalog")
        parser.add_argument("--catalog_file", help="JSON catalog file instead of --versions")
        parser.add_argument(
            "--policy", default="latest-patch", choices=["all", "latest-patch", "latest-minor", "latest"]
        )
        parser.add_argument("--lockfile", help="Lockfile path to record in the catalog section")
        parser.add_argument("--provisioner", default="local", choices=["local", "docker"])
        parser.add_argument("--image", default="eclipse-temurin:{runtime_version}-jdk", help="Docker image template")
        parser.add_argument("--project_dir", default=".", help="Project under test")
        parser.add_argument("--runtime_home_env", help="e.g. JAVA_HOME, adds a runtime_homes section to fill in")
        parser.add_argument("--suite_timeout", type=float, help="Per-cell suite timeout in seconds")
        parser.add_argument("--concurrency", type=int)
        parser.add_argument("--output_dir", default="build/compatmatrix", help="Per-cell logs and reports")
        parser.add_argument("--title", default="Compatibility Matrix")
        parser.add_argument("--force", action="store_true", help="Overwrite an existing output file")
        return parser

    def render(self, args):
        template_content = resources.files("compatmatrix.input.templates").joinpath("matrix_file.yaml.template").read_text()
        template = Template(template_content)
        runtime_labels = []
        for matrix in args.matrices:
            label = f"{matrix['runtime_name']}{matrix['runtime_version']}"
            if label not in runtime_labels:
                runtime_labels.append(label)
        return template.render(
            file_name=os.path.basename(args.output_file),
            command=args.command,
            suite_timeout=args.suite_timeout,
            versions=args.versions or [],
            catalog_file=args.catalog_file,
            policy=args.policy,
            lockfile=args.lockfile,
            provisioner=args.provisioner,
            image=args.image,
            project_dir=args.project_dir,
            runtime_home_env=args.runtime_home_env,
            runtime_labels=runtime_labels,
            concurrency=args.concurrency,
            output_dir=args.output_dir,
            title=args.title,
            matrices=args.matrices,
        )

    def generate(self, args):
        if not args.versions and not args.catalog_file:
            self.abort("one of --versions or --catalog_file is mandatory")
        self.prepare_output(args.output_file, args.force)

        rendered = self.render(args)
        try:
            MatrixFile.model_validate(yaml.safe_load(rendered))
        except (yaml.YAMLError, ValidationError) as e:
            self.abort(f"generated matrix file is invalid:\n{e}", code=2)

        with open(args.output_file, "w") as fp:
            fp.write(rendered)

        print(f"Generated matrix file: {args.output_file}")
        print(f"Declarations: {', '.join(m['name'] for m in args.matrices)}")


def main():
    generator = MatrixFileGenerator()
    args = generator.get_parser().parse_args()
    generator.generate(args)


if __name__ == "__main__":
    main()
