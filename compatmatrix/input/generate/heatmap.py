#!/usr/bin/env python3
'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
'''

import argparse
import json

from compatmatrix.errors import ConfigurationError
from compatmatrix.input.generate.base import GeneratorPlugin
from compatmatrix.matrix.models import MatrixReport
from compatmatrix.reports.sinks import HtmlReportSink


class HeatmapGenerator(GeneratorPlugin):
    """Renders the HTML heatmap of a previously written JSON report"""

    def get_name(self):
        return "heatmap"

    def get_description(self):
        return "Render an HTML runtime x tool-version heatmap from a JSON report"

    def get_parser(self):
        parser = argparse.ArgumentParser(description="Generate an HTML heatmap from a JSON report")
        parser.add_argument("--input_json", required=True, help="JSON report written by 'compatmatrix run --json'")
        parser.add_argument("--output_html", required=True, help="HTML file to write")
        parser.add_argument("--title", default="Compatibility Matrix", help="Page title")
        return parser

    def generate(self, args):
        try:
            with open(args.input_json) as f:
                data = json.load(f)
            report = MatrixReport.from_dict(data)
        except (OSError, ValueError, KeyError, ConfigurationError) as e:
            self.abort(f"cannot read report {args.input_json}: {e}")

        HtmlReportSink(args.output_html, title=args.title).publish(report)
        print(f"Generated heatmap: {args.output_html} ({len(report.cells)} cells, result {report.result.value})")


def main():
    generator = HeatmapGenerator()
    args = generator.get_parser().parse_args()
    generator.generate(args)


if __name__ == "__main__":
    main()
