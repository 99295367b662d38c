#!/usr/bin/env python3
import argparse
import importlib
import importlib.metadata as metadata
import inspect
import os
import pkgutil
import sys

from compatmatrix.cli_plugins.base import EXIT_CONFIG_ERROR, EXIT_FAILED, SubcommandPlugin
from compatmatrix.errors import ConfigurationError

PLUGIN_PACKAGE = "compatmatrix.cli_plugins"
PLUGIN_DIR = os.path.join(os.path.dirname(__file__), "cli_plugins")
# subcommands that forward unknown options to a nested parser
PASSTHROUGH_COMMANDS = ("generate",)


def get_version():
    """Installed distribution version, or version.txt in a source checkout."""
    try:
        version = metadata.version("compatmatrix")
    except metadata.PackageNotFoundError:
        version_file = os.path.join(os.path.dirname(__file__), os.pardir, "version.txt")
        try:
            with open(version_file) as f:
                version = f.read().strip()
        except OSError:
            version = "unknown"
    return f"compatmatrix: {version}"


def _plugin_classes(module):
    """SubcommandPlugin subclasses defined in ``module`` itself, not imported into it."""
    for _, obj in inspect.getmembers(module, inspect.isclass):
        if issubclass(obj, SubcommandPlugin) and obj is not SubcommandPlugin and obj.__module__ == module.__name__:
            yield obj


def discover_plugins():
    """
    Import every module in cli_plugins/ and instantiate its subcommands.

    A module that fails to import is reported and skipped so one broken
    plugin does not take the whole CLI down.

    Returns:
        list: Plugin instances ordered by ``get_order()``, then name.
    """
    plugins = []
    for module_info in pkgutil.iter_modules([PLUGIN_DIR]):
        if module_info.ispkg:
            continue
        try:
            module = importlib.import_module(f"{PLUGIN_PACKAGE}.{module_info.name}")
        except Exception as e:
            print(f"Warning: Failed to load plugin {module_info.name}: {e}")
            continue
        plugins.extend(cls() for cls in _plugin_classes(module))
    plugins.sort(key=lambda p: (p.get_order(), p.get_name()))
    return plugins


def build_arg_parser(plugins):
    """Top-level parser: one subcommand per plugin, their usage examples as the epilog."""
    examples = [text for text in (plugin.get_epilog() for plugin in plugins) if text.strip()]
    parser = argparse.ArgumentParser(
        prog="compatmatrix",
        description="Compatibility test-matrix runner: run a test suite against every "
        "declared (runtime, tool version) combination",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="\n".join(examples),
    )
    parser.add_argument("--version", action="version", version=get_version())
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", help="Available commands")
    for plugin in plugins:
        plugin.get_parser(subparsers)
    return parser


def main(plugins=None, argv=None):
    parser = build_arg_parser(discover_plugins() if plugins is None else plugins)
    args, unknown = parser.parse_known_args(argv)
    if unknown and args.command not in PASSTHROUGH_COMMANDS:
        parser.error(f"unrecognized arguments: {' '.join(unknown)}")
    args.extra_args = unknown

    plugin = getattr(args, "_plugin", None)
    if plugin is None:
        parser.print_help(sys.stdout)
        sys.exit(EXIT_FAILED)

    try:
        plugin.run(args)
    except ConfigurationError as e:
        # plugins report their own config errors; this catches ones raised later
        SubcommandPlugin.fail(e, EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        print("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
