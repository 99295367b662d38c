#!/usr/bin/env python3
'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
'''

import importlib
import inspect
import os
import pkgutil
import sys
from abc import ABC, abstractmethod

GENERATOR_PACKAGE = "compatmatrix.input.generate"


class GeneratorPlugin(ABC):
    """Base class for `compatmatrix generate <name>` plugins"""

    @abstractmethod
    def get_name(self):
        """Name used on the command line"""
        pass

    @abstractmethod
    def get_description(self):
        """One line shown by `compatmatrix generate`"""
        pass

    @abstractmethod
    def get_parser(self):
        """argparse parser for the generator's own options"""
        pass

    @abstractmethod
    def generate(self, args):
        pass

    @staticmethod
    def abort(message, code=1):
        print(f"Error: {message}")
        sys.exit(code)

    def prepare_output(self, path, force=False):
        """Refuse to clobber ``path`` unless ``force``; create its parent directory."""
        if os.path.exists(path) and not force:
            self.abort(f"File {path} already exists. Use --force to overwrite.")
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)


def _discover_generators():
    """Map generator name -> instance for every concrete GeneratorPlugin in this package."""
    generators = {}
    for module_info in pkgutil.iter_modules([os.path.dirname(__file__)]):
        if module_info.ispkg or module_info.name == "base":
            continue
        try:
            module = importlib.import_module(f"{GENERATOR_PACKAGE}.{module_info.name}")
        except Exception as e:
            print(f"Warning: Failed to load generator {module_info.name}: {e}")
            continue
        for _, cls in inspect.getmembers(module, inspect.isclass):
            if issubclass(cls, GeneratorPlugin) and not inspect.isabstract(cls) and cls.__module__ == module.__name__:
                plugin = cls()
                generators[plugin.get_name()] = plugin
    return generators


def _run_generator(generator_name, args):
    """Parse ``args`` with the generator's parser and run it. Exits 1 for unknown names."""
    plugin = _discover_generators().get(generator_name)
    if plugin is None:
        GeneratorPlugin.abort(f"Generator '{generator_name}' not found.")

    parser = plugin.get_parser()
    parser.prog = f"compatmatrix generate {generator_name}"
    # --help and usage errors leave through argparse's SystemExit
    plugin.generate(parser.parse_args(args))
