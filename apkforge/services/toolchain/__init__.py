"""Toolchain invocation: SDK layout, process runner, builder, packager and bundles."""

from .builder import AndroidBuilder
from .bundle import copy_folders, explode_bundle, package_classes_jar, zip_bundle
from .packager import Packager, SigningInfo
from .runner import CommandLineRunner
from .sdk import AndroidTarget
from .symbols import SymbolLoader, SymbolWriter

__all__ = [
    "AndroidBuilder",
    "AndroidTarget",
    "CommandLineRunner",
    "Packager",
    "SigningInfo",
    "SymbolLoader",
    "SymbolWriter",
    "copy_folders",
    "explode_bundle",
    "package_classes_jar",
    "zip_bundle",
]
