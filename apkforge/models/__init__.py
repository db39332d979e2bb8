"""
apkforge data models.

Pydantic models for the configuration layers of a variant (product flavors,
build types, source sets), the dependency graph and the project description.
"""

from .dependency import (
    AndroidDependency,
    BundleDependency,
    JarDependency,
    ManifestDependency,
    SymbolFileProvider,
)
from .flavor import (
    DEBUG,
    RELEASE,
    BuildType,
    ConstantLines,
    ProductFlavor,
    SigningConfig,
    fold_flavors,
    merge_flavors,
)
from .project import AndroidProject, LibraryDeclaration, SourceSetDependencies
from .source import SourceProvider

__all__ = [
    # Dependencies
    "AndroidDependency",
    "BundleDependency",
    "JarDependency",
    "ManifestDependency",
    "SymbolFileProvider",
    # Configuration layers
    "DEBUG",
    "RELEASE",
    "BuildType",
    "ConstantLines",
    "ProductFlavor",
    "SigningConfig",
    "fold_flavors",
    "merge_flavors",
    # Project
    "AndroidProject",
    "LibraryDeclaration",
    "SourceSetDependencies",
    "SourceProvider",
]
