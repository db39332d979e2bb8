"""
Dependency models.

Library dependencies are Android library bundles (an exploded ``.aar`` style
folder) which may themselves depend on other libraries, forming a graph.
Jar dependencies are plain archives added to the classpath and the package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

FN_ANDROID_MANIFEST_XML = "AndroidManifest.xml"
FN_CLASSES_JAR = "classes.jar"
FN_SYMBOLS = "R.txt"
FN_PROGUARD = "proguard.txt"
FN_LINT_JAR = "lint.jar"
FD_RES = "res"
FD_ASSETS = "assets"
FD_JNI = "jni"
FD_AIDL = "aidl"


class ManifestDependency(ABC):
    """A dependency that contributes a manifest to the manifest merge."""

    @property
    @abstractmethod
    def manifest(self) -> Path:
        """Location of the library manifest."""

    @property
    @abstractmethod
    def manifest_dependencies(self) -> list[ManifestDependency]:
        """Direct dependencies whose manifests merge into this one."""


class SymbolFileProvider(ABC):
    """A dependency that provides a text symbol file (``R.txt``)."""

    @property
    @abstractmethod
    def manifest(self) -> Path:
        """Location of the library manifest, used to find its package."""

    @property
    @abstractmethod
    def symbol_file(self) -> Path:
        """Location of the text symbol file."""


class AndroidDependency(ManifestDependency, SymbolFileProvider):
    """A dependency on an Android library.

    Nodes are shared between variants and must be treated as read-only once
    the dependency graph has been assembled.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identity of the library (``group:artifact:version`` or a path)."""

    @property
    @abstractmethod
    def dependencies(self) -> list[AndroidDependency]:
        """Direct library dependencies of this library."""

    @property
    @abstractmethod
    def jar_file(self) -> Path:
        """Compiled classes archive."""

    @property
    @abstractmethod
    def res_folder(self) -> Path | None:
        """Resource folder."""

    @property
    @abstractmethod
    def assets_folder(self) -> Path | None:
        """Assets folder."""

    @property
    @abstractmethod
    def jni_folder(self) -> Path | None:
        """Native libraries folder."""

    @property
    @abstractmethod
    def aidl_folder(self) -> Path | None:
        """AIDL import folder."""

    @property
    @abstractmethod
    def proguard_rules(self) -> Path | None:
        """Shrinker rules shipped with the library."""

    @property
    @abstractmethod
    def lint_jar(self) -> Path | None:
        """Custom lint checks archive."""

    @property
    def manifest_dependencies(self) -> list[ManifestDependency]:
        return list(self.dependencies)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class BundleDependency(AndroidDependency):
    """An Android library laid out with the standard bundle structure.

    Two bundles are equal when they have the same name, whatever path led to
    them in the dependency graph.
    """

    def __init__(
        self,
        bundle_folder: Path,
        name: str,
        dependencies: list[AndroidDependency] | None = None,
    ) -> None:
        self._bundle_folder = Path(bundle_folder)
        self._name = name
        self._dependencies: list[AndroidDependency] = list(dependencies or [])

    @property
    def name(self) -> str:
        return self._name

    @property
    def bundle_folder(self) -> Path:
        return self._bundle_folder

    @property
    def dependencies(self) -> list[AndroidDependency]:
        return self._dependencies

    def add_dependency(self, dependency: AndroidDependency) -> None:
        """Attach a direct dependency while the graph is being assembled."""
        self._dependencies.append(dependency)

    @property
    def manifest(self) -> Path:
        return self._bundle_folder / FN_ANDROID_MANIFEST_XML

    @property
    def symbol_file(self) -> Path:
        return self._bundle_folder / FN_SYMBOLS

    @property
    def jar_file(self) -> Path:
        return self._bundle_folder / FN_CLASSES_JAR

    @property
    def res_folder(self) -> Path:
        return self._bundle_folder / FD_RES

    @property
    def assets_folder(self) -> Path:
        return self._bundle_folder / FD_ASSETS

    @property
    def jni_folder(self) -> Path:
        return self._bundle_folder / FD_JNI

    @property
    def aidl_folder(self) -> Path:
        return self._bundle_folder / FD_AIDL

    @property
    def proguard_rules(self) -> Path:
        return self._bundle_folder / FN_PROGUARD

    @property
    def lint_jar(self) -> Path:
        return self._bundle_folder / FN_LINT_JAR

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, BundleDependency):
            return NotImplemented
        return self._name == other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __str__(self) -> str:
        return self._name


class JarDependency(BaseModel):
    """A plain jar on the classpath and/or in the package."""

    model_config = ConfigDict(frozen=True)

    location: Path = Field(description="Path to the jar")
    compiled: bool = Field(default=True, description="On the compile classpath")
    packaged: bool = Field(default=True, description="Packaged in the APK")
    coordinate: str | None = Field(default=None, description="group:artifact:version if known")
