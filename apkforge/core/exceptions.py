"""
Custom exception hierarchy for apkforge.

All exceptions inherit from ApkForgeError to enable consistent error handling
across variant resolution, task wiring and toolchain invocation. Each exception
type carries the context a user needs to fix the build.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ApkForgeError(Exception):
    """Base exception for all apkforge errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ConfigurationError(ApkForgeError):
    """Raised when the build configuration is invalid.

    Configuration errors are never retried: a missing manifest, a name
    collision or an incomplete signing setup needs a change in the project.
    """

    field_name: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Invalid configuration for '{self.field_name}': {base}"
        return f"Invalid configuration: {base}"


@dataclass
class DependencyError(ApkForgeError):
    """Raised when a dependency is incompatible with the variant."""

    dependency: str = ""


@dataclass
class DependencyCycleError(DependencyError):
    """Raised when the library dependency graph contains a cycle."""

    cycle: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"Library dependency cycle: {' -> '.join(self.cycle)}"


@dataclass
class ManifestMergeError(ApkForgeError):
    """Raised when the external manifest merger reports a failure."""

    output_path: str = ""

    def __str__(self) -> str:
        return f"Manifest merge failed for '{self.output_path}': {super().__str__()}"


@dataclass
class ToolchainError(ApkForgeError):
    """Raised when an external toolchain process fails."""

    tool: str = ""
    command: list[str] = field(default_factory=list)
    returncode: int | None = None

    def __str__(self) -> str:
        base = super().__str__()
        code = f" (exit code {self.returncode})" if self.returncode is not None else ""
        return f"[{self.tool}]{code}: {base}"


@dataclass
class PackagingError(ApkForgeError):
    """Raised when the APK cannot be assembled."""


@dataclass
class DuplicateFileError(PackagingError):
    """Raised when two packaged inputs provide the same archive path."""

    archive_path: str = ""
    file1: Path | None = None
    file2: Path | None = None

    def __str__(self) -> str:
        return (
            f"Duplicate files copied in APK {self.archive_path}\n"
            f"\tFile 1: {self.file1}\n"
            f"\tFile 2: {self.file2}"
        )


@dataclass
class TaskGraphError(ApkForgeError):
    """Raised when the build task graph is malformed."""

    task_name: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        if self.task_name:
            return f"Task graph error at '{self.task_name}': {base}"
        return f"Task graph error: {base}"
