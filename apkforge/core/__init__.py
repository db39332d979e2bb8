"""Core infrastructure components for apkforge."""

from .config import Config, get_config, locate_ndk, locate_sdk
from .exceptions import (
    ApkForgeError,
    ConfigurationError,
    DependencyCycleError,
    DependencyError,
    DuplicateFileError,
    ManifestMergeError,
    PackagingError,
    TaskGraphError,
    ToolchainError,
)
from .logging import get_logger, setup_logging
from .types import ArtifactPath, BuildRun, TaskResult, TaskStatus

__all__ = [
    "Config",
    "get_config",
    "locate_ndk",
    "locate_sdk",
    "ApkForgeError",
    "ConfigurationError",
    "DependencyCycleError",
    "DependencyError",
    "DuplicateFileError",
    "ManifestMergeError",
    "PackagingError",
    "TaskGraphError",
    "ToolchainError",
    "get_logger",
    "setup_logging",
    "ArtifactPath",
    "BuildRun",
    "TaskResult",
    "TaskStatus",
]
