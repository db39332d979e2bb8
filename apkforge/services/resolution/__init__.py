"""Library dependency resolution."""

from .service import DependencyChecker, ModuleId, resolve_library_dependencies

__all__ = ["DependencyChecker", "ModuleId", "resolve_library_dependencies"]
