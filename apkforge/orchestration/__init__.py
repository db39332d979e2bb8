"""Variant creation, task wiring and build execution."""

from .graph import BuildTask, TaskGraph
from .manager import VariantManager, dependency_report
from .pipeline import BuildPipeline, BuildRequest, build_flow, create_builder, create_task_graph, run_build
from .tasks import execute_build_task, run_build_task
from .variants import BuildVariant
from .wiring import VariantTaskGraphBuilder

__all__ = [
    "BuildPipeline",
    "BuildRequest",
    "BuildTask",
    "BuildVariant",
    "TaskGraph",
    "VariantManager",
    "VariantTaskGraphBuilder",
    "build_flow",
    "create_builder",
    "create_task_graph",
    "dependency_report",
    "execute_build_task",
    "run_build",
    "run_build_task",
]
