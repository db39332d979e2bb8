"""
Prefect tasks for the build flow.

Each build task of the graph runs through the same prefect task, which
executes its action against the AndroidBuilder and records a TaskResult.
"""

from __future__ import annotations

from prefect import task
from prefect.cache_policies import NO_CACHE
from prefect.logging import get_run_logger

from ..core.logging import build_task_context, get_logger
from ..core.types import TaskResult
from ..services.toolchain.builder import AndroidBuilder
from .graph import BuildTask

logger = get_logger(__name__)


def execute_build_task(build_task: BuildTask, builder: AndroidBuilder) -> TaskResult:
    """Run the action of a build task.

    Aggregate tasks have no action and are recorded as skipped. A command
    line returned by the action is kept in the result metadata.

    Args:
        build_task: The task to run.
        builder: The builder issuing the toolchain calls.

    Returns:
        TaskResult: The completed or skipped result.

    Raises:
        ApkForgeError: Whatever the action raised, unchanged.
    """
    result = TaskResult(task_name=build_task.name)
    if build_task.variant is not None:
        result.metadata["variant"] = build_task.variant

    if build_task.action is None:
        result.mark_skipped()
        return result

    with build_task_context(build_task.name, build_task.variant):
        try:
            logger.debug("Running build task", description=build_task.description)
            value = build_task.action(builder)
        except Exception as e:
            logger.error("Build task failed", error=str(e))
            raise

    if isinstance(value, list) and all(isinstance(part, str) for part in value):
        result.metadata["command"] = value
    result.mark_completed(list(build_task.outputs))
    return result


@task(
    name="run_build_task",
    description="Run one task of the build graph",
    retries=0,
    cache_policy=NO_CACHE,
)
def run_build_task(build_task: BuildTask, builder: AndroidBuilder) -> TaskResult:
    """Run a build task inside the flow.

    Args:
        build_task: The task to run.
        builder: The builder issuing the toolchain calls.

    Returns:
        TaskResult for the task.
    """
    run_logger = get_run_logger()
    run_logger.info(f"> {build_task.name}")

    result = execute_build_task(build_task, builder)

    if result.duration_seconds:
        run_logger.debug(f"{build_task.name} took {result.duration_seconds:.2f}s")
    return result
