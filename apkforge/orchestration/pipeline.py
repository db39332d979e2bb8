"""
Build flow.

Loads a project, creates its variants and task graph, then runs the tasks of
the requested targets in dependency order using Prefect.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path

from prefect import flow, get_run_logger
from pydantic import BaseModel, Field

from .. import __version__
from ..core.config import Config, get_config, locate_sdk
from ..core.logging import setup_logging
from ..core.types import BuildRun, TaskResult, TaskStatus
from ..models.project import AndroidProject
from ..services.toolchain.builder import AndroidBuilder
from ..services.toolchain.runner import CommandLineRunner
from ..services.toolchain.sdk import AndroidTarget
from .graph import TaskGraph
from .manager import VariantManager
from .tasks import run_build_task
from .wiring import ASSEMBLE, VariantTaskGraphBuilder


class BuildRequest(BaseModel):
    """What to build."""

    project_file: Path = Field(description="JSON description of the project")
    targets: list[str] = Field(default_factory=lambda: [ASSEMBLE], description="Tasks to run")


def create_task_graph(project: AndroidProject, config: Config | None = None) -> TaskGraph:
    """Create the variants of a project and wire their tasks."""
    config = config or get_config()
    manager = VariantManager(project, config)
    return VariantTaskGraphBuilder(project, manager.variants, config).build()


def create_builder(
    project: AndroidProject,
    config: Config | None = None,
    runner: CommandLineRunner | None = None,
) -> AndroidBuilder:
    """Create the builder for the compile target of a project.

    The SDK of ``local.properties`` wins, then ``ANDROID_HOME``, then the
    configured one.

    Raises:
        ConfigurationError: If no SDK is found or the target is not installed.
    """
    config = config or get_config()
    sdk_root = locate_sdk(project.project_dir, config.tools.android_sdk_root)

    target = AndroidTarget.resolve(sdk_root, project.compile_sdk_version, config.tools.build_tools_dir)
    return AndroidBuilder(target, config=config, runner=runner)


@flow(
    name="apkforge-build",
    description="Run the build tasks of the requested targets in dependency order",
    version=__version__,
    retries=0,
)
def build_flow(request: BuildRequest) -> BuildRun:
    """Execute a build.

    The first failing task stops the flow; its error is re-raised after the
    failure is recorded.

    Args:
        request: Project and targets.

    Returns:
        BuildRun with one result per executed task.
    """
    run_id = str(uuid.uuid4())[:8]
    logger = get_run_logger()
    config = get_config()

    project = AndroidProject.from_json_file(request.project_file)
    graph = create_task_graph(project, config)
    order = graph.topological_order(request.targets)
    builder = create_builder(project, config)

    run = BuildRun(run_id=run_id, target=",".join(request.targets))
    logger.info(f"Building {project.name}: {len(order)} tasks for {run.target}. Run ID: {run_id}")

    for build_task in order:
        try:
            result = run_build_task(build_task, builder)
        except Exception as e:
            failed = TaskResult(task_name=build_task.name)
            failed.mark_failed(str(e))
            run.tasks.append(failed)
            run.final_status = TaskStatus.FAILED
            run.completed_at = datetime.utcnow()
            logger.error(f"Build failed at {build_task.name}: {e}")
            raise
        run.tasks.append(result)

    run.final_status = TaskStatus.COMPLETED
    run.completed_at = datetime.utcnow()
    duration = (run.completed_at - run.started_at).total_seconds()
    logger.info(f"Build completed successfully in {duration:.1f}s")
    return run


class BuildPipeline:
    """High-level build interface for programmatic use."""

    def __init__(self) -> None:
        """Initialize the pipeline."""
        self.config = get_config()
        setup_logging(self.config)

    def tasks(self, project_file: Path, targets: list[str] | None = None) -> list[str]:
        """Names of the tasks a build of ``targets`` would run, in order."""
        project = AndroidProject.from_json_file(project_file)
        graph = create_task_graph(project, self.config)
        return [t.name for t in graph.topological_order(targets)]

    def run(self, project_file: Path, targets: list[str] | None = None) -> BuildRun:
        """Run the build.

        Args:
            project_file: JSON description of the project.
            targets: Tasks to run, ``assemble`` by default.

        Returns:
            BuildRun of the executed tasks.
        """
        request = BuildRequest(project_file=project_file, targets=targets or [ASSEMBLE])
        return build_flow(request)


def run_build(project_file: str | Path, *targets: str) -> BuildRun:
    """Convenience function to run a build.

    Args:
        project_file: JSON description of the project.
        *targets: Tasks to run, ``assemble`` when none is given.

    Returns:
        BuildRun of the executed tasks.
    """
    pipeline = BuildPipeline()
    return pipeline.run(Path(project_file), list(targets) or None)
