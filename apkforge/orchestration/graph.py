"""
Build task graph.

Build tasks are named nodes with explicit predecessors. The graph rejects
duplicate names, dangling dependencies and cycles, and orders tasks
deterministically: among the tasks whose predecessors are done, names are
taken in alphabetical order. Ordering-only edges (``must_run_after``) count
only when both ends are part of the build.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..core.exceptions import TaskGraphError
from ..core.logging import get_logger

if TYPE_CHECKING:
    from ..services.toolchain.builder import AndroidBuilder

logger = get_logger(__name__)

TaskAction = Callable[["AndroidBuilder"], Any]


@dataclass
class BuildTask:
    """One node of the build graph.

    A task without an action only aggregates its predecessors, like
    ``assemble``.
    """

    name: str
    description: str = ""
    variant: str | None = None
    depends_on: list[str] = field(default_factory=list)
    must_run_after: list[str] = field(default_factory=list)
    inputs: dict[str, Any] = field(default_factory=dict)
    outputs: list[Path] = field(default_factory=list)
    action: TaskAction | None = None

    def depend_on(self, *names: str) -> BuildTask:
        """Add predecessors, keeping the first occurrence of each."""
        for name in names:
            if name not in self.depends_on:
                self.depends_on.append(name)
        return self

    def run_after(self, *names: str) -> BuildTask:
        """Order this task after others without depending on them.

        The ordering applies only when both tasks take part in a build.
        """
        for name in names:
            if name not in self.must_run_after:
                self.must_run_after.append(name)
        return self

    @property
    def is_aggregate(self) -> bool:
        return self.action is None


class TaskGraph:
    """Named build tasks and their dependencies."""

    def __init__(self) -> None:
        self._tasks: dict[str, BuildTask] = {}

    def add(self, task: BuildTask) -> BuildTask:
        """Register a task.

        Raises:
            TaskGraphError: If a task with the same name exists.
        """
        if task.name in self._tasks:
            raise TaskGraphError(message=f"Duplicate task name '{task.name}'", task_name=task.name)
        self._tasks[task.name] = task
        return task

    def get(self, name: str) -> BuildTask:
        """Look up a task.

        Raises:
            TaskGraphError: If the task does not exist.
        """
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskGraphError(message=f"Task '{name}' not found", task_name=name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[BuildTask]:
        return iter(self._tasks.values())

    @property
    def names(self) -> list[str]:
        """Task names in creation order."""
        return list(self._tasks)

    def validate(self) -> None:
        """Check that every dependency names an existing task.

        Raises:
            TaskGraphError: On the first dangling dependency.
        """
        for task in self._tasks.values():
            for dependency in (*task.depends_on, *task.must_run_after):
                if dependency not in self._tasks:
                    raise TaskGraphError(
                        message=f"Task '{task.name}' depends on unknown task '{dependency}'",
                        task_name=task.name,
                    )

    def closure(self, targets: Iterable[str]) -> set[str]:
        """Names of the targets and everything they depend on.

        Raises:
            TaskGraphError: If a target or a dependency does not exist.
        """
        seen: set[str] = set()
        pending = list(targets)
        while pending:
            name = pending.pop()
            if name in seen:
                continue
            task = self.get(name)
            seen.add(name)
            pending.extend(task.depends_on)
        return seen

    def topological_order(self, targets: Iterable[str] | None = None) -> list[BuildTask]:
        """Tasks ordered so that every task comes after its dependencies.

        Args:
            targets: Restrict the order to the closure of these tasks. All
                tasks are ordered when None.

        Raises:
            TaskGraphError: If the graph has a dangling dependency or a cycle.
        """
        self.validate()
        names = self.closure(targets) if targets is not None else set(self._tasks)

        sorter: TopologicalSorter[str] = TopologicalSorter()
        for name in sorted(names):
            task = self._tasks[name]
            after = [other for other in task.must_run_after if other in names]
            sorter.add(name, *sorted({*task.depends_on, *after}))

        order: list[str] = []
        try:
            sorter.prepare()
        except CycleError as e:
            cycle = e.args[1] if len(e.args) > 1 else []
            raise TaskGraphError(
                message=f"Task dependency cycle: {' -> '.join(cycle)}",
                task_name=cycle[0] if cycle else "",
                cause=e,
            ) from e

        while sorter.is_active():
            ready = sorted(sorter.get_ready())
            order.extend(ready)
            sorter.done(*ready)

        logger.debug("Ordered tasks", count=len(order))
        return [self._tasks[name] for name in order]
