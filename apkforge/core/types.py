"""
Core type definitions for apkforge.

Provides type aliases and result types used by the build flow to record
what each build task did.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


# Type aliases
ArtifactPath = Path


class TaskStatus(str, Enum):
    """Status of a build task execution."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskResult(BaseModel):
    """Result of one build task execution."""

    task_name: str = Field(description="Name of the build task")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Execution status")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    outputs: list[ArtifactPath] = Field(default_factory=list, description="Produced outputs")
    error_message: str | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def mark_completed(self, outputs: list[ArtifactPath]) -> None:
        """Mark task as successfully completed."""
        self.status = TaskStatus.COMPLETED
        self.completed_at = datetime.utcnow()
        self.outputs = outputs
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_skipped(self) -> None:
        """Mark task as having nothing to do."""
        self.status = TaskStatus.SKIPPED
        self.completed_at = datetime.utcnow()

    def mark_failed(self, error: str) -> None:
        """Mark task as failed."""
        self.status = TaskStatus.FAILED
        self.completed_at = datetime.utcnow()
        self.error_message = error
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()


class BuildRun(BaseModel):
    """Represents a complete build execution for one target."""

    run_id: str = Field(description="Unique run identifier")
    target: str = Field(description="Requested target task")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = Field(default=None)
    tasks: list[TaskResult] = Field(default_factory=list)
    final_status: TaskStatus = Field(default=TaskStatus.PENDING)

    def get_task(self, name: str) -> TaskResult | None:
        """Get a task result by name."""
        for task in self.tasks:
            if task.task_name == name:
                return task
        return None
