"""
Structured logging configuration for apkforge.

structlog events are forwarded to the standard library and rendered by a rich
handler on stderr: colored key-value lines on a terminal, one JSON object per
line in CI builds. Events logged while a build task runs carry the task, the
variant and the external tool being invoked.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import Config

# Chatty libraries pulled in by the prefect flow
QUIET_LOGGERS = ("httpx", "httpcore", "prefect.events", "prefect.server")


def _drop_empty_build_fields(
    logger: object, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Remove build context fields that are not known, e.g. an unset variant."""
    for key in ("task", "variant", "tool"):
        if key in event_dict and event_dict[key] is None:
            del event_dict[key]
    return event_dict


def setup_logging(config: Config | None = None) -> None:
    """Configure structured logging for the application.

    Can be called again, the previous handlers are replaced.

    Args:
        config: Optional configuration. If None, uses INFO level.
    """
    log_level = config.log_level if config else "INFO"
    level = getattr(logging, log_level, logging.INFO)

    # The console looks up sys.stderr on every write
    console = Console(stderr=True)
    handler = RichHandler(
        console=console,
        show_path=False,
        show_time=False,
        rich_tracebacks=True,
        tracebacks_show_locals=log_level == "DEBUG",
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _drop_empty_build_fields,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    render_processors: list[structlog.types.Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ]
    if sys.stderr.isatty():
        render_processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        # JSON format for CI builds
        render_processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=render_processors,
        )
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured bound logger
    """
    return structlog.get_logger(name)


@contextmanager
def build_task_context(task: str, variant: str | None = None) -> Iterator[None]:
    """Tag the events logged while a build task runs.

    The previous context is restored on exit, so nested use keeps the outer
    task's fields.

    Args:
        task: Name of the build task, e.g. ``processDebugRes``.
        variant: Name of the variant the task belongs to.
    """
    with structlog.contextvars.bound_contextvars(task=task, variant=variant):
        yield


@contextmanager
def tool_context(tool: str) -> Iterator[None]:
    """Tag the events logged while an external tool runs.

    Args:
        tool: Executable name, e.g. ``aapt``.
    """
    with structlog.contextvars.bound_contextvars(tool=tool):
        yield
