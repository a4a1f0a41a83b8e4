"""Progress sinks: per-workflow run counters for the console or the log.

Progress reporting is a pure side effect. Nothing here may raise into the
orchestrator or influence which runs are processed.
"""
from __future__ import annotations

import logging
from typing import Dict

import typer

logger = logging.getLogger(__name__)

__all__ = ["EchoProgressSink", "LoggingProgressSink"]


class EchoProgressSink:
    """Print one line per update, prefixed with the workflow's position.

    Workflows are numbered in the order they first report, e.g.
    ``[2/5] CI: 12/30 runs`` once `begin` has announced the workflow count,
    ``[2] CI: 12/30 runs`` before that.
    """

    def __init__(self, workflow_count: int = 0) -> None:
        self.workflow_count = workflow_count
        self._positions: Dict[str, int] = {}

    def begin(self, workflow_count: int) -> None:
        self.workflow_count = workflow_count
        typer.echo(f"Processing {workflow_count} workflow(s)")

    def report(self, workflow_name: str, completed: int, total: int) -> None:
        position = self._positions.setdefault(workflow_name, len(self._positions) + 1)
        prefix = f"[{position}/{self.workflow_count}]" if self.workflow_count else f"[{position}]"
        suffix = " done" if completed >= total else ""
        typer.echo(f"{prefix} {workflow_name}: {completed}/{total} runs{suffix}")


class LoggingProgressSink:
    def begin(self, workflow_count: int) -> None:
        logger.info("Processing %d workflow(s)", workflow_count)

    def report(self, workflow_name: str, completed: int, total: int) -> None:
        logger.debug("workflow=%s progress=%d/%d", workflow_name, completed, total)
