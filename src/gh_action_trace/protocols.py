"""Collaborator interfaces consumed by the conversion engine.

The engine only talks to the outside world through these protocols. The
GitHub REST implementation lives in `source`, the OpenTelemetry one in
`shipper` and the console one in `progress`; tests substitute in-memory fakes.

Run and job pages may contain `MalformedRecord` placeholders for items that
failed validation. They count toward the page length and are skipped (and
reported) individually by the engine.
"""
from __future__ import annotations

from typing import List, Protocol, Union, runtime_checkable

from .models.github import (
    JobRecord,
    MalformedRecord,
    RepositoryRef,
    RunSummary,
    WorkflowDescriptor,
)
from .models.trace import SpanDescriptor

__all__ = [
    "WorkflowLister",
    "RunFetcher",
    "JobFetcher",
    "SpanEmitter",
    "ProgressSink",
    "RunItem",
    "JobItem",
]

RunItem = Union[RunSummary, MalformedRecord]
JobItem = Union[JobRecord, MalformedRecord]


@runtime_checkable
class WorkflowLister(Protocol):
    async def list_workflows(self, repository: RepositoryRef) -> List[WorkflowDescriptor]:
        """Return every workflow of the repository.

        Raises:
            SourceUnavailable: When the list cannot be retrieved.
        """
        ...


@runtime_checkable
class RunFetcher(Protocol):
    async def list_runs_page(self, workflow_id: int, page: int, per_page: int) -> List[RunItem]:
        """Return the runs at positions ``[(page-1)*100, (page-1)*100 + per_page)``.

        Pages are 1-based and always 100-aligned; `per_page` (<= 100) only
        truncates the page. Runs are ordered most recent first. An empty list
        means the history is exhausted.
        """
        ...


@runtime_checkable
class JobFetcher(Protocol):
    async def list_jobs_page(self, run_id: int, page: int, per_page: int) -> List[JobItem]:
        ...


@runtime_checkable
class SpanEmitter(Protocol):
    def emit(self, span: SpanDescriptor) -> None:
        """Hand one span to the tracing backend. Duplicates are tolerated."""
        ...


@runtime_checkable
class ProgressSink(Protocol):
    def begin(self, workflow_count: int) -> None:
        """Called once with the number of workflows about to be processed."""
        ...

    def report(self, workflow_name: str, completed: int, total: int) -> None:
        ...
