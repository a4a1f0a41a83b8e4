"""In-memory collaborators and record builders shared by the test modules."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from gh_action_trace.errors import SourceUnavailable
from gh_action_trace.models.github import (
    JobRecord,
    RepositoryRef,
    RunSummary,
    WorkflowDescriptor,
)
from gh_action_trace.models.trace import SpanDescriptor

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt is not None else None


def run_payload(
    run_id: int,
    workflow_id: int = 1,
    created_at: datetime = T0,
    status: str = "completed",
    conclusion: Optional[str] = "success",
    name: str = "CI",
) -> dict:
    return {
        "id": run_id,
        "name": name,
        "workflow_id": workflow_id,
        "run_number": run_id % 1000,
        "event": "push",
        "head_branch": "main",
        "status": status,
        "conclusion": conclusion,
        "created_at": iso(created_at),
        "head_commit": {"id": "abc123", "message": "fix build"},
    }


def job_payload(
    job_id: int,
    run_id: int,
    started_at: Optional[datetime] = T0,
    completed_at: Optional[datetime] = None,
    status: str = "completed",
    conclusion: Optional[str] = "success",
    name: Optional[str] = None,
) -> dict:
    return {
        "id": job_id,
        "run_id": run_id,
        "name": name or f"job-{job_id}",
        "status": status,
        "conclusion": conclusion,
        "started_at": iso(started_at),
        "completed_at": iso(completed_at),
        "labels": ["ubuntu-latest", "x64"],
        "runner_name": "GitHub Actions 2",
        "steps": [{"name": "checkout", "number": 1, "conclusion": "success"}],
    }


def make_run(run_id: int, **kwargs) -> RunSummary:
    return RunSummary.from_api(run_payload(run_id, **kwargs))


def make_job(job_id: int, run_id: int, **kwargs) -> JobRecord:
    return JobRecord.from_api(job_payload(job_id, run_id, **kwargs))


def completed_jobs(run_id: int, job_ids: Iterable[int], start: datetime = T0) -> List[JobRecord]:
    jobs = []
    for offset, job_id in enumerate(job_ids, start=1):
        jobs.append(
            make_job(
                job_id,
                run_id,
                started_at=start + timedelta(seconds=offset),
                completed_at=start + timedelta(minutes=offset),
            )
        )
    return jobs


class FakeActionsSource:
    """Implements WorkflowLister, RunFetcher and JobFetcher from dicts.

    Run pages are 100-aligned and truncated to `per_page`, as the real
    source guarantees. Job pages are offset by the requested page size.
    """

    def __init__(
        self,
        workflows: Optional[List[WorkflowDescriptor]] = None,
        runs: Optional[Dict[int, List[RunSummary]]] = None,
        jobs: Optional[Dict[int, List[JobRecord]]] = None,
        *,
        fail_list: bool = False,
        failing_workflows: Iterable[int] = (),
        failing_job_runs: Iterable[int] = (),
        run_delay: float = 0.0,
    ) -> None:
        self.workflows = workflows or []
        self.runs = runs or {}
        self.jobs = jobs or {}
        self.fail_list = fail_list
        self.failing_workflows = set(failing_workflows)
        self.failing_job_runs = set(failing_job_runs)
        self.run_delay = run_delay
        self.run_requests: List[tuple] = []
        self.job_requests: List[tuple] = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def __aenter__(self) -> "FakeActionsSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    async def list_workflows(self, repository: RepositoryRef) -> List[WorkflowDescriptor]:
        if self.fail_list:
            raise SourceUnavailable(f"/repos/{repository.full_name}/actions/workflows")
        return list(self.workflows)

    async def list_runs_page(self, workflow_id: int, page: int, per_page: int) -> List[RunSummary]:
        self.run_requests.append((workflow_id, page, per_page))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.run_delay:
                await asyncio.sleep(self.run_delay)
            if workflow_id in self.failing_workflows:
                raise SourceUnavailable(f"workflows/{workflow_id}/runs")
            start = (page - 1) * 100
            return list(self.runs.get(workflow_id, [])[start : start + per_page])
        finally:
            self.active -= 1

    async def list_jobs_page(self, run_id: int, page: int, per_page: int) -> List[JobRecord]:
        self.job_requests.append((run_id, page, per_page))
        if run_id in self.failing_job_runs:
            raise SourceUnavailable(f"runs/{run_id}/jobs", RuntimeError("502 Bad Gateway"))
        start = (page - 1) * per_page
        return list(self.jobs.get(run_id, [])[start : start + per_page])


class RecordingEmitter:
    def __init__(self) -> None:
        self.spans: List[SpanDescriptor] = []

    def emit(self, span: SpanDescriptor) -> None:
        self.spans.append(span)


class RecordingProgress:
    def __init__(self) -> None:
        self.reports: List[tuple] = []
        self.workflow_counts: List[int] = []

    def begin(self, workflow_count: int) -> None:
        self.workflow_counts.append(workflow_count)

    def report(self, workflow_name: str, completed: int, total: int) -> None:
        self.reports.append((workflow_name, completed, total))
