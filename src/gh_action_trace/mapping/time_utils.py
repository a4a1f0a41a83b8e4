"""Timestamp parsing, job lifecycle state and run end-time reconciliation.

GitHub does not report when a run finished, only when each job did. The run
span therefore ends at the latest job completion (`effective_end`). If no job
has completed yet the run collapses to a zero-duration marker at its creation
time; an end time is never invented.

All datetimes are timezone-aware UTC. Naive datetimes are forbidden.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Union

from ..errors import InconsistentRecord

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..models.github import JobRecord, RunSummary

__all__ = [
    "Pending",
    "Started",
    "Completed",
    "JobState",
    "job_state",
    "effective_end",
    "parse_timestamp",
]


def parse_timestamp(value: Any) -> Any:
    """Normalize a GitHub timestamp to a timezone-aware UTC datetime.

    Accepts ISO-8601 strings (including the trailing ``Z`` GitHub uses) and
    datetimes. Naive datetimes are assumed to be UTC. Other values are
    returned unchanged for pydantic to validate.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return value


@dataclass(frozen=True)
class Pending:
    """Job not dispatched to a runner yet; it has no span."""


@dataclass(frozen=True)
class Started:
    start: datetime


@dataclass(frozen=True)
class Completed:
    start: datetime
    end: datetime


JobState = Union[Pending, Started, Completed]


def job_state(job: "JobRecord") -> JobState:
    """Classify a job from its optional timestamps.

    Raises:
        InconsistentRecord: If the job completed before it started.
    """
    if job.started_at is None:
        return Pending()
    if job.completed_at is None:
        return Started(job.started_at)
    if job.completed_at < job.started_at:
        raise InconsistentRecord(
            "job",
            job.id,
            f"completed_at {job.completed_at.isoformat()} precedes "
            f"started_at {job.started_at.isoformat()}",
        )
    return Completed(job.started_at, job.completed_at)


def effective_end(run: "RunSummary", jobs: Iterable["JobRecord"]) -> datetime:
    """Latest job completion time, never earlier than the run's creation."""
    end = run.created_at
    for job in jobs:
        if job.completed_at is not None and job.completed_at > end:
            end = job.completed_at
    return end
