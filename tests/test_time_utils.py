from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gh_action_trace.errors import InconsistentRecord
from gh_action_trace.mapping.time_utils import (
    Completed,
    Pending,
    Started,
    effective_end,
    job_state,
    parse_timestamp,
)
from fakes import T0, make_job, make_run


def test_effective_end_without_jobs_is_creation_time():
    run = make_run(10)
    assert effective_end(run, []) == run.created_at


def test_effective_end_is_latest_completion():
    run = make_run(10)
    t1 = T0 + timedelta(minutes=3)
    t2 = T0 + timedelta(minutes=9)
    jobs = [
        make_job(1, 10, started_at=T0, completed_at=t1),
        make_job(2, 10, started_at=T0, completed_at=t2),
        make_job(3, 10, started_at=T0, completed_at=None, status="in_progress"),
    ]
    assert effective_end(run, jobs) == t2


def test_effective_end_with_only_running_jobs_collapses():
    run = make_run(10)
    jobs = [make_job(1, 10, started_at=T0 + timedelta(seconds=5), status="in_progress")]
    assert effective_end(run, jobs) == run.created_at


def test_effective_end_never_precedes_creation():
    run = make_run(10, created_at=T0)
    early = T0 - timedelta(minutes=1)
    jobs = [make_job(1, 10, started_at=early - timedelta(minutes=1), completed_at=early)]
    assert effective_end(run, jobs) == T0


def test_job_states():
    assert job_state(make_job(1, 10, started_at=None)) == Pending()
    assert job_state(make_job(2, 10, started_at=T0, status="in_progress")) == Started(T0)
    end = T0 + timedelta(minutes=2)
    assert job_state(make_job(3, 10, started_at=T0, completed_at=end)) == Completed(T0, end)


def test_completed_without_start_is_pending():
    job = make_job(1, 10, started_at=None, completed_at=T0)
    assert isinstance(job_state(job), Pending)


def test_completion_before_start_is_inconsistent():
    job = make_job(1, 10, started_at=T0, completed_at=T0 - timedelta(seconds=1))
    with pytest.raises(InconsistentRecord):
        job_state(job)


def test_parse_timestamp_normalizes_to_utc():
    assert parse_timestamp("2024-03-01T12:00:00Z") == T0
    assert parse_timestamp("2024-03-01T14:00:00+02:00") == T0
    assert parse_timestamp(datetime(2024, 3, 1, 12, 0)).tzinfo == timezone.utc
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_models_hold_aware_datetimes():
    run = make_run(10)
    job = make_job(1, 10, started_at=T0, completed_at=T0 + timedelta(seconds=30))
    assert run.created_at.tzinfo is not None
    assert job.started_at.tzinfo is not None
    assert job.completed_at.tzinfo is not None
