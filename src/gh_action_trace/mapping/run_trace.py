"""Build the span tree of one workflow run.

A run becomes one trace:

    run span (root)         span_id_of(run.id), trace_id_of(run.id)
      ├── job span          span_id_of(job.id), same trace id
      ├── job span
      └── ...

Steps performed by `RunTraceBuilder.build_run_trace`:
    1. Fetch every job of the run (100 per page). A failing fetch raises
       `JobFetchFailed` and the caller skips the whole run.
    2. Build one span per dispatched job. Pending jobs (no start time) have no
       span; running jobs get a span without an end time.
    3. Build the run span last, ending at `effective_end(run, jobs)`.

Malformed jobs (unparsable payload, reserved id, non-record metadata,
completion before start) are skipped individually with a logged reason.
Everything here is a pure function of the fetched data, so building the same
run twice yields equal descriptors.

Extension point: step-level spans would recurse into each job's `steps`
list with the same id and flatten helpers.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..errors import (
    InconsistentRecord,
    InvalidIdentifier,
    JobFetchFailed,
    SourceUnavailable,
    UnsupportedRecordShape,
)
from ..models.github import JobRecord, MalformedRecord, RunSummary
from ..models.trace import SpanDescriptor, StatusCodeName
from ..pagination import MAX_PAGE_SIZE, fetch_all_jobs
from ..protocols import JobFetcher, JobItem
from .attributes import flatten
from .id_utils import span_id_of, to_hex, trace_id_of
from .time_utils import Completed, Pending, Started, effective_end, job_state

logger = logging.getLogger(__name__)

__all__ = ["RunTraceBuilder", "status_code_for"]

_ERROR_CONCLUSIONS = frozenset({"failure", "timed_out", "startup_failure"})


def status_code_for(conclusion: Optional[str]) -> StatusCodeName:
    """Map a GitHub conclusion onto an OpenTelemetry status code name."""
    if conclusion in _ERROR_CONCLUSIONS:
        return "ERROR"
    if conclusion == "success":
        return "OK"
    return "UNSET"


class RunTraceBuilder:
    """Turns a `RunSummary` plus its jobs into span descriptors."""

    def __init__(self, jobs: JobFetcher, page_size: int = MAX_PAGE_SIZE) -> None:
        self._jobs = jobs
        self._page_size = page_size

    async def build_run_trace(self, run: RunSummary) -> List[SpanDescriptor]:
        """Fetch the jobs of `run` and return its spans, run span last.

        Raises:
            JobFetchFailed: If the job listing failed; the run has no spans.
            InvalidIdentifier: If the run id itself cannot be encoded.
        """
        try:
            jobs = await fetch_all_jobs(self._jobs, run.id, self._page_size)
        except SourceUnavailable as exc:
            raise JobFetchFailed(run.id, exc) from exc
        return self.build_spans(run, jobs)

    def build_spans(self, run: RunSummary, jobs: Iterable[JobItem]) -> List[SpanDescriptor]:
        """Build the spans of a run from already fetched jobs."""
        trace_id = trace_id_of(run.id)
        run_span_id = span_id_of(run.id)
        records: List[JobRecord] = []
        spans: List[SpanDescriptor] = []
        for job in jobs:
            if isinstance(job, MalformedRecord):
                logger.warning("Skipping malformed job %s of run %s: %s", job.id, run.id, job.reason)
                continue
            records.append(job)
            try:
                span = self._job_span(job, trace_id, run_span_id)
            except (InvalidIdentifier, UnsupportedRecordShape, InconsistentRecord) as exc:
                logger.warning("Skipping job %s of run %s: %s", job.id, run.id, exc)
                continue
            if span is not None:
                spans.append(span)

        spans.append(
            SpanDescriptor(
                trace_id=trace_id,
                span_id=run_span_id,
                name=run.name,
                start=run.created_at,
                end=effective_end(run, records),
                attributes=flatten(run.metadata or run.model_dump(exclude={"metadata"})),
                status_message=run.status,
                status_code=status_code_for(run.conclusion),
            )
        )
        logger.debug(
            "Run %s -> trace %s spans=%d jobs=%d",
            run.id,
            to_hex(trace_id),
            len(spans),
            len(records),
        )
        return spans

    def _job_span(
        self, job: JobRecord, trace_id: bytes, run_span_id: bytes
    ) -> Optional[SpanDescriptor]:
        state = job_state(job)
        if isinstance(state, Pending):
            logger.debug("Job %s (%s) not started; no span", job.id, job.name)
            return None
        if isinstance(state, Completed):
            start, end = state.start, state.end
        elif isinstance(state, Started):
            start, end = state.start, None
        else:  # pragma: no cover - exhaustive over JobState
            raise AssertionError(f"unhandled job state {state!r}")
        return SpanDescriptor(
            trace_id=trace_id,
            span_id=span_id_of(job.id),
            parent_span_id=run_span_id,
            name=job.name,
            start=start,
            end=end,
            attributes=flatten(job.metadata or job.model_dump(exclude={"metadata"})),
            status_message=job.status,
            status_code=status_code_for(job.conclusion),
        )
