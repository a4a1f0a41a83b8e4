"""Per-workflow processing: page the runs, build and emit one trace per run.

Runs of one workflow are processed sequentially, most recent first. Failure
isolation:

    - the run history cannot be paged  -> `WorkflowReport.error`, stop
    - one run's jobs cannot be listed  -> `SkippedRun`, continue
    - one run is malformed             -> `SkippedRun`, continue

Spans of a run are emitted only after all of its jobs were fetched, job spans
first and the run span last, so a viewer never sees job spans without their
closing root. Each run is processed in a shielded task: when the workflow
task is cancelled the current run still completes before the cancellation
propagates.
"""
from __future__ import annotations

import asyncio
import logging

from .errors import (
    InconsistentRecord,
    InvalidIdentifier,
    JobFetchFailed,
    SourceUnavailable,
    UnsupportedRecordShape,
)
from .mapping.run_trace import RunTraceBuilder
from .models.github import MalformedRecord, WorkflowDescriptor
from .models.trace import SkippedRun, WorkflowReport
from .pagination import RunPaginator
from .protocols import ProgressSink, RunItem, SpanEmitter

logger = logging.getLogger(__name__)

__all__ = ["WorkflowOrchestrator"]


class WorkflowOrchestrator:
    """Process the recent runs of one workflow into traces."""

    def __init__(
        self,
        paginator: RunPaginator,
        builder: RunTraceBuilder,
        emitter: SpanEmitter,
        progress: ProgressSink,
    ) -> None:
        self._paginator = paginator
        self._builder = builder
        self._emitter = emitter
        self._progress = progress

    async def process_workflow(
        self, workflow: WorkflowDescriptor, desired_run_count: int
    ) -> WorkflowReport:
        report = WorkflowReport(workflow_id=workflow.id, workflow_name=workflow.name)
        try:
            runs = await self._paginator.fetch_runs(workflow.id, desired_run_count)
        except SourceUnavailable as exc:
            logger.error("Workflow %s (%s): run history unavailable: %s", workflow.name, workflow.id, exc)
            report.error = str(exc)
            return report

        report.runs_total = len(runs)
        logger.info("Processing workflow %s: %d run(s)", workflow.name, len(runs))
        self._progress.report(workflow.name, 0, len(runs))
        for index, run in enumerate(runs, start=1):
            task = asyncio.ensure_future(self._process_run(run, report))
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.done():
                    logger.info(
                        "Cancellation requested; finishing run %s of workflow %s first",
                        run.id,
                        workflow.name,
                    )
                    await task
                raise
            self._progress.report(workflow.name, index, len(runs))
        logger.info(
            "Completed workflow %s: processed=%d skipped=%d spans=%d",
            workflow.name,
            report.runs_processed,
            report.runs_skipped,
            report.spans_emitted,
        )
        return report

    async def _process_run(self, run: RunItem, report: WorkflowReport) -> None:
        if isinstance(run, MalformedRecord):
            logger.warning("Skipping malformed run %s: %s", run.id, run.reason)
            report.skipped.append(
                SkippedRun(run_id=run.id, reason=f"MalformedRecord: {run.reason}")
            )
            return
        try:
            spans = await self._builder.build_run_trace(run)
        except JobFetchFailed as exc:
            logger.warning("Err retrieving jobs for %s workflow run: %s", run.id, exc.cause)
            report.skipped.append(SkippedRun(run_id=run.id, reason=f"JobFetchFailed: {exc}"))
            return
        except (InvalidIdentifier, UnsupportedRecordShape, InconsistentRecord) as exc:
            logger.warning("Skipping run %s: %s", run.id, exc)
            report.skipped.append(
                SkippedRun(run_id=run.id, reason=f"{type(exc).__name__}: {exc}")
            )
            return
        for span in spans:
            self._emitter.emit(span)
        report.runs_processed += 1
        report.spans_emitted += len(spans)
