"""Main CLI entry point for gh-action-trace.

This module provides a command-line interface using Typer. It wires the
pipeline together:
1.  Loading configuration (environment, `.env`) and resolving the token.
2.  Opening the GitHub source (gh_action_trace.source).
3.  Listing workflows and processing each one concurrently
    (gh_action_trace.batch / gh_action_trace.orchestrator).
4.  Exporting the spans via OTLP (gh_action_trace.shipper).
5.  Printing a per-workflow summary.

Exit code is 1 only when the batch cannot start (invalid repository or the
workflow list cannot be retrieved); skipped runs are reported, not fatal.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
from dotenv import find_dotenv, load_dotenv

from .batch import BatchCoordinator
from .config import Settings, get_settings
from .errors import SourceUnavailable
from .mapping.run_trace import RunTraceBuilder
from .models.github import RepositoryRef
from .models.trace import BatchReport
from .orchestrator import WorkflowOrchestrator
from .pagination import RunPaginator
from .progress import EchoProgressSink, LoggingProgressSink
from .protocols import ProgressSink
from .shipper import SpanShipper, build_span_shipper
from .source import GitHubActionsSource

app = typer.Typer(help="Create traces for GitHub Actions runs from GitHub API metadata")

logger = logging.getLogger(__name__)


def _open_source(
    repository: RepositoryRef, token: Optional[str], settings: Settings
) -> GitHubActionsSource:
    return GitHubActionsSource(
        repository,
        token,
        base_url=settings.GITHUB_API_URL,
        timeout=settings.GITHUB_TIMEOUT,
        requests_per_second=settings.GITHUB_REQUESTS_PER_SECOND,
        max_attempts=settings.GITHUB_MAX_ATTEMPTS,
    )


async def _run_batch(
    repository: RepositoryRef,
    token: Optional[str],
    settings: Settings,
    shipper: SpanShipper,
    progress: ProgressSink,
    desired_runs: int,
    max_concurrency: int,
) -> BatchReport:
    async with _open_source(repository, token, settings) as source:
        orchestrator = WorkflowOrchestrator(
            RunPaginator(source), RunTraceBuilder(source), shipper, progress
        )
        coordinator = BatchCoordinator(
            source,
            orchestrator,
            max_concurrent_workflows=max_concurrency,
            workflow_filter=settings.FILTER_WORKFLOWS,
            progress=progress,
        )
        return await coordinator.run(repository, desired_runs)


def _resolve_repository(
    full_name: Optional[str], owner: Optional[str], repo: Optional[str]
) -> RepositoryRef:
    if full_name:
        if owner or repo:
            raise ValueError("give either OWNER/REPO or --owner/--repo, not both")
        return RepositoryRef.parse(full_name)
    if not owner or not repo:
        raise ValueError("OWNER/REPO or both --owner and --repo are required")
    return RepositoryRef(owner=owner.strip(), name=repo.strip())


def _echo_summary(report: BatchReport, dry_run: bool) -> None:
    typer.echo(f"Summary for {report.repository}:")
    for wf in report.workflows:
        if wf.error is not None:
            typer.echo(f"  {wf.workflow_name}: FAILED ({wf.error})")
            continue
        typer.echo(
            f"  {wf.workflow_name}: {wf.runs_processed}/{wf.runs_total} run(s) processed, "
            f"{wf.runs_skipped} skipped, {wf.spans_emitted} span(s)"
        )
        for skipped in wf.skipped:
            run_label = skipped.run_id if skipped.run_id is not None else "?"
            typer.echo(f"    skipped run {run_label}: {skipped.reason}")
    typer.echo(
        f"Processed {report.runs_processed} run(s), skipped {report.runs_skipped}, "
        f"emitted {report.spans_emitted} span(s) across {len(report.workflows)} workflow(s). "
        f"dry_run={dry_run}"
    )


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """gh-action-trace CLI.

    Use the 'trace' subcommand to convert workflow runs into traces.
    """
    pass


@app.command(help="Create one trace per recent run of every workflow of a repository.")
def trace(
    full_name: Optional[str] = typer.Argument(
        None, metavar="OWNER/REPO", help="Repository as owner/name (alternative to --owner/--repo)"
    ),
    owner: Optional[str] = typer.Option(
        None, "--owner", "-o", help="Organization or owner name of the GitHub repository"
    ),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Name of the GitHub repository"),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="Token for the GitHub API. Falls back to GITHUB_ACCESS_TOKEN, then to no-auth "
        "(which might cause timeouts).",
    ),
    runs: Optional[int] = typer.Option(
        None, "--runs", min=1, help="Number of runs to retrieve per workflow (default: RUNS_PER_WORKFLOW, 30)"
    ),
    max_concurrency: Optional[int] = typer.Option(
        None,
        "--max-concurrency",
        min=1,
        help="Maximum number of workflows processed at once (default: MAX_CONCURRENT_WORKFLOWS)",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Build spans but do not export them (also enabled by DRY_RUN)"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", help="Log progress at debug level instead of printing it"
    ),
) -> None:
    """Convert recent GitHub Actions runs of OWNER/REPO into traces."""
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    try:
        repository = _resolve_repository(full_name, owner, repo)
    except ValueError as exc:
        typer.echo(f"Invalid repository: {exc}", err=True)
        raise typer.Exit(code=1)

    effective_token = token or settings.GITHUB_ACCESS_TOKEN
    effective_dry_run = dry_run or settings.DRY_RUN
    desired_runs = runs or settings.RUNS_PER_WORKFLOW
    concurrency = max_concurrency or settings.MAX_CONCURRENT_WORKFLOWS
    progress: ProgressSink = LoggingProgressSink() if quiet else EchoProgressSink()

    shipper = build_span_shipper(
        settings,
        settings.OTEL_SERVICE_NAME or repository.full_name,
        dry_run=effective_dry_run,
    )
    typer.echo(f"Tracing the last {desired_runs} run(s) of each workflow in {repository}...")
    try:
        report = asyncio.run(
            _run_batch(
                repository,
                effective_token,
                settings,
                shipper,
                progress,
                desired_runs,
                concurrency,
            )
        )
    except SourceUnavailable as exc:
        typer.echo(f"Could not list workflows of {repository}: {exc}", err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        typer.echo("Interrupted; flushing spans of completed runs.", err=True)
        raise typer.Exit(code=130)
    finally:
        # Ensure exporter flush & shutdown for short-lived process reliability
        shipper.shutdown()

    _echo_summary(report, effective_dry_run)


if __name__ == "__main__":  # pragma: no cover
    app()
