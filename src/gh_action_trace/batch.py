"""Repository-wide coordination: one concurrent task per workflow.

The workflow list is retrieved first; failing to retrieve it is fatal for the
whole invocation since there is nothing to process. Every workflow then gets
its own task. Tasks are started eagerly but bounded by a semaphore so a
repository with many workflows does not multiply request pressure on the
rate-limited API. No workflow's failure or slowness blocks another's
completion.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from .models.github import RepositoryRef, WorkflowDescriptor
from .models.trace import BatchReport, WorkflowReport
from .orchestrator import WorkflowOrchestrator
from .protocols import ProgressSink, WorkflowLister

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_WORKFLOWS = 8

__all__ = ["BatchCoordinator", "DEFAULT_MAX_CONCURRENT_WORKFLOWS"]


class BatchCoordinator:
    """Run a `WorkflowOrchestrator` for every workflow of a repository."""

    def __init__(
        self,
        lister: WorkflowLister,
        orchestrator: WorkflowOrchestrator,
        *,
        max_concurrent_workflows: int = DEFAULT_MAX_CONCURRENT_WORKFLOWS,
        workflow_filter: Optional[Iterable[str]] = None,
        progress: Optional[ProgressSink] = None,
    ) -> None:
        if max_concurrent_workflows < 1:
            raise ValueError("max_concurrent_workflows must be at least 1")
        self._lister = lister
        self._orchestrator = orchestrator
        self._max_concurrent = max_concurrent_workflows
        self._filter = {f.strip() for f in (workflow_filter or []) if f.strip()}
        self._progress = progress

    def _selected(self, workflows: List[WorkflowDescriptor]) -> List[WorkflowDescriptor]:
        if not self._filter:
            return workflows
        selected = [w for w in workflows if str(w.id) in self._filter or w.name in self._filter]
        logger.info(
            "Workflow filter kept %d of %d workflow(s)", len(selected), len(workflows)
        )
        return selected

    async def run(self, repository: RepositoryRef, desired_run_count: int) -> BatchReport:
        """Convert the recent runs of every workflow of `repository`.

        Raises:
            SourceUnavailable: If the workflow list cannot be retrieved.
        """
        workflows = self._selected(await self._lister.list_workflows(repository))
        logger.info("Found %d workflow(s) in %s", len(workflows), repository.full_name)
        if self._progress is not None:
            self._progress.begin(len(workflows))
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _one(workflow: WorkflowDescriptor) -> WorkflowReport:
            async with semaphore:
                try:
                    return await self._orchestrator.process_workflow(workflow, desired_run_count)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.exception("Workflow %s failed unexpectedly", workflow.name)
                    return WorkflowReport(
                        workflow_id=workflow.id,
                        workflow_name=workflow.name,
                        error=f"{type(exc).__name__}: {exc}",
                    )

        reports = await asyncio.gather(*(_one(w) for w in workflows))
        return BatchReport(repository=repository.full_name, workflows=list(reports))
