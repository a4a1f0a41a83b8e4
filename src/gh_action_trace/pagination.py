"""Bounded page-by-page retrieval of workflow runs and run jobs.

`RunPaginator.fetch_runs` bounds the number of RUNS returned, not the number
of requests. It asks for `min(100, remaining)` items per page, in increasing
page order, and stops as soon as:

    - the requested count is reached,
    - a page comes back empty, or
    - a page comes back shorter than requested (the source has nothing more).

The last rule saves the trailing empty request: 120 available runs with a
desired count of 250 costs exactly two requests (100 + 20).

Pages are fetched strictly sequentially. A failing page request propagates as
`SourceUnavailable`; a partial run history is not returned as if complete.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List

from .protocols import JobFetcher, JobItem, RunFetcher, RunItem

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

__all__ = ["MAX_PAGE_SIZE", "RunPaginator", "fetch_all_jobs"]


class RunPaginator:
    """Fetch up to N runs of a workflow from a `RunFetcher`.

    Pages are always `MAX_PAGE_SIZE` wide: `RunFetcher` offsets page N by
    ``(N-1) * 100``, so only the requested item count of a page may shrink.
    """

    def __init__(self, fetcher: RunFetcher) -> None:
        self._fetcher = fetcher

    async def fetch_runs(self, workflow_id: int, desired_count: int) -> List[RunItem]:
        """Return at most `desired_count` runs, most recent first.

        Args:
            workflow_id: Workflow whose run history is paged.
            desired_count: Upper bound on the number of runs returned.

        Returns:
            The runs in source order, malformed placeholders included. Fewer
            than requested when the source is exhausted early; empty for an
            empty history.

        Raises:
            SourceUnavailable: If any page request fails.
        """
        runs: List[RunItem] = []
        page = 1
        while True:
            remaining = desired_count - len(runs)
            if remaining <= 0:
                break
            per_page = min(MAX_PAGE_SIZE, remaining)
            items = await self._fetcher.list_runs_page(workflow_id, page, per_page)
            logger.debug(
                "workflow=%s page=%d per_page=%d received=%d",
                workflow_id,
                page,
                per_page,
                len(items),
            )
            if not items:
                break
            runs.extend(items[:remaining])
            if len(items) < per_page:
                break
            page += 1
            await asyncio.sleep(0)
        return runs


async def fetch_all_jobs(
    fetcher: JobFetcher, run_id: int, page_size: int = MAX_PAGE_SIZE
) -> List[JobItem]:
    """Return every job of a run, paging `page_size` jobs at a time."""
    jobs: List[JobItem] = []
    page = 1
    while True:
        items = await fetcher.list_jobs_page(run_id, page, page_size)
        jobs.extend(items)
        if len(items) < page_size:
            break
        page += 1
    return jobs
