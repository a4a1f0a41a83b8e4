"""GitHub REST source for workflows, workflow runs and jobs.

This module is the "E" (Extract) part of the pipeline. `GitHubActionsSource`
implements the `WorkflowLister`, `RunFetcher` and `JobFetcher` protocols on
top of one shared `httpx.AsyncClient`:

    GET /repos/{owner}/{repo}/actions/workflows
    GET /repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs
    GET /repos/{owner}/{repo}/actions/runs/{run_id}/jobs

Requests are rate limited client-side (`aiolimiter`) and retried with
exponential backoff (`tenacity`) on transport errors and on 403/429/5xx
responses. Once retries are exhausted, or the response carries no item list,
the call fails with `SourceUnavailable`; deciding whether that skips a run, a
workflow or the whole batch is left to the caller. A single item that fails
validation only becomes a `MalformedRecord` in its page.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import __version__
from .errors import SourceUnavailable
from .models.github import (
    JobRecord,
    MalformedRecord,
    RepositoryRef,
    RunSummary,
    WorkflowDescriptor,
)
from .pagination import MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
RETRYABLE_STATUS = frozenset({403, 429, 500, 502, 503, 504})

T = TypeVar("T")

__all__ = ["GitHubActionsSource", "RetryableGitHubError", "DEFAULT_BASE_URL"]


class RetryableGitHubError(RuntimeError):
    """Transient GitHub response (rate limit or server error)."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"GitHub retryable {status_code}")


class GitHubActionsSource:
    """GitHub Actions metadata for one repository.

    Use as an async context manager so the underlying HTTP client is closed.
    """

    def __init__(
        self,
        repository: RepositoryRef,
        token: Optional[str] = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        requests_per_second: float = 8.0,
        max_attempts: int = 5,
        wait: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._repository = repository
        self._limiter = AsyncLimiter(requests_per_second, 1)
        self._max_attempts = max_attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=0.5, min=0.5, max=8)
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"gh-action-trace/{__version__}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning(
                "No token provided, falling back to no-auth (rate limits may cause timeouts)"
            )
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubActionsSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _repo_path(self, repository: Optional[RepositoryRef] = None) -> str:
        repo = repository or self._repository
        return f"/repos/{repo.owner}/{repo.name}/actions"

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.TransportError, RetryableGitHubError)),
                wait=self._wait,
                stop=stop_after_attempt(self._max_attempts),
                reraise=True,
            ):
                with attempt:
                    async with self._limiter:
                        response = await self._client.get(path, params=params)
                    if response.status_code in RETRYABLE_STATUS:
                        logger.debug(
                            "GET %s -> %d (attempt %d)",
                            path,
                            response.status_code,
                            attempt.retry_state.attempt_number,
                        )
                        raise RetryableGitHubError(response.status_code)
                    response.raise_for_status()
                    return response.json()
        except (httpx.HTTPError, RetryableGitHubError, ValueError) as exc:
            raise SourceUnavailable(path, exc) from exc
        raise SourceUnavailable(path)  # pragma: no cover - AsyncRetrying always yields

    @staticmethod
    def _parse_items(
        payload: Any,
        key: str,
        parse: Callable[[Dict[str, Any]], T],
        resource: str,
        entity: str,
    ) -> List[Union[T, MalformedRecord]]:
        """Parse every item of the `key` list, one at a time.

        An item that fails validation is logged and replaced in place by a
        `MalformedRecord`, so the rest of the page is kept and the page length
        still reflects what the API returned.

        Raises:
            SourceUnavailable: If the response has no `key` list at all.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get(key), list):
            raise SourceUnavailable(resource, ValueError(f"response has no {key!r} list"))
        items: List[Union[T, MalformedRecord]] = []
        for raw in payload[key]:
            try:
                items.append(parse(raw))
            except (KeyError, TypeError, AttributeError, ValueError) as exc:
                record = MalformedRecord.from_payload(entity, raw, exc)
                logger.warning("Malformed %s %s in %s: %s", entity, record.id, resource, record.reason)
                items.append(record)
        return items

    async def list_workflows(self, repository: RepositoryRef) -> List[WorkflowDescriptor]:
        """Return every workflow of `repository`, following all pages.

        Malformed workflow entries are logged and left out.
        """
        path = f"{self._repo_path(repository)}/workflows"
        workflows: List[WorkflowDescriptor] = []
        page = 1
        while True:
            payload = await self._get(path, {"per_page": MAX_PAGE_SIZE, "page": page})
            items = self._parse_items(
                payload, "workflows", WorkflowDescriptor.from_api, path, "workflow"
            )
            workflows.extend(w for w in items if isinstance(w, WorkflowDescriptor))
            if len(items) < MAX_PAGE_SIZE:
                break
            page += 1
        return workflows

    async def list_runs_page(
        self, workflow_id: int, page: int, per_page: int
    ) -> List[Union[RunSummary, MalformedRecord]]:
        """Return one 100-aligned page of runs, truncated to `per_page`.

        GitHub pages are offset by ``(page-1) * per_page``. A smaller final
        page would therefore restart inside already fetched runs, so beyond
        the first page the full page size is requested and sliced instead.
        """
        path = f"{self._repo_path()}/workflows/{workflow_id}/runs"
        request_size = per_page if page == 1 else MAX_PAGE_SIZE
        payload = await self._get(path, {"per_page": request_size, "page": page})
        runs = self._parse_items(payload, "workflow_runs", RunSummary.from_api, path, "run")
        return runs[:per_page]

    async def list_jobs_page(
        self, run_id: int, page: int, per_page: int
    ) -> List[Union[JobRecord, MalformedRecord]]:
        path = f"{self._repo_path()}/runs/{run_id}/jobs"
        payload = await self._get(path, {"per_page": per_page, "page": page})
        return self._parse_items(payload, "jobs", JobRecord.from_api, path, "job")
