from __future__ import annotations

import httpx
import pytest
from tenacity import wait_none

from gh_action_trace.errors import SourceUnavailable
from gh_action_trace.models.github import JobRecord, MalformedRecord, RepositoryRef, RunSummary
from gh_action_trace.source import GitHubActionsSource
from fakes import job_payload, run_payload

pytestmark = pytest.mark.asyncio

REPO = RepositoryRef(owner="octo", name="widgets")
PREFIX = "/repos/octo/widgets/actions"


def _source(handler, token="ghp_test", max_attempts=3):
    return GitHubActionsSource(
        REPO,
        token,
        base_url="https://github.example",
        requests_per_second=1000,
        max_attempts=max_attempts,
        wait=wait_none(),
        transport=httpx.MockTransport(handler),
    )


async def test_list_workflows_and_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.url.path == f"{PREFIX}/workflows"
        return httpx.Response(
            200,
            json={
                "total_count": 2,
                "workflows": [
                    {"id": 1, "name": "CI", "path": ".github/workflows/ci.yml", "state": "active"},
                    {"id": 2, "name": "", "path": ".github/workflows/x.yml"},
                ],
            },
        )

    async with _source(handler) as source:
        workflows = await source.list_workflows(REPO)

    assert [(w.id, w.name) for w in workflows] == [(1, "CI"), (2, "2")]
    assert seen[0].headers["Authorization"] == "Bearer ghp_test"
    assert seen[0].headers["Accept"] == "application/vnd.github+json"
    assert seen[0].url.params["per_page"] == "100"


async def test_no_token_sends_no_authorization():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"workflows": []})

    async with _source(handler, token=None) as source:
        assert await source.list_workflows(REPO) == []
    assert "Authorization" not in seen[0].headers


async def test_run_pages_stay_aligned_to_hundred():
    seen = []

    def handler(request):
        page = int(request.url.params["page"])
        per_page = int(request.url.params["per_page"])
        seen.append((page, per_page))
        start = (page - 1) * per_page
        runs = [run_payload(1000 + i) for i in range(start, min(start + per_page, 250))]
        return httpx.Response(200, json={"total_count": 250, "workflow_runs": runs})

    async with _source(handler) as source:
        first = await source.list_runs_page(7, 1, 30)
        third = await source.list_runs_page(7, 3, 20)

    assert seen == [(1, 30), (3, 100)]
    assert [r.id for r in first] == [1000 + i for i in range(30)]
    # Page 3 starts at offset 200, not at 2 * 20.
    assert [r.id for r in third] == [1200 + i for i in range(20)]


async def test_jobs_page_parsed():
    def handler(request):
        assert request.url.path == f"{PREFIX}/runs/55/jobs"
        return httpx.Response(
            200, json={"total_count": 1, "jobs": [job_payload(9, 55, name="build")]}
        )

    async with _source(handler) as source:
        jobs = await source.list_jobs_page(55, 1, 100)
    assert jobs[0].id == 9
    assert jobs[0].name == "build"
    assert jobs[0].metadata["runner_name"] == "GitHub Actions 2"


async def test_transient_error_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"jobs": []})

    async with _source(handler) as source:
        assert await source.list_jobs_page(55, 1, 100) == []
    assert calls["n"] == 3


async def test_retries_exhausted_raise_source_unavailable():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(429)

    async with _source(handler, max_attempts=2) as source:
        with pytest.raises(SourceUnavailable):
            await source.list_jobs_page(55, 1, 100)
    assert calls["n"] == 2


async def test_not_found_is_not_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(404, json={"message": "Not Found"})

    async with _source(handler) as source:
        with pytest.raises(SourceUnavailable) as info:
            await source.list_runs_page(7, 1, 30)
    assert calls["n"] == 1
    assert info.value.resource.endswith("/workflows/7/runs")


async def test_transport_error_becomes_source_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _source(handler, max_attempts=2) as source:
        with pytest.raises(SourceUnavailable):
            await source.list_workflows(REPO)


@pytest.mark.parametrize("body", [{"unexpected": []}, {"workflow_runs": {"id": 1}}, ["list"]])
async def test_response_without_item_list_raises_source_unavailable(body):
    def handler(request):
        return httpx.Response(200, json=body)

    async with _source(handler) as source:
        with pytest.raises(SourceUnavailable):
            await source.list_runs_page(7, 1, 30)


async def test_invalid_json_raises_source_unavailable():
    def handler(request):
        return httpx.Response(200, content=b"<html>")

    async with _source(handler) as source:
        with pytest.raises(SourceUnavailable):
            await source.list_jobs_page(55, 1, 100)


async def test_malformed_run_kept_in_place_as_placeholder():
    bad_date = dict(run_payload(1003), created_at="not-a-date")
    body = {
        "workflow_runs": [
            run_payload(1001),
            run_payload(1002),
            bad_date,
            {"name": "missing id"},
            "not a record",
            run_payload(1006),
        ]
    }

    def handler(request):
        return httpx.Response(200, json=body)

    async with _source(handler) as source:
        runs = await source.list_runs_page(7, 1, 30)

    assert len(runs) == 6
    assert [type(r) for r in runs] == [
        RunSummary,
        RunSummary,
        MalformedRecord,
        MalformedRecord,
        MalformedRecord,
        RunSummary,
    ]
    assert runs[2].id == 1003
    assert runs[2].entity == "run"
    assert "created_at" in runs[2].reason
    assert runs[3].id is None
    assert runs[4].id is None


async def test_malformed_job_kept_in_place_as_placeholder():
    body = {"jobs": [job_payload(1, 55), {"id": 2, "run_id": 55, "started_at": "yesterday"}]}

    def handler(request):
        return httpx.Response(200, json=body)

    async with _source(handler) as source:
        jobs = await source.list_jobs_page(55, 1, 100)

    assert isinstance(jobs[0], JobRecord)
    assert isinstance(jobs[1], MalformedRecord)
    assert jobs[1].id == 2


async def test_malformed_workflow_left_out():
    def handler(request):
        return httpx.Response(200, json={"workflows": [{"name": "no id"}, {"id": 3, "name": "CI"}]})

    async with _source(handler) as source:
        workflows = await source.list_workflows(REPO)
    assert [w.id for w in workflows] == [3]
