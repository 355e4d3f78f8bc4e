"""
Tests for server.py and client.py, end to end over a local aiohttp server.

Covers:
  - POST /api/analyze: 200 rows, 400 with no files, 500 on recognition failure
  - GET /health
  - AnalyzeClient.submit against the server, including error pass-through
  - BatchOrchestrator driving AnalyzeClient: failing batch stops the run,
    batch numbers restart with every run of a reused client
"""
from __future__ import annotations

import asyncio
from unittest.mock import patch

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from client import AnalyzeClient, BatchError
from models import CandidateMatch, RowKind, UploadedImage
from orchestrator import BatchOrchestrator, RunState
from recognizers.base import Strategy
from server import build_web_app

HAT = [CandidateMatch(title="Hermes Hat", source_domain="hermes.com", price_signal="$250", confidence=0.95)]


def upload(name: str) -> UploadedImage:
    return UploadedImage(data=b"\xff\xd8" + name.encode(), file_name=name, media_type="image/jpeg")


def form_for(*names: str) -> aiohttp.FormData:
    form = aiohttp.FormData()
    for name in names:
        form.add_field("images", b"\xff\xd8" + name.encode(), filename=name, content_type="image/jpeg")
    return form


@pytest_asyncio.fixture
async def served(make_pipeline):
    """Factory: start a test server around a fake pipeline, yield its client."""
    started: list[test_utils.TestClient] = []

    async def _start(**pipeline_kwargs):
        pipe, recognizer, *_ = make_pipeline(**pipeline_kwargs)
        client = test_utils.TestClient(test_utils.TestServer(build_web_app(lambda: pipe)))
        await client.start_server()
        started.append(client)
        return client, recognizer

    yield _start
    for client in started:
        await client.close()


@pytest.mark.asyncio
class TestAnalyzeEndpoint:
    async def test_returns_rows(self, served):
        client, recognizer = await served(default=HAT)
        resp = await client.post("/api/analyze", data=form_for("a.jpg", "b.jpg"))

        assert resp.status == 200
        body = await resp.json()
        assert body["success"] is True
        assert [r["fileName"] for r in body["results"]] == ["a.jpg", "b.jpg"]
        assert body["results"][0]["brand"] == "Hermes"
        assert body["results"][0]["confidence"] == "0.95"
        assert [c.file_name for c in recognizer.calls] == ["a.jpg", "b.jpg"]

    async def test_upload_bodies_read_off_the_event_loop(self, served):
        client, recognizer = await served(default=HAT)
        real_to_thread = asyncio.to_thread
        with patch("server.asyncio.to_thread", side_effect=real_to_thread) as to_thread:
            resp = await client.post("/api/analyze", data=form_for("a.jpg", "b.jpg"))

        assert resp.status == 200
        assert to_thread.call_count == 2
        assert [c.data for c in recognizer.calls] == [b"\xff\xd8a.jpg", b"\xff\xd8b.jpg"]

    async def test_no_images(self, served):
        client, recognizer = await served(default=HAT)
        resp = await client.post("/api/analyze", data={"note": "nothing attached"})

        assert resp.status == 400
        assert await resp.json() == {"error": "No images uploaded."}
        assert recognizer.calls == []

    async def test_recognition_failure_is_500(self, served, recognition_error):
        client, _ = await served(script={"b.jpg": recognition_error}, default=HAT)
        resp = await client.post("/api/analyze", data=form_for("a.jpg", "b.jpg"))

        assert resp.status == 500
        body = await resp.json()
        assert body["error"].startswith("Failed to process images.")
        assert "503" in body["error"]
        assert "results" not in body

    async def test_not_found_row_is_still_200(self, served):
        client, _ = await served(default=[])
        resp = await client.post("/api/analyze", data=form_for("blank.jpg"))

        assert resp.status == 200
        [row] = (await resp.json())["results"]
        assert row["brand"] == "Not Found"


@pytest.mark.asyncio
async def test_health(served):
    client, _ = await served(strategy=Strategy.LABELS)
    resp = await client.get("/health")
    assert resp.status == 200
    assert "fake/labels" in await resp.text()


@pytest.mark.asyncio
class TestAnalyzeClient:
    async def test_submit_parses_rows(self, served):
        client, _ = await served(default=[])
        api = AnalyzeClient(str(client.make_url("/")))

        [row] = await api.submit([upload("blank.jpg")])
        assert row.file_name == "blank.jpg"
        assert row.kind is RowKind.NOT_FOUND

    async def test_server_error_message_passed_through(self, served, recognition_error):
        client, _ = await served(script={"a.jpg": recognition_error})
        api = AnalyzeClient(str(client.make_url("/")))

        with pytest.raises(BatchError, match="Failed to process images. SerpApi error 503"):
            await api.submit([upload("a.jpg")])

    async def test_orchestrated_run_stops_at_failing_batch(self, served, recognition_error):
        client, recognizer = await served(script={"c.jpg": recognition_error}, default=HAT)
        api = AnalyzeClient(str(client.make_url("/")))
        orch = BatchOrchestrator(submit=api.submit, batch_size=2)

        report = await orch.run([upload(n) for n in ("a.jpg", "b.jpg", "c.jpg", "d.jpg", "e.jpg")])

        assert report.state is RunState.FAILED
        assert report.failed_batch == 2
        assert [r.file_name for r in report.results] == ["a.jpg", "b.jpg"]
        assert "503" in report.error
        # e.jpg sits in batch 3, which is never sent
        assert "e.jpg" not in [c.file_name for c in recognizer.calls]


@pytest.mark.asyncio
async def test_reused_client_reports_batch_number_of_current_run():
    posts = 0

    async def flaky_analyze(request):
        nonlocal posts
        posts += 1
        await request.post()
        if posts == 3:
            return web.Response(status=502, text="Bad Gateway")
        return web.json_response({"success": True, "results": []})

    app = web.Application()
    app.router.add_post("/api/analyze", flaky_analyze)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        orch = BatchOrchestrator(submit=AnalyzeClient(str(client.make_url("/"))).submit, batch_size=1)

        first = await orch.run([upload("a.jpg"), upload("b.jpg")])
        second = await orch.run([upload("c.jpg"), upload("d.jpg")])

    assert first.ok
    assert second.failed_batch == 1
    assert second.error == "An error occurred in batch 1."


@pytest.mark.asyncio
async def test_batch_error_carries_status():
    async def rejecting(request):
        return web.json_response({"error": "No images uploaded."}, status=400)

    app = web.Application()
    app.router.add_post("/api/analyze", rejecting)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        with pytest.raises(BatchError, match="No images uploaded.") as info:
            await AnalyzeClient(str(client.make_url("/"))).submit([upload("a.jpg")])
    assert info.value.status == 400
