"""
client.py — submit batches to a running upload server.

`AnalyzeClient.submit` has the same shape as ImagePipeline.analyse_batch, so
the orchestrator can drive either one. Batch numbering belongs to the
orchestrator; a BatchError without a server message leaves the wording to it.
"""
from __future__ import annotations

import logging
from typing import Optional

import aiohttp

import config
from models import AnalysisResult, UploadedImage

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/analyze"


class BatchError(Exception):
    """The server rejected or failed a batch."""

    def __init__(self, message: str = "", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class AnalyzeClient:

    def __init__(self, base_url: str, timeout: float | None = None) -> None:
        self._url = base_url.rstrip("/") + ANALYZE_PATH
        # One batch waits on up to BATCH_SIZE sequential images server-side
        self._timeout = timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS * config.BATCH_SIZE * 3

    async def submit(self, batch: list[UploadedImage]) -> list[AnalysisResult]:
        form = aiohttp.FormData()
        for upload in batch:
            form.add_field("images", upload.data, filename=upload.file_name, content_type=upload.media_type)

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._url,
                    data=form,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as resp:
                    data = await _read_json(resp)
                    if resp.status != 200:
                        logger.warning("Analyze request returned HTTP %d", resp.status)
                        raise BatchError(data.get("error") or "", status=resp.status)
        except aiohttp.ClientError as exc:
            raise BatchError(f"Could not reach the analysis server: {exc}") from exc

        results = [AnalysisResult.from_dict(r) for r in data.get("results") or []]
        logger.info("Batch of %d file(s) → %d row(s)", len(batch), len(results))
        return results


async def _read_json(resp: aiohttp.ClientResponse) -> dict:
    try:
        data = await resp.json(content_type=None)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
