"""
orchestrator.py — drive a whole analysis run, one batch at a time.

  IDLE ──run()──▶ RUNNING ──all batches ok──▶ SUCCEEDED
                     └──────first failure────▶ FAILED

The orchestrator is the only owner of the cumulative result list and the
progress counters. Batches go out strictly one after another through a
pluggable async submitter:

  • ImagePipeline.analyse_batch   — in-process
  • AnalyzeClient.submit          — POST to a running upload server

Wrapped in `reading_from_disk`, a submitter takes file paths instead of
loaded images, and each batch is read only when it is sent.

When a batch fails nothing after it is attempted. Rows from earlier batches
stay in `results` so the caller can still look at (and export) them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import config
import exporter
from models import AnalysisResult, BatchProgress, UploadedImage

logger = logging.getLogger(__name__)

T = TypeVar("T")

BatchSubmitter   = Callable[[list[Any]], Awaitable[list[AnalysisResult]]]
ProgressCallback = Callable[[BatchProgress], None]


class UsageError(Exception):
    """Rejected before any network call; no state was changed."""


class RunState(str, Enum):
    IDLE      = "idle"
    RUNNING   = "running"
    SUCCEEDED = "succeeded"
    FAILED    = "failed"


@dataclass
class RunReport:
    state: RunState
    results: list[AnalysisResult]
    progress: BatchProgress
    error: Optional[str] = None
    batches_completed: int = 0
    failed_batch: Optional[int] = None      # 1-based

    @property
    def ok(self) -> bool:
        return self.state is RunState.SUCCEEDED


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError(f"batch size must be at least 1 (got {size})")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


@dataclass
class BatchOrchestrator:
    submit: BatchSubmitter
    batch_size: int = config.BATCH_SIZE
    on_progress: Optional[ProgressCallback] = None

    state: RunState = field(default=RunState.IDLE, init=False)
    results: list[AnalysisResult] = field(default_factory=list, init=False)
    progress: BatchProgress = field(default_factory=lambda: BatchProgress(0), init=False)
    error: Optional[str] = field(default=None, init=False)

    async def run(self, images: Sequence[Any]) -> RunReport:
        """Submit *images* (uploads, or paths for a reading_from_disk submitter)."""
        if not images:
            raise UsageError("Please select images to upload.")
        if self.state is RunState.RUNNING:
            raise UsageError("An analysis run is already in progress.")
        batches = partition(images, self.batch_size)

        self.state = RunState.RUNNING
        self.results = []
        self.error = None
        self.progress = BatchProgress(total_count=len(images))
        logger.info("Analysing %d image(s) in %d batch(es) of up to %d",
                    len(images), len(batches), self.batch_size)

        completed = 0
        for number, batch in enumerate(batches, start=1):
            try:
                batch_results = await self.submit(batch)
            except Exception as exc:
                self.error = str(exc) or f"An error occurred in batch {number}."
                self.state = RunState.FAILED
                logger.error("Batch %d/%d failed: %s", number, len(batches), self.error)
                return self._report(completed, failed_batch=number)

            self.results.extend(batch_results)
            self.progress.advance(len(batch))
            completed += 1
            logger.info(
                "Batch %d/%d done — %d row(s), %.0f%% complete",
                number, len(batches), len(batch_results), self.progress.percent_complete,
            )
            if self.on_progress:
                self.on_progress(self.progress)

        self.state = RunState.SUCCEEDED
        return self._report(completed)

    def export(self) -> bytes:
        if not self.results:
            raise UsageError("No results to export.")
        return exporter.export_csv(self.results)

    def _report(self, completed: int, failed_batch: Optional[int] = None) -> RunReport:
        return RunReport(
            state=self.state,
            results=list(self.results),
            progress=self.progress,
            error=self.error,
            batches_completed=completed,
            failed_batch=failed_batch,
        )


def reading_from_disk(
    submit: Callable[[list[UploadedImage]], Awaitable[list[AnalysisResult]]],
) -> Callable[[list[Path]], Awaitable[list[AnalysisResult]]]:
    """Wrap *submit* so a batch of paths is read from disk just before it goes out."""

    async def _submit(paths: list[Path]) -> list[AnalysisResult]:
        batch = [UploadedImage.from_path(p) for p in paths]
        return await submit(batch)

    return _submit
