"""
Shared pytest fixtures.

`fake_http` builds a stand-in for aiohttp.ClientSession (patch it into the
module under test); `make_pipeline` wires an ImagePipeline to fake adapters
so no test ever reaches a real backend.
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from condition import ConditionAssessor  # noqa: E402
from models import CandidateMatch, EncodedImage, PriceQuote  # noqa: E402
from pipeline import ImagePipeline  # noqa: E402
from pricing import PriceLookup  # noqa: E402
from recognizers.base import RecognitionError, Recognizer, Strategy  # noqa: E402


@pytest.fixture(autouse=True)
def reset_caches():
    """Each test starts without a cached recognizer / pipeline."""
    import pipeline
    import recognizers.manager as manager
    pipeline._pipeline = None
    manager._recognizer = None
    yield
    pipeline._pipeline = None
    manager._recognizer = None


# ── aiohttp stand-in ──────────────────────────────────────────────────────────

@pytest.fixture
def fake_http():
    """
    Factory: fake aiohttp.ClientSession whose get/post answer with *payload*
    (or raise *exc*). Use as
        with patch("pricing.aiohttp.ClientSession", return_value=fake_http({...})):
    """
    def _make(payload=None, status: int = 200, text: str = "error text",
              exc: Optional[BaseException] = None) -> MagicMock:
        resp = MagicMock()
        resp.status = status
        resp.json = AsyncMock(return_value=payload)
        resp.text = AsyncMock(return_value=text)
        resp.__aenter__ = AsyncMock(return_value=resp)
        resp.__aexit__ = AsyncMock(return_value=False)

        session = MagicMock()
        if exc is not None:
            session.get = MagicMock(side_effect=exc)
            session.post = MagicMock(side_effect=exc)
        else:
            session.get = MagicMock(return_value=resp)
            session.post = MagicMock(return_value=resp)
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        return session

    return _make


# ── Fake adapters ─────────────────────────────────────────────────────────────

class FakeRecognizer(Recognizer):
    """Answers from a script: file name → matches, or an exception to raise."""

    def __init__(self, strategy: Strategy, script: Optional[dict] = None,
                 default: Optional[list[CandidateMatch]] = None) -> None:
        self.strategy = strategy
        self.service = f"fake {strategy.value} service"
        self.script = script or {}
        self.default = default if default is not None else []
        self.calls: list[EncodedImage] = []

    @property
    def name(self) -> str:
        return f"fake/{self.strategy.value}"

    async def recognize(self, image: EncodedImage) -> list[CandidateMatch]:
        self.calls.append(image)
        answer = self.script.get(image.file_name, self.default)
        if isinstance(answer, BaseException):
            raise answer
        await asyncio.sleep(0)
        return list(answer)


@pytest.fixture
def make_pipeline():
    """
    Factory returning (pipeline, recognizer, price_lookup, assessor).
    price_lookup / assessor are AsyncMock-backed with sensible defaults.
    """
    def _make(strategy: Strategy = Strategy.VISUAL_MATCH, script: Optional[dict] = None,
              default: Optional[list[CandidateMatch]] = None,
              quote: PriceQuote = PriceQuote("$250", "http://shop.example/hat"),
              condition: str = "Used (Good): Minor signs of wear."):
        recognizer = FakeRecognizer(strategy, script, default)

        price_lookup = MagicMock(spec=PriceLookup)
        price_lookup.price = AsyncMock(return_value=quote)

        assessor = MagicMock(spec=ConditionAssessor)
        assessor.assess = AsyncMock(return_value=condition)

        return ImagePipeline(recognizer, price_lookup, assessor), recognizer, price_lookup, assessor

    return _make


@pytest.fixture
def recognition_error():
    return RecognitionError("SerpApi error 503: upstream unavailable")
