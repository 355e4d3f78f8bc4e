"""
Google Cloud Vision web-detection recognizer (label-based strategy).

API docs: https://cloud.google.com/vision/docs/detecting-web

One request per image. The response is reduced to a single CandidateMatch:
  • title      → best-guess label, else the top web entity's description,
                 else "Unknown Item"
  • confidence → top web entity score
  • thumbnail  → first visually similar image

Prices are NOT part of this response; the pipeline looks them up separately
through pricing.PriceLookup using the title as the query.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

import config
from models import UNKNOWN_ITEM, CandidateMatch, EncodedImage
from recognizers.base import RecognitionError, Recognizer, Strategy, coerce_score

logger = logging.getLogger(__name__)

ANNOTATE_URL = "https://vision.googleapis.com/v1/images:annotate"
MAX_RESULTS  = 10


class VisionLabelRecognizer(Recognizer):

    strategy = Strategy.LABELS
    service = "Google Cloud Vision"

    def __init__(self, api_key: Optional[str], timeout: float = config.HTTP_TIMEOUT_SECONDS) -> None:
        self._key = api_key
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "Google Cloud Vision / web detection"

    async def recognize(self, image: EncodedImage) -> list[CandidateMatch]:
        if not self._key:
            raise RecognitionError("GOOGLE_VISION_API_KEY is not set")

        payload = {
            "requests": [{
                "image":    {"content": image.b64},
                "features": [{"type": "WEB_DETECTION", "maxResults": MAX_RESULTS}],
            }]
        }
        data = await self._post(payload)
        match = _parse_web_detection(data)
        logger.info("[vision] %s → '%s' (score=%s)", image.file_name, match.title, match.confidence)
        return [match]

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _post(self, payload: dict) -> dict:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    ANNOTATE_URL,
                    params={"key": self._key},
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise RecognitionError(f"Vision API error {resp.status}: {text[:200]}")
                    return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RecognitionError(f"Vision API request failed: {str(exc) or type(exc).__name__}") from exc


# ── Parser ────────────────────────────────────────────────────────────────────

def _parse_web_detection(data: dict) -> CandidateMatch:
    responses = data.get("responses") or [{}]
    first = responses[0] or {}

    # Per-image errors come back inside a 200 response
    error = first.get("error")
    if error:
        raise RecognitionError(f"Vision API error: {error.get('message', error)}")

    web = first.get("webDetection") or {}
    labels   = web.get("bestGuessLabels") or []
    entities = web.get("webEntities") or []
    similar  = web.get("visuallySimilarImages") or []

    top_entity = entities[0] if entities else {}

    title = (labels[0].get("label") if labels else None) or top_entity.get("description")
    if not title or not str(title).strip():
        title = UNKNOWN_ITEM

    return CandidateMatch(
        title=str(title).strip(),
        confidence=coerce_score(top_entity.get("score")),
        thumbnail_url=similar[0].get("url") if similar else None,
    )
