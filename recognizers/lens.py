"""
SerpApi Google Lens recognizer (visual-match strategy).

API docs: https://serpapi.com/google-lens-api

Google Lens does its own multi-item detection, so one photo of a shelf can
come back with dozens of `visual_matches`. Every match is returned verbatim;
deduplication and brand/model splitting happen later in normalizer.py.

Price signal per match (first one present wins):
  1. price.value                              → "$24.99" (current API shape)
  2. price_results.detected_prices[0].value   → a price seen on the page
  3. price_results.typical_price_range[0]     → "$300 - $350"
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

import config
from models import CandidateMatch, EncodedImage
from recognizers.base import RecognitionError, Recognizer, Strategy, coerce_score

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"


class LensRecognizer(Recognizer):

    strategy = Strategy.VISUAL_MATCH
    service = "Google Lens"

    def __init__(
        self,
        api_key: Optional[str],
        gl: str = config.SERPAPI_GL,
        hl: str = config.SERPAPI_HL,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._key = api_key
        self._gl = gl
        self._hl = hl
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "SerpApi / Google Lens"

    async def recognize(self, image: EncodedImage) -> list[CandidateMatch]:
        if not self._key:
            raise RecognitionError("SERPAPI_API_KEY is not set")

        params = {
            "engine":  "google_lens",
            "url":     image.data_url,
            "api_key": self._key,
            "hl":      self._hl,
            "country": self._gl,
        }
        data = await self._fetch(params)

        matches: list[CandidateMatch] = []
        for raw in data.get("visual_matches") or []:
            match = _parse_visual_match(raw)
            if match:
                matches.append(match)

        logger.info("[lens] %s → %d visual matches", image.file_name, len(matches))
        return matches

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _fetch(self, params: dict) -> dict:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    SERPAPI_URL,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise RecognitionError(f"SerpApi error {resp.status}: {text[:200]}")
                    data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RecognitionError(f"SerpApi request failed: {str(exc) or type(exc).__name__}") from exc

        # Engine errors come back as {"error": "..."} with a 200 status
        if isinstance(data, dict) and data.get("error"):
            # "hasn't returned any results" is a legitimate empty answer, not a failure
            if "returned any results" in str(data["error"]):
                return {}
            raise RecognitionError(f"SerpApi error: {data['error']}")
        return data


# ── Parser ────────────────────────────────────────────────────────────────────

def _parse_visual_match(raw: Any) -> Optional[CandidateMatch]:
    if not raw or not isinstance(raw, dict):
        return None
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    score = coerce_score(raw.get("score"))
    if score is None:
        score = coerce_score(raw.get("serpapi_product_api_score"))

    return CandidateMatch(
        title=title.strip(),
        source_domain=raw.get("source") or None,
        price_signal=extract_price_signal(raw),
        reference_link=raw.get("link") or None,
        thumbnail_url=raw.get("thumbnail") or None,
        confidence=score,
    )


def extract_price_signal(raw: dict) -> Optional[str]:
    price = raw.get("price")
    if isinstance(price, dict) and price.get("value"):
        return str(price["value"])

    results = raw.get("price_results") or {}
    detected = results.get("detected_prices") or []
    if detected and isinstance(detected[0], dict) and detected[0].get("value") not in (None, ""):
        return _as_dollars(detected[0]["value"])

    typical = results.get("typical_price_range") or []
    if typical and typical[0]:
        return str(typical[0])
    return None


def _as_dollars(value: Any) -> str:
    """Bare numbers get a "$" prefix; anything already formatted is kept."""
    if isinstance(value, (int, float)):
        return f"${value}"
    text = str(value).strip()
    if text and text[0].isdigit():
        return f"${text}"
    return text
