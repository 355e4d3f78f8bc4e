"""
condition.py — AI condition assessment using the google-genai SDK.

One call per source image. The answer is advisory, so every failure
(missing key, API error, safety block, empty text) degrades to the literal
"AI Analysis Failed" instead of raising.
"""
from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import types as genai_types

import config
from models import CONDITION_FAILED

logger = logging.getLogger(__name__)

CONDITION_BUCKETS = ("New", "Like New", "Used (Good)", "Used (Fair)", "Damaged")


def build_prompt(description: str) -> str:
    buckets = ", ".join(f'"{b}"' for b in CONDITION_BUCKETS[:-1])
    return (
        f'As an expert product appraiser, analyze the image of "{description}". '
        f'Categorize its condition as {buckets}, or "{CONDITION_BUCKETS[-1]}". '
        "Provide a one-sentence justification."
    )


class ConditionAssessor:

    def __init__(self, api_key: Optional[str], model: str = config.GEMINI_MODEL) -> None:
        self.model_id = model
        self._client = genai.Client(api_key=api_key) if api_key else None

    async def assess(
        self,
        image_bytes: bytes,
        description: str,
        media_type: str = "image/jpeg",
    ) -> str:
        if self._client is None:
            logger.warning("GEMINI_API_KEY is not set — condition analysis skipped")
            return CONDITION_FAILED

        gen_config = genai_types.GenerateContentConfig(
            temperature=0,
            max_output_tokens=256,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_id,
                contents=[
                    build_prompt(description or "the item"),
                    genai_types.Part.from_bytes(data=image_bytes, mime_type=media_type),
                ],
                config=gen_config,
            )
            text = (response.text or "").strip()
        except Exception as exc:
            logger.error("[gemini/%s] Condition analysis failed: %s", self.model_id, exc)
            return CONDITION_FAILED

        if not text:
            logger.warning("[gemini/%s] Empty condition answer for '%s'", self.model_id, description)
            return CONDITION_FAILED
        return text
