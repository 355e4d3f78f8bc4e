"""
pipeline.py — analyse one batch of uploaded images.

Per image:
  prepare (HEIC → JPEG)  →  recognize  →  price ∥ condition  →  normalize

Images are processed one after another, never concurrently. Inside one image
the price lookup and the condition assessment run together.

Error policy:
  • ConversionError  → one CONVERSION_ERROR row for that file, keep going
  • RecognitionError → propagates; the whole batch (request) fails
  • price / condition failures are already absorbed by their adapters
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import config
import normalizer
import preprocessor
from condition import ConditionAssessor
from models import AnalysisResult, CandidateMatch, UploadedImage
from preprocessor import ConversionError
from pricing import PriceLookup
from recognizers.base import Recognizer, Strategy

logger = logging.getLogger(__name__)


class ImagePipeline:

    def __init__(
        self,
        recognizer: Recognizer,
        price_lookup: PriceLookup,
        assessor: ConditionAssessor,
    ) -> None:
        self.recognizer = recognizer
        self.price_lookup = price_lookup
        self.assessor = assessor

    async def analyse_image(self, upload: UploadedImage) -> list[AnalysisResult]:
        try:
            image = await preprocessor.prepare(upload.data, upload.file_name, upload.media_type)
        except ConversionError as exc:
            return [normalizer.conversion_error_row(upload.file_name, exc.message)]

        matches = await self.recognizer.recognize(image)
        strategy = self.recognizer.strategy

        if strategy is Strategy.LABELS:
            if not matches:
                return [normalizer.not_found_row(upload.file_name, self.recognizer.service)]
            description = matches[0].title
            quote, condition = await asyncio.gather(
                self.price_lookup.price(description),
                self.assessor.assess(image.data, description, image.media_type),
            )
            return normalizer.normalize(
                upload.file_name, strategy, matches, condition, quote, service=self.recognizer.service,
            )

        if not matches:
            logger.info("No visual matches for %s", upload.file_name)
            return [normalizer.not_found_row(upload.file_name, self.recognizer.service)]

        condition = await self.assessor.assess(image.data, _first_title(matches), image.media_type)
        return normalizer.normalize(upload.file_name, strategy, matches, condition, service=self.recognizer.service)

    async def analyse_batch(self, uploads: list[UploadedImage]) -> list[AnalysisResult]:
        results: list[AnalysisResult] = []
        for upload in uploads:
            rows = await self.analyse_image(upload)
            logger.info("%s → %d row(s)", upload.file_name, len(rows))
            results.extend(rows)
        return results


def _first_title(matches: list[CandidateMatch]) -> str:
    for match in matches:
        if match.title and match.title.strip():
            return match.title
    return "the item"


_pipeline: Optional[ImagePipeline] = None


def get_pipeline() -> ImagePipeline:
    """Return the configured pipeline, building it once on first call."""
    global _pipeline
    if _pipeline is None:
        from recognizers.manager import get_recognizer
        _pipeline = ImagePipeline(
            recognizer=get_recognizer(),
            price_lookup=PriceLookup(config.SERPAPI_API_KEY),
            assessor=ConditionAssessor(config.GEMINI_API_KEY),
        )
    return _pipeline
