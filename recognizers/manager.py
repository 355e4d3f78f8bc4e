"""
Recognizer Manager — builds the recognizer selected by RECOGNITION_STRATEGY.

Strategies:
  lens    — SerpApi Google Lens, many visual matches per image (default)
  labels  — Cloud Vision web detection, one best-guess label per image

The instance is cached at module level; tests (or a config reload) reset it
by assigning `_recognizer = None`.
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from recognizers.base import Recognizer, Strategy

logger = logging.getLogger(__name__)

_recognizer: Optional[Recognizer] = None


def build_recognizer(strategy: str) -> Recognizer:
    try:
        chosen = Strategy(strategy.strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in Strategy)
        raise ValueError(f"Unknown RECOGNITION_STRATEGY '{strategy}'. Valid: {valid}") from None

    if chosen is Strategy.LABELS:
        from recognizers.vision_labels import VisionLabelRecognizer
        return VisionLabelRecognizer(config.GOOGLE_VISION_API_KEY)

    from recognizers.lens import LensRecognizer
    return LensRecognizer(config.SERPAPI_API_KEY)


def get_recognizer() -> Recognizer:
    """Return the active recognizer, building it once on first call."""
    global _recognizer
    if _recognizer is None:
        _recognizer = build_recognizer(config.RECOGNITION_STRATEGY)
        logger.info("Recognition backend: %s", _recognizer.name)
    return _recognizer
