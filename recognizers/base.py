"""
Shared types and base class for all recognition backends.

Every recognizer returns the same CandidateMatch list — the pipeline only
looks at `strategy` to decide whether prices still need to be looked up
(labels) or already came back inline with the matches (visual match).
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from models import CandidateMatch, EncodedImage

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    LABELS       = "labels"         # one best-guess label per image
    VISUAL_MATCH = "lens"           # every visual match the backend found


class RecognitionError(Exception):
    """Identification failed. Fatal for the whole request."""


def coerce_score(value: Any) -> Optional[float]:
    """Numeric score in [0, 1], or None when the backend sent nothing usable."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, min(1.0, score))


class Recognizer(ABC):
    """Base class all recognizers must implement."""

    strategy: Strategy
    # Shown to users, e.g. in "No items recognized by ..."
    service: str = "the recognition service"

    @abstractmethod
    async def recognize(self, image: EncodedImage) -> list[CandidateMatch]:
        """Identify the item(s) in *image*. Raises RecognitionError on failure."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs."""
        ...
