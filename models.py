"""
models.py — shared record types for the whole pipeline.

Sentinel strings (N/A, #, CONVERSION_ERROR, AI Analysis Failed) are the
external JSON contract and are defined here once. Internally every
AnalysisResult also carries a RowKind tag so code never has to compare
brand strings to find out what kind of row it is holding.
"""
from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

# ── Sentinels ─────────────────────────────────────────────────────────────────

NOT_AVAILABLE       = "N/A"
NO_LINK             = "#"
CONVERSION_ERROR    = "CONVERSION_ERROR"
NOT_FOUND           = "Not Found"
UNKNOWN_ITEM        = "Unknown Item"
CONDITION_FAILED    = "AI Analysis Failed"
ZERO_CONFIDENCE     = "0.00"

# Rows below this confidence are flagged for manual review
REVIEW_THRESHOLD = 0.70


class RowKind(str, Enum):
    MATCH            = "match"
    NOT_FOUND        = "not_found"
    CONVERSION_ERROR = "conversion_error"


# ── Inputs ────────────────────────────────────────────────────────────────────

@dataclass
class UploadedImage:
    """One file as submitted by the user. Lives for one request only."""
    data: bytes
    file_name: str
    media_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedImage":
        p = Path(path)
        media_type, _ = mimetypes.guess_type(p.name)
        if media_type is None and p.suffix.lower() in (".heic", ".heif"):
            media_type = f"image/{p.suffix.lower()[1:]}"
        return cls(
            data=p.read_bytes(),
            file_name=p.name,
            media_type=media_type or "application/octet-stream",
        )


@dataclass
class EncodedImage:
    """Preprocessor output: bytes the recognition backend accepts as-is."""
    file_name: str
    data: bytes
    media_type: str
    converted: bool = False     # True when the bytes came out of the HEIC transcoder

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode()

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.b64}"


# ── Adapter outputs ───────────────────────────────────────────────────────────

@dataclass
class CandidateMatch:
    """One item hypothesis returned by a recognizer for one image."""
    title: str
    source_domain: Optional[str] = None     # e.g. "madewell.com"
    price_signal: Optional[str] = None      # "$24.99" or "$300 - $350"
    reference_link: Optional[str] = None
    thumbnail_url: Optional[str] = None
    confidence: Optional[float] = None      # None renders as 0.00


@dataclass(frozen=True)
class PriceQuote:
    price: str = NOT_AVAILABLE
    link: str = NO_LINK

    @property
    def found(self) -> bool:
        return self.price != NOT_AVAILABLE


# ── Output row ────────────────────────────────────────────────────────────────

# attribute name → external JSON key, in export column order
JSON_KEYS: dict[str, str] = {
    "file_name":            "fileName",
    "brand":                "brand",
    "model":                "model",
    "description":          "description",
    "condition":            "condition",
    "current_retail_price": "currentRetailPrice",
    "web_link":             "webLink",
    "item_picture_url":     "correspondingItemPictures",
    "confidence":           "confidence",
}


@dataclass
class AnalysisResult:
    file_name: str
    brand: str
    model: str
    description: str
    condition: str
    current_retail_price: str
    web_link: str
    item_picture_url: str
    confidence: str                          # always two decimals, e.g. "0.87"
    kind: RowKind = field(default=RowKind.MATCH, compare=False)

    @property
    def confidence_value(self) -> float:
        try:
            return float(self.confidence)
        except (TypeError, ValueError):
            return 0.0

    @property
    def needs_review(self) -> bool:
        return self.confidence_value < REVIEW_THRESHOLD

    def to_dict(self) -> dict[str, str]:
        return {key: getattr(self, attr) for attr, key in JSON_KEYS.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        values = {attr: str(data.get(key, NOT_AVAILABLE)) for attr, key in JSON_KEYS.items()}
        if values["brand"] == CONVERSION_ERROR:
            kind = RowKind.CONVERSION_ERROR
        elif values["brand"] == NOT_FOUND:
            kind = RowKind.NOT_FOUND
        else:
            kind = RowKind.MATCH
        return cls(**values, kind=kind)


# ── Progress ──────────────────────────────────────────────────────────────────

@dataclass
class BatchProgress:
    total_count: int
    processed_count: int = 0

    @property
    def percent_complete(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.processed_count / self.total_count * 100

    def advance(self, count: int) -> None:
        """Monotonic: never moves backwards, never passes total_count."""
        if count < 0:
            raise ValueError(f"progress cannot move backwards (got {count})")
        self.processed_count = min(self.total_count, self.processed_count + count)
