"""
normalizer.py — CandidateMatch lists → AnalysisResult rows.

Pure functions, no I/O. Everything that decides what a row looks like lives
here so the pipeline only has to sequence the network calls.
"""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Iterable, Optional

from models import (
    CONDITION_FAILED, CONVERSION_ERROR, NO_LINK, NOT_AVAILABLE, NOT_FOUND, ZERO_CONFIDENCE,
    AnalysisResult, CandidateMatch, PriceQuote, RowKind,
)
from recognizers.base import Recognizer, Strategy

_PROTOCOL_WWW = re.compile(r"^(?:https?://)?(?:www\.)?", re.IGNORECASE)


# ── Field helpers ─────────────────────────────────────────────────────────────

def format_confidence(score: Any) -> str:
    """Exactly two decimals. Missing or unreadable scores are 0.00."""
    if score is None or isinstance(score, bool):
        return ZERO_CONFIDENCE
    try:
        value = float(score)
    except (TypeError, ValueError):
        return ZERO_CONFIDENCE
    if value != value:      # NaN
        return ZERO_CONFIDENCE
    return f"{max(0.0, min(1.0, value)):.2f}"


def title_key(title: str) -> str:
    """Plain lower-casing; "Straße" and "STRASSE" stay distinct."""
    return title.strip().lower()


def dedupe_matches(matches: Iterable[CandidateMatch]) -> list[CandidateMatch]:
    """
    Drop matches whose title (case-insensitive) was already seen.
    First one wins with all of its fields; input order is kept.
    Matches without a title are unusable and dropped as well.
    """
    seen: set[str] = set()
    unique: list[CandidateMatch] = []
    for match in matches:
        if not match.title or not match.title.strip():
            continue
        key = title_key(match.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(match)
    return unique


def _capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def brand_from_domain(source_domain: Optional[str]) -> Optional[str]:
    """'https://www.madewell.com/bags' → 'Madewell'."""
    if not source_domain:
        return None
    host = _PROTOCOL_WWW.sub("", source_domain.strip()).split("/")[0]
    stem = host.split(".")[0]
    return _capitalize_first(stem) or None


def split_brand_from_domain(source_domain: Optional[str], title: str) -> tuple[str, str]:
    """
    Brand comes from the retailer domain; when the title starts with that
    brand the prefix is cut off to give the model.
      ("madewell.com", "Madewell The Pouch Wallet") → ("Madewell", "The Pouch Wallet")
    """
    brand = brand_from_domain(source_domain)
    if not brand:
        return NOT_AVAILABLE, title
    if title.lower().startswith(brand.lower()):
        model = title[len(brand):].strip()
        return brand, model or title
    return brand, title


def split_brand_from_label(description: str) -> tuple[str, str]:
    """
    First word is the brand, the rest is the model.
      "Hermes Hat" → ("Hermes", "Hat");  "Hermes" → ("Hermes", "Hermes")
    """
    tokens = description.split()
    if not tokens:
        return NOT_AVAILABLE, description
    brand = _capitalize_first(tokens[0])
    if len(tokens) == 1:
        return brand, description
    return brand, " ".join(tokens[1:])


# ── Row builders ──────────────────────────────────────────────────────────────

def label_rows(
    file_name: str,
    match: CandidateMatch,
    quote: PriceQuote,
    condition: str,
) -> list[AnalysisResult]:
    brand, model = split_brand_from_label(match.title)
    return [AnalysisResult(
        file_name=file_name,
        brand=brand,
        model=model,
        description=match.title,
        condition=condition,
        current_retail_price=quote.price,
        web_link=quote.link,
        item_picture_url=match.thumbnail_url or NOT_AVAILABLE,
        confidence=format_confidence(match.confidence),
    )]


def visual_match_rows(
    file_name: str,
    matches: Iterable[CandidateMatch],
    condition: str = CONDITION_FAILED,
) -> list[AnalysisResult]:
    rows: list[AnalysisResult] = []
    for match in dedupe_matches(matches):
        brand, model = split_brand_from_domain(match.source_domain, match.title)
        rows.append(AnalysisResult(
            file_name=file_name,
            brand=brand,
            model=model,
            description=match.title,
            condition=condition,
            current_retail_price=match.price_signal or NOT_AVAILABLE,
            web_link=match.reference_link or NO_LINK,
            item_picture_url=match.thumbnail_url or NOT_AVAILABLE,
            confidence=format_confidence(match.confidence),
        ))
    return rows


def apply_condition(rows: list[AnalysisResult], condition: str) -> list[AnalysisResult]:
    """One judgement per photo, copied onto every row derived from it."""
    return [replace(row, condition=condition) for row in rows]


def _sentinel_row(file_name: str, brand: str, description: str, kind: RowKind) -> AnalysisResult:
    return AnalysisResult(
        file_name=file_name,
        brand=brand,
        model=NOT_AVAILABLE,
        description=description,
        condition=NOT_AVAILABLE,
        current_retail_price=NOT_AVAILABLE,
        web_link=NOT_AVAILABLE,
        item_picture_url=NOT_AVAILABLE,
        confidence=ZERO_CONFIDENCE,
        kind=kind,
    )


def not_found_row(file_name: str, service: str) -> AnalysisResult:
    return _sentinel_row(file_name, NOT_FOUND, f"No items recognized by {service}.", RowKind.NOT_FOUND)


def conversion_error_row(file_name: str, message: str) -> AnalysisResult:
    return _sentinel_row(
        file_name, CONVERSION_ERROR,
        f"Server-side conversion failed: {message}",
        RowKind.CONVERSION_ERROR,
    )


def normalize(
    file_name: str,
    strategy: Strategy,
    matches: list[CandidateMatch],
    condition: str,
    quote: Optional[PriceQuote] = None,
    service: str = Recognizer.service,
) -> list[AnalysisResult]:
    """Rows for one image, whichever recognizer produced the matches."""
    if strategy is Strategy.LABELS:
        if not matches:
            return [not_found_row(file_name, service)]
        return label_rows(file_name, matches[0], quote or PriceQuote(), condition)

    rows = visual_match_rows(file_name, matches)
    if not rows:
        return [not_found_row(file_name, service)]
    return apply_condition(rows, condition)
