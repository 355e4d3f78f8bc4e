"""
exporter.py — AnalysisResult rows ⇄ CSV.

Pure serialization. Refusing to export an empty result set is the caller's
job (BatchOrchestrator.export); here an empty list is just a header line.
"""
from __future__ import annotations

import csv
import io
from typing import Iterable

from models import JSON_KEYS, AnalysisResult

EXPORT_FILENAME = "image_analysis_results.csv"

# attribute name → column header, in output order
COLUMNS: dict[str, str] = {
    "file_name":            "File Name",
    "brand":                "Brand",
    "model":                "Model",
    "description":          "Description",
    "condition":            "Condition",
    "current_retail_price": "Current Retail Price",
    "web_link":             "Web Link",
    "item_picture_url":     "Corresponding Item Pictures",
    "confidence":           "Confidence (Similarity)",
}


def export_csv(results: Iterable[AnalysisResult]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(COLUMNS.values())
    for row in results:
        writer.writerow(getattr(row, attr) for attr in COLUMNS)
    return buf.getvalue().encode("utf-8")


def parse_csv(data: bytes) -> list[AnalysisResult]:
    """Read back a file written by export_csv."""
    reader = csv.DictReader(io.StringIO(data.decode("utf-8")))
    missing = [h for h in COLUMNS.values() if h not in (reader.fieldnames or [])]
    if missing:
        raise ValueError(f"Not an analysis export — missing columns: {', '.join(missing)}")
    return [
        AnalysisResult.from_dict({JSON_KEYS[attr]: record[header] for attr, header in COLUMNS.items()})
        for record in reader
    ]
