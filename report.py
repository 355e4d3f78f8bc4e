"""
report.py — console presentation of a run.

Rows under the review threshold (confidence < 0.70) get a ⚠️ marker; they
still appear in the export, the marker only says "check this one by hand".
"""
from __future__ import annotations

from models import REVIEW_THRESHOLD, AnalysisResult, BatchProgress, RowKind
from orchestrator import RunReport, RunState

DIV  = "━" * 72
SDIV = "┄" * 72

_KIND_ICON = {
    RowKind.MATCH:            "•",
    RowKind.NOT_FOUND:        "∅",
    RowKind.CONVERSION_ERROR: "✖",
}


def _clip(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def progress_line(progress: BatchProgress) -> str:
    filled = int(progress.percent_complete / 5)
    bar = "█" * filled + "░" * (20 - filled)
    return (
        f"⠿ Analyzing… {bar} {progress.percent_complete:3.0f}% "
        f"({progress.processed_count}/{progress.total_count})"
    )


def result_line(row: AnalysisResult) -> str:
    flag = "⚠️ " if row.needs_review else "  "
    return (
        f"{flag}{_KIND_ICON[row.kind]} {_clip(row.file_name, 18):<18} "
        f"{_clip(row.brand, 14):<14} {_clip(row.model, 24):<24} "
        f"{_clip(row.current_retail_price, 14):>14}  {row.confidence}"
    )


def summary(report: RunReport) -> str:
    lines = [DIV]
    for row in report.results:
        lines.append(result_line(row))
    lines.append(SDIV)

    flagged = sum(1 for r in report.results if r.needs_review)
    lines.append(f"{len(report.results)} row(s) from {report.progress.processed_count} image(s)")
    if flagged:
        lines.append(f"⚠️  {flagged} row(s) below {REVIEW_THRESHOLD:.2f} confidence — review manually")

    if report.state is RunState.FAILED:
        lines.append(f"❌ Error: {report.error}")
        if report.results:
            lines.append("   Rows from earlier batches are kept above.")
    else:
        lines.append("✅ Analysis complete")
    lines.append(DIV)
    return "\n".join(lines)
