"""Ask the language model what kind of report an uploaded table is."""

import json
import logging
import math
import time
from typing import Any

from pydantic import ValidationError

from qmdash import llm
from qmdash.errors import ClassificationError
from qmdash.models import AnalysisResult, Cell, ColumnInfo, DateRange
from qmdash.prompts import REPORT_TYPES, SYSTEM_PROMPT, build_analysis_prompt

log = logging.getLogger(__name__)

# Rows sent to the model; keeps the prompt small on large exports.
SAMPLE_ROWS = 20
PREVIEW_ROWS = 10

DEGRADED_ISSUE = "AI analysis failed. Please verify data manually."


async def classify_report(filename: str, headers: list[str], rows: list[list[Cell]]) -> AnalysisResult:
    """Classify a parsed upload. Raises ClassificationError on any model failure."""
    t0 = time.monotonic()
    prompt = build_analysis_prompt(filename, headers, rows[:SAMPLE_ROWS])

    try:
        raw = await llm.chat_json(SYSTEM_PROMPT, prompt)
    except Exception as e:
        raise ClassificationError(f"LLM call failed: {e}") from e

    if not raw.strip():
        raise ClassificationError("LLM returned an empty response")

    try:
        parsed = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        raise ClassificationError(f"LLM returned invalid JSON: {raw[:200]}") from e
    if not isinstance(parsed, dict):
        raise ClassificationError(f"LLM returned {type(parsed).__name__}, expected an object")

    try:
        result = _to_result(parsed, rows[:PREVIEW_ROWS])
    except (ValidationError, TypeError, ValueError) as e:
        raise ClassificationError(f"LLM response has an unexpected shape: {e}") from e

    log.info(
        "Classified %s as %s (confidence=%.2f) in %.2fs",
        filename, result.report_type, result.confidence, time.monotonic() - t0,
    )
    return result


def degraded_analysis(headers: list[str], rows: list[list[Cell]]) -> AnalysisResult:
    """Deterministic analysis used when the model cannot be reached or understood."""
    return AnalysisResult(
        report_type="unknown",
        confidence=0,
        date_range=DateRange(),
        agents_found=[],
        columns_detected=[ColumnInfo(name=h, type="unknown", format="text") for h in headers],
        issues=[DEGRADED_ISSUE],
        preview=rows[:PREVIEW_ROWS],
    )


def _to_result(parsed: dict[str, Any], preview: list[list[Cell]]) -> AnalysisResult:
    report_type = str(parsed.get("reportType") or "unknown").strip().lower()
    if report_type not in REPORT_TYPES:
        log.info("Model returned unrecognized report type %r", report_type)
        report_type = "unknown"

    date_range = parsed.get("dateRange") or {}
    if not isinstance(date_range, dict):
        raise TypeError("dateRange must be an object")

    columns = parsed.get("columns", parsed.get("columnsDetected"))
    return AnalysisResult(
        report_type=report_type,
        confidence=_normalize_confidence(parsed.get("confidence")),
        date_range=DateRange(
            start=str(date_range.get("start") or ""),
            end=str(date_range.get("end") or ""),
        ),
        agents_found=_unique_names(_as_list(parsed.get("agentsFound"))),
        columns_detected=[ColumnInfo.model_validate(c) for c in _as_list(columns)],
        issues=[str(i) for i in _as_list(parsed.get("issues"))],
        preview=preview,
    )


def _reject_constant(name: str) -> Any:
    # json.loads accepts NaN and Infinity, which are not JSON.
    raise ValueError(f"non-standard JSON constant: {name}")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _normalize_confidence(value: Any) -> float:
    if value is None:
        return 0.0
    conf = float(value)
    if not math.isfinite(conf):
        raise ValueError(f"confidence is not a finite number: {value!r}")
    # Some models answer on a 0-100 scale despite the prompt.
    if conf > 1:
        conf /= 100
    return min(max(conf, 0.0), 1.0)


def _unique_names(names: list[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for n in names:
        name = str(n).strip()
        if name and name not in seen:
            seen[name] = None
    return list(seen)
