"""Turn a parsed KPI report into per-agent daily KPI rows."""

import logging

from qmdash.models import Cell, ParsedTable, ProcessResult, UploadRecord
from qmdash.name_matching import match_agent_name
from qmdash.store import KpiStore

log = logging.getLogger(__name__)

AGENT_COLUMN_KEYWORDS = ("agent", "name", "employee")
DATE_COLUMN_KEYWORDS = ("date",)

# Header keywords that identify the metric column for each processable report type.
METRIC_COLUMN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "quality": ("quality", "score"),
    "aht": ("aht", "handling"),
    "srr": ("srr", "save", "retention"),
    "voc": ("voc", "voice", "customer"),
}
PROCESSABLE_REPORT_TYPES = tuple(METRIC_COLUMN_KEYWORDS)


class MissingColumnError(ValueError):
    pass


def find_column(headers: list[str], keywords: tuple[str, ...]) -> int | None:
    """Index of the first header containing any keyword (case-insensitive)."""
    for i, h in enumerate(headers):
        lower = h.lower()
        if any(k in lower for k in keywords):
            return i
    return None


def _cell(row: list[Cell], index: int | None) -> Cell:
    if index is None or index >= len(row):
        return None
    return row[index]


def _cell_text(value: Cell) -> str:
    return "" if value is None else str(value).strip()


def _duration_seconds(text: str) -> float:
    """Seconds in an "H:MM:SS" or "MM:SS" duration."""
    seconds = 0.0
    for part in text.split(":"):
        seconds = seconds * 60 + float(part)
    return seconds


def _metric_value(metric: str, raw: Cell) -> float | int:
    text = _cell_text(raw).rstrip("%").strip()
    if metric == "aht" and ":" in text:
        return int(round(_duration_seconds(text)))
    value = float(text) if text else 0.0
    if value != value:  # NaN
        raise ValueError(raw)
    # AHT is stored in whole seconds.
    return int(round(value)) if metric == "aht" else value


async def process_upload(
    table: ParsedTable,
    filename: str,
    file_type: str,
    report_type: str,
    date_start: str,
    store: KpiStore,
) -> ProcessResult:
    """Upsert one KPI value per matched agent row and record the upload.

    Raises MissingColumnError when no agent column can be found; nothing
    is written in that case.
    """
    agent_idx = find_column(table.headers, AGENT_COLUMN_KEYWORDS)
    if agent_idx is None:
        raise MissingColumnError("Could not find agent name column")
    date_idx = find_column(table.headers, DATE_COLUMN_KEYWORDS)
    metric_idx = find_column(table.headers, METRIC_COLUMN_KEYWORDS[report_type])
    if metric_idx is None:
        log.warning("No %s column in %s; no rows will be processed", report_type, filename)

    agents = await store.list_agents()
    processed = 0
    errors: list[str] = []

    for i, row in enumerate(table.rows):
        row_no = i + 2  # 1-based, after the header row
        agent_name = _cell_text(_cell(row, agent_idx))
        if not agent_name:
            continue

        match = match_agent_name(agent_name, agents)
        if not match.matched or match.agent_id is None:
            errors.append(f'Row {row_no}: Could not match agent "{agent_name}"')
            continue

        record_date = _cell_text(_cell(row, date_idx)) or date_start

        if metric_idx is None:
            continue
        raw = _cell(row, metric_idx)
        try:
            value = _metric_value(report_type, raw)
        except ValueError:
            errors.append(f'Row {row_no}: invalid {report_type} value "{_cell_text(raw)}"')
            continue

        await store.upsert_kpi(match.agent_id, record_date, report_type, value)
        processed += 1

    await store.record_upload(
        UploadRecord(
            filename=filename,
            file_type=file_type,
            report_type=report_type,
            status="completed_with_errors" if errors else "completed",
            records_processed=processed,
            errors="; ".join(errors) if errors else None,
        )
    )

    message = f"Successfully processed {processed} records"
    if errors:
        message += f" with {len(errors)} errors"
    log.info("%s: %s", filename, message)
    return ProcessResult(success=True, records_processed=processed, errors=errors, message=message)
