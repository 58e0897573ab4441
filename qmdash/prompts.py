from typing import Any

REPORT_TYPES = ("quality", "aht", "srr", "voc", "hold", "audit", "attendance", "unknown")

SYSTEM_PROMPT = """\
You are a data analyst specializing in call center reports for insurance operations.
You identify report types from uploaded files, spot data quality issues, and give clear guidance.
Always answer with a single JSON object and no additional text.
"""

_INSTRUCTIONS = """\
You are analyzing an uploaded file to determine what type of call center report it is.

DETERMINE:
1. Report type: one of quality, aht, srr, voc, hold, audit, attendance, unknown.
   - quality: quality/QA scores per agent
   - aht: average handling time
   - srr: save rate / retention
   - voc: voice of customer / customer satisfaction
   - hold: hold time
   - audit: call audit log (individual audited calls)
   - attendance: attendance, absence or leave sheet
2. Confidence: a number between 0 and 1.
3. Date range: the dates the report covers (from a date column or the file name).
4. Agents: every agent name as it appears in the data.
5. Columns: for each header, its semantic type (agent_name, date, quality_score,
   aht_seconds, srr_percentage, voc_score, hold_time, team, id, other) and a short
   description of its format.
6. Data quality: missing values, inconsistent formats, duplicate agents, anything odd.

RESPOND WITH JSON ONLY, using exactly these keys:
{
  "reportType": "quality | aht | srr | voc | hold | audit | attendance | unknown",
  "confidence": 0.0,
  "dateRange": {"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"},
  "agentsFound": ["Agent Name 1", "Agent Name 2"],
  "columns": [{"name": "header as it appears", "type": "agent_name", "format": "Free text"}],
  "issues": ["..."]
}

RULES:
- If you are less than 70% sure of the report type, use "unknown".
- Look for keywords in headers such as "quality", "AHT", "save rate", "VOC", "hold", "absence".
- Agent names are usually in a column called "Agent", "Name", "Employee" or similar.
- Use "" for dateRange values you cannot determine.
- List ALL issues you find; use [] when there are none.
"""


def _format_cell(value: Any) -> str:
    return "" if value is None else str(value)


def build_analysis_prompt(filename: str, headers: list[str], sample: list[list[Any]]) -> str:
    parts = [
        _INSTRUCTIONS,
        f"FILE NAME: {filename}",
        "",
        "HEADERS:",
        " | ".join(headers),
        "",
        f"FIRST {len(sample)} ROWS OF DATA:",
    ]
    for i, row in enumerate(sample, start=1):
        parts.append(f"Row {i}: " + " | ".join(_format_cell(c) for c in row))
    return "\n".join(parts)
