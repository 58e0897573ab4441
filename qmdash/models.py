from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Cell = str | int | float | bool | None


class CamelModel(BaseModel):
    """Base for models serialized to the dashboard with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParsedTable(CamelModel):
    headers: list[str]
    rows: list[list[Cell]]  # ragged rows are kept as-is
    row_count: int = 0


# ── Analysis ──


class DateRange(CamelModel):
    start: str = ""
    end: str = ""


class ColumnInfo(CamelModel):
    name: str
    type: str = "unknown"
    format: str = "text"


class AnalysisResult(CamelModel):
    report_type: str = "unknown"
    confidence: float = 0.0
    date_range: DateRange = Field(default_factory=DateRange)
    agents_found: list[str] = []
    columns_detected: list[ColumnInfo] = []
    issues: list[str] = []
    preview: list[list[Cell]] = []


class UploadAnalysisResponse(CamelModel):
    file_name: str
    analysis: AnalysisResult
    row_count: int


class ErrorResponse(BaseModel):
    error: str


# ── Processing ──


class Agent(CamelModel):
    id: int
    name: str
    status: str = "active"


class KpiRecord(CamelModel):
    agent_id: int
    date: str
    quality: float | None = None
    aht: int | None = None
    srr: float | None = None
    voc: float | None = None


class UploadRecord(CamelModel):
    filename: str
    file_type: str
    report_type: str
    status: str  # "completed" | "completed_with_errors" | "failed"
    records_processed: int = 0
    errors: str | None = None


class ProcessResult(CamelModel):
    success: bool
    records_processed: int
    errors: list[str] = []
    message: str = ""
