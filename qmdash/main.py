import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from qmdash import llm
from qmdash.classifier import classify_report, degraded_analysis
from qmdash.config import settings
from qmdash.db import PostgresStore
from qmdash.errors import ClassificationError, FileTooLargeError, UnsupportedTypeError, UploadError
from qmdash.ingest import PROCESSABLE_REPORT_TYPES, MissingColumnError, process_upload
from qmdash.models import ErrorResponse, ParsedTable, ProcessResult, UploadAnalysisResponse, UploadRecord
from qmdash.store import KpiStore, MemoryStore, get_store, set_store
from qmdash.tabular import SUPPORTED_EXTENSIONS, file_extension, read_table

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

_ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@asynccontextmanager
async def lifespan(app: FastAPI):
    pg_store: PostgresStore | None = None
    if settings.db.enabled:
        pg_store = PostgresStore()
        try:
            await pg_store.open()
            set_store(pg_store)
        except Exception as exc:
            log.warning(
                "Failed to connect to the database (%s). Falling back to the in-memory store; "
                "processed uploads will not be persisted.", exc,
            )
            await pg_store.close()
            pg_store = None
            set_store(MemoryStore())
    else:
        set_store(MemoryStore())

    yield

    # Shutdown
    if pg_store is not None:
        await pg_store.close()


app = FastAPI(title="qmdash", version="0.1.0", lifespan=lifespan)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# Upload routes answer malformed forms with the same {error} body as other 400s.
_UPLOAD_VALIDATION_MESSAGES = {
    "/upload/analyze": "No file provided",
    "/upload/process": "File and report type are required",
}


@app.exception_handler(RequestValidationError)
async def upload_validation_error(request: Request, exc: RequestValidationError):
    message = _UPLOAD_VALIDATION_MESSAGES.get(request.url.path)
    if message is None:
        return await request_validation_exception_handler(request, exc)
    log.info("Rejected malformed upload form on %s: %s", request.url.path, exc.errors())
    return _error(400, message)


async def _read_upload(file: UploadFile) -> ParsedTable:
    """Read the upload into memory and parse it. Raises UploadError subclasses."""
    filename = file.filename or ""
    ext = file_extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedTypeError(ext)
    content = await file.read()
    limit = settings.upload.max_bytes
    if len(content) > limit:
        raise FileTooLargeError(len(content), limit)
    return read_table(content, filename)


@app.get("/api/health")
async def health(store: KpiStore = Depends(get_store)):
    return {"status": "ok", "store": store.name}


@app.get("/api/settings")
async def get_settings():
    return {
        "current_model": llm.get_model(),
        "available_models": llm.AVAILABLE_MODELS,
    }


class SetModelRequest(BaseModel):
    model: str


@app.put("/api/settings/model")
async def set_model(req: SetModelRequest):
    llm.set_model(req.model)
    return {"current_model": llm.get_model()}


# ── Upload routes ──


@app.post("/upload/analyze", response_model=UploadAnalysisResponse, responses=_ERROR_RESPONSES)
async def upload_analyze(file: UploadFile | None = File(None)):
    """Parse an uploaded report and ask the model what it contains.

    A failed model call never fails the request: once the file parses,
    the response is 200 with a degraded analysis if necessary.
    """
    if file is None or not file.filename:
        return _error(400, "No file provided")
    file_name = file.filename

    try:
        try:
            table = await _read_upload(file)
        except UploadError as e:
            log.info("Rejected upload %s: %s", file_name, e)
            return _error(400, str(e))

        try:
            analysis = await classify_report(file_name, table.headers, table.rows)
        except ClassificationError as e:
            log.warning("AI analysis failed for %s, returning degraded result: %s", file_name, e)
            analysis = degraded_analysis(table.headers, table.rows)

        return UploadAnalysisResponse(file_name=file_name, analysis=analysis, row_count=table.row_count)
    except Exception:
        log.exception("Upload analysis failed for %s", file_name)
        return _error(500, "Failed to analyze file")


@app.post("/upload/process", response_model=ProcessResult, responses=_ERROR_RESPONSES)
async def upload_process(
    file: UploadFile | None = File(None),
    report_type: str | None = Form(None, alias="reportType"),
    date_start: str | None = Form(None, alias="dateStart"),
    store: KpiStore = Depends(get_store),
):
    """Write the KPI values of a confirmed report type into the store."""
    if file is None or not file.filename or not report_type:
        return _error(400, "File and report type are required")
    if report_type not in PROCESSABLE_REPORT_TYPES:
        return _error(
            400,
            f"Unsupported report type: {report_type}. "
            f"Expected one of: {', '.join(PROCESSABLE_REPORT_TYPES)}",
        )
    file_name = file.filename
    file_type = file_extension(file_name) or "unknown"

    try:
        table = await _read_upload(file)
    except UploadError as e:
        log.info("Rejected upload %s: %s", file_name, e)
        return _error(400, str(e))

    try:
        return await process_upload(
            table,
            filename=file_name,
            file_type=file_type,
            report_type=report_type,
            date_start=date_start or date.today().isoformat(),
            store=store,
        )
    except MissingColumnError as e:
        return _error(400, str(e))
    except Exception as e:
        log.exception("Upload processing failed for %s", file_name)
        try:
            await store.record_upload(
                UploadRecord(
                    filename=file_name,
                    file_type=file_type,
                    report_type=report_type,
                    status="failed",
                    errors=str(e),
                )
            )
        except Exception:
            log.warning("Failed to record failed upload %s", file_name, exc_info=True)
        return _error(500, "Failed to process file")
