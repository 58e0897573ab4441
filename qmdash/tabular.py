"""Turn uploaded spreadsheets and CSV files into a ParsedTable."""

import csv
import io
import logging
from datetime import date, datetime, time, timedelta

import openpyxl
import xlrd

from qmdash.errors import EmptyFileError, ParseError, UnsupportedTypeError
from qmdash.models import Cell, ParsedTable

log = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = {"xlsx", "xls"}
DELIMITED_EXTENSIONS = {"csv"}
SUPPORTED_EXTENSIONS = SPREADSHEET_EXTENSIONS | DELIMITED_EXTENSIONS

_CANDIDATE_DELIMITERS = ",;\t|"
_SNIFF_SAMPLE_CHARS = 8192


def file_extension(filename: str) -> str:
    """Lower-cased text after the last dot, or "" when there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def read_table(content: bytes, filename: str) -> ParsedTable:
    """Parse an uploaded file into headers + data rows.

    Raises UnsupportedTypeError before touching the bytes when the
    extension is not recognized, EmptyFileError when no non-blank row
    remains, and ParseError for anything the decoders reject.
    """
    ext = file_extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedTypeError(ext)

    if ext == "xlsx":
        raw_rows = _read_xlsx(content)
    elif ext == "xls":
        raw_rows = _read_xls(content)
    else:
        raw_rows = _read_delimited(content)

    rows = [r for r in raw_rows if not _is_blank_row(r)]
    if not rows:
        raise EmptyFileError(f"{filename} contains no data")

    headers = [_header_text(h) for h in rows[0]]
    data = rows[1:]
    log.info("Parsed %s: %d columns, %d rows", filename, len(headers), len(data))
    return ParsedTable(headers=headers, rows=data, row_count=len(data))


def _header_text(value: Cell) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _is_blank_row(row: list[Cell]) -> bool:
    return all(c is None or str(c).strip() == "" for c in row)


# ── Spreadsheets ──


def _excel_value(value) -> Cell:
    """Map a workbook cell value onto a JSON-friendly cell."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        # Duration cells ([h]:mm:ss), common in AHT exports.
        seconds = value.total_seconds()
        return int(seconds) if seconds.is_integer() else seconds
    return str(value)


def _read_xlsx(content: bytes) -> list[list[Cell]]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        try:
            ws = wb.worksheets[0]
            return [[_excel_value(v) for v in row] for row in ws.iter_rows(values_only=True)]
        finally:
            wb.close()
    except Exception as e:
        log.warning("xlsx decode failed: %s", e)
        raise ParseError(str(e)) from e


def _xls_value(cell, datemode: int) -> Cell:
    ctype = cell.ctype
    if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if ctype == xlrd.XL_CELL_NUMBER:
        value = float(cell.value)
        return int(value) if value.is_integer() else value
    if ctype == xlrd.XL_CELL_DATE:
        dt = xlrd.xldate_as_datetime(cell.value, datemode)
        # Serials below one day carry a time of day only.
        return _excel_value(dt.time() if cell.value < 1 else dt)
    if ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if ctype == xlrd.XL_CELL_ERROR:
        return xlrd.error_text_from_code.get(cell.value, "#ERR")
    return cell.value


def _read_xls(content: bytes) -> list[list[Cell]]:
    try:
        book = xlrd.open_workbook(file_contents=content)
        sheet = book.sheet_by_index(0)
        return [
            [_xls_value(c, book.datemode) for c in sheet.row(i)]
            for i in range(sheet.nrows)
        ]
    except Exception as e:
        log.warning("xls decode failed: %s", e)
        raise ParseError(str(e)) from e


# ── Delimited text ──


def _sniff_delimiter(sample: str) -> str:
    """Detected delimiter; quoting always uses the default double quote."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=_CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        # Single-column files give the sniffer nothing to go on.
        return ","


def _read_delimited(content: bytes) -> list[list[Cell]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(str(e)) from e

    delimiter = _sniff_delimiter(text[:_SNIFF_SAMPLE_CHARS])
    try:
        return [list(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as e:
        raise ParseError(str(e)) from e
