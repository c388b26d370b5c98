"""
Spreadsheet parsing for bulk uploads.

CSV files are read with the csv module; Excel workbooks with pandas (first
sheet only). Either way the result is a list of column-name to cell-value
maps with blank cells as None and fully blank rows dropped.
"""

import csv
import io
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any, Dict, List

import pandas as pd

from idsyncro.core.errors import ValidationError
from idsyncro.core.logging import get_logger

logger = get_logger(__name__)

CSV_EXTENSIONS = {".csv"}
# pandas engine per workbook format; legacy .xls needs xlrd
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


def _clean_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if pd.isna(value):
        return None
    # Excel dates arrive as datetime/Timestamp; date-only cells read as midnight
    if isinstance(value, datetime):
        if value.time() == time.min:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    # numpy scalars -> plain Python
    if hasattr(value, "item"):
        return value.item()
    return value


def _clean_row(row: Dict[Any, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key, value in row.items():
        if key is None:
            continue
        name = str(key).strip()
        if not name or name.startswith("Unnamed:"):
            continue
        cleaned[name] = _clean_cell(value)
    return cleaned


def parse_csv(content: bytes) -> List[Dict[str, Any]]:
    """Parse CSV bytes (UTF-8, optional BOM) into row maps."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError(f"CSV file must be UTF-8 encoded: {e}")

    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for row in reader:
        cleaned = _clean_row(row)
        if any(value is not None for value in cleaned.values()):
            rows.append(cleaned)
    return rows


def parse_excel(content: bytes, engine: str = "openpyxl") -> List[Dict[str, Any]]:
    """Parse the first sheet of an Excel workbook into row maps."""
    try:
        frame = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object, engine=engine)
    except Exception as e:
        raise ValidationError(f"Could not read Excel file: {e}")

    rows = []
    for record in frame.to_dict(orient="records"):
        cleaned = _clean_row(record)
        if any(value is not None for value in cleaned.values()):
            rows.append(cleaned)
    return rows


def parse_spreadsheet(filename: str, content: bytes) -> List[Dict[str, Any]]:
    """
    Parse an uploaded spreadsheet by file extension.

    Raises:
        ValidationError: unsupported extension or unreadable file
    """
    suffix = PurePath(filename or "").suffix.lower()
    if suffix in CSV_EXTENSIONS:
        rows = parse_csv(content)
    elif suffix in EXCEL_ENGINES:
        rows = parse_excel(content, engine=EXCEL_ENGINES[suffix])
    else:
        raise ValidationError("File must be a CSV or Excel spreadsheet (.csv, .xlsx, .xls)")

    logger.info("Parsed %d row(s) from %s", len(rows), filename)
    return rows
