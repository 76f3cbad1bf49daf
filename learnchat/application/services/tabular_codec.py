"""Spreadsheet import/export for user lists and MCQ reports.

Handles:
- Reading .xlsx (first sheet) and .csv user lists into loosely-typed rows
- Writing the user import template
- Writing the MCQ responses report
"""

import io
import zipfile
from typing import Any, BinaryIO, Dict, List, Optional, Union

import pandas as pd
import structlog
from openpyxl.utils.exceptions import InvalidFileException

logger = structlog.get_logger(__name__)

USER_IMPORT_COLUMNS = ["Name", "Email", "Phone", "Employee ID", "Location", "Is Admin"]

TEMPLATE_ROW = {
    "Name": "John Doe",
    "Email": "john.doe@company.com",
    "Phone": "+1234567890",
    "Employee ID": "EMP001",
    "Location": "New York",
    "Is Admin": "FALSE",
}

REPORT_COLUMNS = [
    "User Name",
    "Email",
    "Group",
    "Question",
    "Selected Answer",
    "Correct Answer",
    "Is Correct",
    "Submitted At",
]

Source = Union[str, bytes, BinaryIO]


class TabularCodecError(Exception):
    """The payload could not be read as a user list."""


def _clean_column_name(col: str) -> str:
    """Strip whitespace from column names."""
    return col.strip() if isinstance(col, str) else col


def _as_buffer(source: Source) -> Union[str, BinaryIO]:
    return io.BytesIO(source) if isinstance(source, bytes) else source


def _read_csv_with_encoding(source: Source) -> pd.DataFrame:
    """Try UTF-8 first, then the Windows encodings Excel exports tend to use."""
    raw = source if isinstance(source, bytes) else None
    if raw is None:
        if isinstance(source, str):
            with open(source, "rb") as f:
                raw = f.read()
        else:
            raw = source.read()

    for encoding in ("utf-8-sig", "latin-1", "cp1252"):
        for sep in (",", ";"):
            try:
                df = pd.read_csv(io.BytesIO(raw), encoding=encoding, sep=sep, dtype=str, keep_default_na=False, na_values=[""])
            except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError):
                continue
            if len(df.columns) > 1:
                return df
    raise TabularCodecError("Could not parse CSV file")


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Map header cells onto the expected column names, ignoring case."""
    expected = {c.upper(): c for c in USER_IMPORT_COLUMNS}
    rename_map = {}
    for df_col in df.columns:
        cleaned = _clean_column_name(str(df_col))
        if cleaned.upper() in expected:
            rename_map[df_col] = expected[cleaned.upper()]
    if not rename_map:
        raise TabularCodecError(
            f"None of the expected columns found ({', '.join(USER_IMPORT_COLUMNS)})"
        )
    return df.rename(columns=rename_map)


def _cell(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value)


def read_user_rows(source: Source, filename: str = "upload.xlsx") -> List[Dict[str, Optional[str]]]:
    """Decode an uploaded user list into one dict per data row, in file order.

    Every cell is read as text so employee ids like "007" keep their zeros;
    empty cells become None and blank lines are dropped.
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    try:
        if ext == "csv":
            df = _read_csv_with_encoding(source)
        elif ext in ("xlsx", "xlsm"):
            df = pd.read_excel(_as_buffer(source), engine="openpyxl", sheet_name=0, dtype=str)
        else:
            raise TabularCodecError(f"Unsupported file type: .{ext}")
    except TabularCodecError:
        raise
    except (ValueError, OSError, KeyError, zipfile.BadZipFile, InvalidFileException) as e:
        logger.warning("Unreadable spreadsheet", filename=filename, error=str(e))
        raise TabularCodecError(f"Could not read {filename}") from e

    df = df.dropna(how="all")
    df = _normalize_columns(df)

    rows = []
    for record in df.to_dict(orient="records"):
        rows.append({str(k): _cell(v) for k, v in record.items()})
    logger.info("Spreadsheet decoded", filename=filename, rows=len(rows))
    return rows


def _to_xlsx(rows: List[Dict[str, Any]], columns: List[str], sheet_name: str) -> bytes:
    buffer = io.BytesIO()
    df = pd.DataFrame(rows, columns=columns)
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def build_user_template() -> bytes:
    return _to_xlsx([TEMPLATE_ROW], USER_IMPORT_COLUMNS, "Users Template")


def build_responses_report(rows: List[Dict[str, str]]) -> bytes:
    return _to_xlsx(rows, REPORT_COLUMNS, "MCQ Responses")
