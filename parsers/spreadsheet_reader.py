"""
Upload decoding for price list files.

Spreadsheets are converted to comma-delimited text so they go through the
same line parser as CSV uploads. Text files are decoded trying the
encodings supplier exports usually come in.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import structlog

import pandas as pd

from exceptions import SpreadsheetReadError

logger = structlog.get_logger(__name__)

SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm"}

# Supplier exports are often Windows-encoded
TEXT_ENCODINGS = ["utf-8-sig", "cp1252", "latin-1"]


def is_spreadsheet(filename: Optional[str]) -> bool:
    if not filename:
        return False
    return Path(filename).suffix.lower() in SPREADSHEET_EXTENSIONS


def decode_text(content: bytes) -> str:
    """Decode an uploaded text file."""
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 decodes any byte sequence
    return content.decode("latin-1", errors="replace")


def spreadsheet_to_text(
    file: Union[bytes, BytesIO],
    sheet_name: Union[int, str] = 0,
) -> str:
    """
    Convert one sheet to comma-delimited text.

    Cells are read as strings; fully empty rows are dropped.

    Raises:
        SpreadsheetReadError: If the workbook cannot be read
    """
    if isinstance(file, bytes):
        file = BytesIO(file)

    try:
        df = pd.read_excel(
            file,
            sheet_name=sheet_name,
            engine="openpyxl",
            dtype=str,
            header=None,
        )
    except Exception as e:
        logger.error("spreadsheet_read_failed", error=str(e))
        raise SpreadsheetReadError(
            message="Failed to read spreadsheet",
            details={"original_error": str(e)}
        )

    df = df.dropna(how="all").fillna("")
    text = df.to_csv(index=False, header=False, lineterminator="\n")

    logger.debug("spreadsheet_converted", rows=len(df), columns=len(df.columns))
    return text


def read_upload(filename: Optional[str], content: bytes) -> str:
    """Turn an uploaded file into text for the line parser."""
    if is_spreadsheet(filename):
        return spreadsheet_to_text(content)
    return decode_text(content)
