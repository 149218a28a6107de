"""CSV and XLSX encoders for sheet files.

An empty sheet encodes to an empty CSV string and to a workbook holding only
the header row.
"""

import csv
import io
from typing import List

from openpyxl import Workbook

from .modes import get_mode
from .sheets import SheetFile

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _table(sheet_file: SheetFile) -> List[List[object]]:
    mode = get_mode(sheet_file.mode)
    rows: List[List[object]] = [list(mode.headers())]
    for row in sheet_file.sheet:
        rows.append(list(mode.record(row).values()))
    return rows


def to_csv(sheet_file: SheetFile) -> str:
    if not sheet_file.sheet:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    table = _table(sheet_file)
    writer.writerow(table[0])
    for values in table[1:]:
        writer.writerow(["" if v is None else v for v in values])
    # No trailing line break after the last row
    return buffer.getvalue()[: -len("\r\n")]


def to_xlsx(sheet_file: SheetFile) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Sheet1"
    worksheet.sheet_view.rightToLeft = True

    for values in _table(sheet_file):
        worksheet.append(values)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def download_name(filename: str, suffix: str) -> str:
    """``script.pdf`` -> ``script.xlsx`` for ``suffix=".xlsx"``."""
    stem = filename[:-4] if filename.lower().endswith(".pdf") else filename
    return f"{stem or 'sheet'}{suffix}"
