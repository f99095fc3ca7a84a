"""
Expiry alerts derived from spreadsheet content.

ISO registers keep their expiry date in the header area of the first sheet,
either as a real date cell, a raw Excel serial, or text such as
``Scadenza: 15/01/2025``. A red circle or warning sign in the same cells
overrides whatever the date says.
"""

import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from openpyxl import load_workbook
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

ALERT_NONE = "none"
ALERT_WARNING = "warning"
ALERT_EXPIRED = "expired"

SPREADSHEET_TYPES = {"xlsx", "xlsm", "xltx", "xltm"}
WARNING_THRESHOLD_DAYS = 30

HEADER_ROWS = 2
HEADER_COLUMNS = 3

EXPIRED_GLYPH = "\U0001F534"  # red circle
WARNING_GLYPH = "⚠"  # warning sign, with or without the emoji selector

DATE_IN_TEXT = re.compile(r"(?<!\d)(\d{2})[/-](\d{2})[/-](\d{4})(?!\d)")

# 1970-01-01 .. 9999-12-31 as Excel serials; smaller numbers are counters, not dates.
MIN_DATE_SERIAL = 25569
MAX_DATE_SERIAL = 2958465


@dataclass(frozen=True)
class AlertResult:
    alert_status: str = ALERT_NONE
    expiry_date: Optional[date] = None


def status_for_expiry(expiry_date: date, today: date, warning_days: int = WARNING_THRESHOLD_DAYS) -> str:
    if expiry_date < today:
        return ALERT_EXPIRED
    if (expiry_date - today).days <= warning_days:
        return ALERT_WARNING
    return ALERT_NONE


def _date_from_cell(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _date_from_serial(value: Any) -> Optional[date]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not MIN_DATE_SERIAL <= value <= MAX_DATE_SERIAL:
        return None
    converted = from_excel(value)
    return converted.date() if isinstance(converted, datetime) else None


def _date_from_text(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    for match in DATE_IN_TEXT.finditer(value):
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def find_expiry_date(cells: Iterable[Any]) -> Optional[date]:
    """First date found, trying date cells, then serials, then text."""
    values = list(cells)
    for extractor in (_date_from_cell, _date_from_serial, _date_from_text):
        for value in values:
            found = extractor(value)
            if found is not None:
                return found
    return None


def find_glyph_status(cells: Iterable[Any]) -> Optional[str]:
    text = " ".join(value for value in cells if isinstance(value, str))
    if EXPIRED_GLYPH in text:
        return ALERT_EXPIRED
    if WARNING_GLYPH in text:
        return ALERT_WARNING
    return None


def classify_cells(cells: Iterable[Any], today: Optional[date] = None) -> AlertResult:
    values = list(cells)
    today = today or date.today()

    expiry_date = find_expiry_date(values)
    status = status_for_expiry(expiry_date, today) if expiry_date else ALERT_NONE

    override = find_glyph_status(values)
    if override:
        status = override

    return AlertResult(alert_status=status, expiry_date=expiry_date)


def read_header_cells(file_path: str) -> List[Any]:
    workbook = load_workbook(file_path, read_only=True, data_only=True)
    try:
        sheet = workbook.active
        if sheet is None:
            return []
        cells = []
        for row in sheet.iter_rows(min_row=1, max_row=HEADER_ROWS, max_col=HEADER_COLUMNS, values_only=True):
            cells.extend(value for value in row if value is not None)
        return cells
    finally:
        workbook.close()


def classify_alert(file_path: str, file_type: str, today: Optional[date] = None) -> AlertResult:
    """Alert status for a downloaded file. Non-spreadsheets never alert."""
    if (file_type or "").lower() not in SPREADSHEET_TYPES:
        return AlertResult()

    try:
        cells = read_header_cells(file_path)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        logger.warning(f"Could not read spreadsheet {file_path}: {e}")
        return AlertResult()

    result = classify_cells(cells, today=today)
    if result.alert_status != ALERT_NONE:
        logger.info(f"Alert {result.alert_status} for {file_path} (expiry {result.expiry_date})")
    return result
