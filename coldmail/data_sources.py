# coldmail/data_sources.py

import csv
import io
import logging
import re
import ssl
import urllib.parse
import urllib.request
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import certifi
from openpyxl import load_workbook

from coldmail.errors import TabularInputError
from coldmail.models import ContactRecord

logger = logging.getLogger(__name__)

GS_HOST = "docs.google.com"
CSV_SUFFIXES = (".csv",)

# Positional columns: Name | Email Id | Role
NAME_COL, EMAIL_COL, ROLE_COL = 0, 1, 2


# -------------------------------------------------
# Public API
# -------------------------------------------------

def extract_contacts(source: Any) -> List[ContactRecord]:
    """
    Read contacts from a spreadsheet.

    `source` may be a path to an .xlsx or .csv file, the raw bytes or a
    binary file object of an .xlsx workbook, or a Google Sheets sharing URL.

    The first row is a header and is skipped. Rows without an email or a
    role are left out; they are not errors. A row that cannot be read is
    logged and skipped.

    Raises:
        TabularInputError: the input cannot be opened as a table at all.
    """
    rows, _headers = _load_rows(source)

    contacts: List[ContactRecord] = []
    for row_number, row in enumerate(rows, start=2):
        try:
            contact = _contact_from_row(row, row_number)
        except Exception as e:
            logger.warning(f"Error processing row {row_number}: {e}")
            continue
        if contact is not None:
            contacts.append(contact)
            logger.debug(f"Extracted contact: {contact}")

    logger.info(f"Successfully read {len(contacts)} contact(s)")
    return contacts


def load_xlsx(source: Any) -> Tuple[List[Sequence[Any]], List[str]]:
    """
    Load rows from the first worksheet of an .xlsx workbook.

    Returns:
        rows: data rows (header excluded), raw cell values
        headers: header row as text
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    try:
        wb = load_workbook(source, read_only=True, data_only=True)
    except Exception as e:
        raise TabularInputError(f"Not a valid .xlsx workbook: {e}") from e

    try:
        if not wb.worksheets:
            raise TabularInputError("Workbook has no worksheets")
        all_rows = list(wb.worksheets[0].iter_rows(values_only=True))
    except TabularInputError:
        raise
    except Exception as e:
        raise TabularInputError(f"Unable to read worksheet: {e}") from e
    finally:
        wb.close()

    return _split_header(all_rows)


def load_csv(path: str) -> Tuple[List[Sequence[Any]], List[str]]:
    """
    Load rows from a local CSV file.

    Returns:
        rows: data rows (header excluded)
        headers: header row as text
    """
    try:
        with open(path, mode="r", encoding="utf-8-sig", newline="") as f:
            return _parse_csv_text(f.read())
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise TabularInputError(f"Unable to read CSV file {path}: {e}") from e


def load_google_sheet(sheet_url: str, timeout: int = 20) -> Tuple[List[Sequence[Any]], List[str]]:
    """
    Load rows from a public Google Sheets URL.

    Accepts standard sharing links with optional gid.
    """
    export_url = _gsheet_to_export_csv_url(sheet_url)
    if not export_url:
        raise TabularInputError("Invalid Google Sheets URL")

    try:
        csv_text = _fetch_gsheet_csv_text(export_url, timeout=timeout)
        return _parse_csv_text(csv_text)
    except TabularInputError:
        raise
    except Exception as e:
        raise TabularInputError(f"Unable to load Google Sheet: {e}") from e


# -------------------------------------------------
# Internal helpers
# -------------------------------------------------

def _load_rows(source: Any) -> Tuple[List[Sequence[Any]], List[str]]:
    if source is None:
        raise TabularInputError("No contacts file given")

    if isinstance(source, (bytes, bytearray)) or hasattr(source, "read"):
        return load_xlsx(source)

    text = str(source)
    if _gsheet_to_export_csv_url(text):
        return load_google_sheet(text)

    path = Path(text)
    if not path.is_file():
        raise TabularInputError(f"Contacts file not found: {path}")
    if path.suffix.lower() in CSV_SUFFIXES:
        return load_csv(str(path))
    return load_xlsx(str(path))


def _split_header(all_rows: List[Sequence[Any]]) -> Tuple[List[Sequence[Any]], List[str]]:
    if not all_rows:
        return [], []
    headers = [cell_text(h) for h in all_rows[0]]
    return all_rows[1:], headers


def cell_text(value: Any) -> str:
    """
    Text of a single cell.

    Numbers and booleans are stringified (whole numbers without ".0");
    dates become ISO text; any other type reads as "".
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return ""


def _field(row: Sequence[Any], index: int) -> str:
    if index >= len(row):
        return ""
    return cell_text(row[index])


def _contact_from_row(row: Optional[Sequence[Any]], row_number: int) -> Optional[ContactRecord]:
    if not row:
        return None

    name = _field(row, NAME_COL)
    email = _field(row, EMAIL_COL)
    role = _field(row, ROLE_COL)

    if not email or not role:
        if any(cell_text(v) for v in row):
            logger.warning(f"Row {row_number}: missing required fields (Email: {email!r}, Role: {role!r})")
        return None

    return ContactRecord(name=name, email_address=email, role=role)


def _parse_csv_text(csv_text: str) -> Tuple[List[Sequence[Any]], List[str]]:
    reader = csv.reader(io.StringIO(csv_text))
    return _split_header([row for row in reader])


def _gsheet_to_export_csv_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
    except Exception:
        return ""

    if GS_HOST not in parsed.netloc:
        return ""

    m = re.search(r"/spreadsheets/d/([a-zA-Z0-9\-_]+)", parsed.path)
    if not m:
        return ""

    ssid = m.group(1)

    gid = "0"
    if parsed.fragment:
        mg = re.search(r"gid=(\d+)", parsed.fragment)
        if mg:
            gid = mg.group(1)

    q = urllib.parse.urlencode({"format": "csv", "gid": gid})
    return f"https://{GS_HOST}/spreadsheets/d/{ssid}/export?{q}"


def _fetch_gsheet_csv_text(export_csv_url: str, timeout: int = 20) -> str:
    req = urllib.request.Request(
        export_csv_url,
        headers={"User-Agent": "Mozilla/5.0 (compatible; coldmail)"},
        method="GET",
    )

    context = ssl.create_default_context(cafile=certifi.where())

    with urllib.request.urlopen(req, timeout=timeout, context=context) as resp:
        if resp.status != 200:
            raise TabularInputError(f"HTTP {resp.status}")

        data = resp.read()

        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError:
            return data.decode("utf-8", errors="replace")
