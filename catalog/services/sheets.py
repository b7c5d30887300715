from __future__ import annotations

import csv
import io
import logging
import re
import zipfile
from typing import Any, BinaryIO, Dict, List, Optional, Union

import requests
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from catalog.config import settings
from catalog.errors import InvalidSourceError

logger = logging.getLogger(__name__)

RawRow = Dict[str, Any]

_SHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")
_PUBLISHED_ID_RE = re.compile(r"/spreadsheets/d/e/([a-zA-Z0-9_-]+)")
_GID_RE = re.compile(r"[#&?]gid=(\d+)")


def _is_blank_row(row: RawRow) -> bool:
    return all(v is None or str(v).strip() == "" for v in row.values())


def read_xlsx_rows(source: Union[str, BinaryIO]) -> List[RawRow]:
    """First worksheet as a list of ``{header: value}``; empty cells become ``''``."""
    try:
        wb = load_workbook(source, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise InvalidSourceError(f"Failed to read Excel file: {e}") from e

    try:
        ws = wb.worksheets[0]
        headers: List[Optional[str]] = []
        rows: List[RawRow] = []
        for i, values in enumerate(ws.iter_rows(values_only=True)):
            if i == 0:
                headers = [str(h).strip() if h is not None else None for h in values]
                continue
            row: RawRow = {}
            for j, cell in enumerate(values):
                key = headers[j] if j < len(headers) else None
                if not key:
                    continue
                row[key] = "" if cell is None else cell
            if row and not _is_blank_row(row):
                rows.append(row)
        return rows
    finally:
        wb.close()


def read_csv_rows(text: str) -> List[RawRow]:
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    rows: List[RawRow] = []
    for raw in reader:
        row = {k.strip(): (v if v is not None else "") for k, v in raw.items() if k}
        if row and not _is_blank_row(row):
            rows.append(row)
    return rows


def to_csv_export_url(url: str) -> str:
    """
    Ссылка "поделиться" -> CSV export.

    https://docs.google.com/spreadsheets/d/<id>/edit#gid=42
      -> https://docs.google.com/spreadsheets/d/<id>/export?format=csv&gid=42
    """
    url = (url or "").strip()
    if "/export?format=csv" in url or "output=csv" in url:
        return url

    gid_match = _GID_RE.search(url)
    gid = gid_match.group(1) if gid_match else "0"

    published = _PUBLISHED_ID_RE.search(url)
    if published:
        return (
            f"https://docs.google.com/spreadsheets/d/e/{published.group(1)}"
            f"/pub?gid={gid}&single=true&output=csv"
        )

    m = _SHEET_ID_RE.search(url)
    if m:
        return f"https://docs.google.com/spreadsheets/d/{m.group(1)}/export?format=csv&gid={gid}"

    raise InvalidSourceError(
        "Invalid Google Sheets URL. Please provide a valid Google Sheets URL or CSV export URL."
    )


def fetch_sheet_rows(
    url: str,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> List[RawRow]:
    csv_url = to_csv_export_url(url)
    http = session or requests
    logger.info("Fetching sheet CSV: %s", csv_url)
    try:
        resp = http.get(csv_url, timeout=timeout or settings.sheets_timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise InvalidSourceError(f"Failed to fetch Google Sheets: {e}") from e

    # закрытая таблица отдаёт страницу логина, а не CSV
    if "text/html" in (resp.headers.get("Content-Type") or ""):
        raise InvalidSourceError("Google Sheets is not published or not shared for viewing.")

    text = resp.content.decode("utf-8-sig", errors="replace")
    if not text.strip():
        raise InvalidSourceError("Google Sheets is empty or could not be accessed.")
    return read_csv_rows(text)


def require_rows(rows: List[RawRow], what: str = "Sheet") -> List[RawRow]:
    if not rows:
        raise InvalidSourceError(f"{what} has no data rows.")
    return rows
