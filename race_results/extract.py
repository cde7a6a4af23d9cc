"""
Text / table extraction

Turns a results document into pages of positioned tokens. PDFs go through
pdfplumber word extraction; spreadsheets and CSV files are read with pandas
and every non-empty cell becomes a token carrying its column index.
"""

import io
import logging
import math
from datetime import datetime, time, timedelta
from itertools import groupby
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
import pdfplumber

from .config import settings
from .errors import DocumentUnreadable, InvalidArgument, NotFound
from .models import RawToken
from .normalize import format_time

logger = logging.getLogger(__name__)

PDF_SUFFIXES = {'.pdf'}
SPREADSHEET_SUFFIXES = {'.xlsx', '.xlsm', '.xls'}
CSV_SUFFIXES = {'.csv'}
CSV_DELIMITERS = (';', '\t', ',', '|')

Page = List[RawToken]


def check_path(path: Union[str, Path, None]) -> Path:
    """Validate a source path: blank is a caller error, missing is NotFound."""
    if path is None or not str(path).strip():
        raise InvalidArgument("File path cannot be empty")
    path = Path(path)
    if not path.is_file():
        raise NotFound(f"Race results file not found: {path}")
    return path


def extract(path: Union[str, Path]) -> List[Page]:
    """Extract positioned tokens, one list per page, ordered by row then x."""
    path = check_path(path)
    suffix = path.suffix.lower()

    if suffix in PDF_SUFFIXES:
        pages = _extract_pdf(path)
    elif suffix in SPREADSHEET_SUFFIXES:
        pages = _extract_spreadsheet(path)
    elif suffix in CSV_SUFFIXES:
        pages = _extract_csv(path)
    else:
        raise DocumentUnreadable(f"Unsupported document type '{suffix}': {path.name}")

    logger.debug("Extracted %d page(s), %d token(s) from %s",
                 len(pages), sum(len(p) for p in pages), path.name)
    return pages


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

def _extract_pdf(path: Path) -> List[Page]:
    pages = []
    try:
        with pdfplumber.open(path) as pdf:
            for page_no, page in enumerate(pdf.pages, start=1):
                words = page.extract_words(keep_blank_chars=False, use_text_flow=False)
                pages.append(tokens_from_words(words, page_no))
    except Exception as exc:
        raise DocumentUnreadable(f"Cannot read PDF {path.name}: {exc}") from exc
    return pages


def tokens_from_words(words: List[dict], page_no: int) -> Page:
    """Group pdfplumber words into rows by their top coordinate."""
    words = sorted(words, key=lambda w: (w['top'], w['x0']))
    tokens = []
    current_top = None
    row = -1
    for word in words:
        if current_top is None or abs(word['top'] - current_top) > settings.row_tolerance:
            row += 1
            current_top = word['top']
        tokens.append(RawToken(text=word['text'], x0=float(word['x0']), x1=float(word['x1']),
                               top=float(word['top']), page=page_no, row=row))
    tokens.sort(key=lambda t: (t.row, t.x0))
    return tokens


# ---------------------------------------------------------------------------
# Spreadsheets
# ---------------------------------------------------------------------------

def _extract_spreadsheet(path: Path) -> List[Page]:
    try:
        sheets = pd.read_excel(path, sheet_name=None, header=None, dtype=object)
    except Exception as exc:
        raise DocumentUnreadable(f"Cannot read spreadsheet {path.name}: {exc}") from exc
    return [tokens_from_frame(df, page_no) for page_no, df in enumerate(sheets.values(), start=1)]


def _extract_csv(path: Path) -> List[Page]:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise DocumentUnreadable(f"Cannot read CSV {path.name}: {exc}") from exc
    try:
        text = raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        text = raw.decode('latin-1')

    sep = guess_delimiter(text)
    # title lines before the table have fewer fields than the table itself
    width = max((line.count(sep) + 1 for line in text.splitlines() if line.strip()), default=0)
    if not width:
        raise DocumentUnreadable(f"Empty CSV file: {path.name}")

    try:
        df = pd.read_csv(io.StringIO(text), sep=sep, header=None, names=range(width), dtype=str,
                         keep_default_na=False, skip_blank_lines=True)
    except Exception as exc:
        raise DocumentUnreadable(f"Cannot read CSV {path.name}: {exc}") from exc
    return [tokens_from_frame(df, 1)]


def guess_delimiter(text: str) -> str:
    """The candidate found on the most lines, then the most often; ties go to ';'.

    Speeds written "15,38" make ',' common, so ',' only wins when it
    really separates more fields.
    """
    lines = [line for line in text.splitlines()[:50] if line.strip()]
    return max(CSV_DELIMITERS, key=lambda sep: (sum(1 for line in lines if sep in line),
                                                sum(line.count(sep) for line in lines)))


def tokens_from_frame(df: pd.DataFrame, page_no: int) -> Page:
    """One token per non-empty cell; x0 is the column index."""
    tokens = []
    for row_no, values in enumerate(df.itertuples(index=False, name=None)):
        for col_no, value in enumerate(values):
            text = cell_text(value)
            if text:
                tokens.append(RawToken(text=text, x0=float(col_no), x1=col_no + 0.9,
                                       top=float(row_no), page=page_no, row=row_no, column=col_no))
    return tokens


def cell_text(value) -> str:
    """Render a spreadsheet cell the way it reads on screen."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if value is pd.NaT:
        return ""
    if isinstance(value, timedelta):
        return format_time(value)
    if isinstance(value, time):
        return value.strftime('%H:%M:%S')
    if isinstance(value, datetime):
        # Durations typed into Excel come back anchored on the 1899/1900 epoch
        if value.year < 1901:
            return value.strftime('%H:%M:%S')
        return value.strftime('%Y-%m-%d')
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

def group_rows(page: Page) -> List[List[RawToken]]:
    """Split a page into rows, each ordered left to right."""
    rows = []
    for _, row_tokens in groupby(sorted(page, key=lambda t: (t.row, t.x0)), key=lambda t: t.row):
        rows.append(list(row_tokens))
    return rows


def row_text(tokens: List[RawToken], gap: Optional[float] = None) -> str:
    """Flatten a row; a wide horizontal gap or a cell boundary becomes two spaces."""
    gap = settings.column_gap if gap is None else gap
    parts = []
    previous = None
    for token in tokens:
        if previous is not None:
            wide = token.column is not None or token.x0 - previous.x1 > gap
            parts.append('  ' if wide else ' ')
        parts.append(token.text)
        previous = token
    return ''.join(parts)


def page_lines(page: Page) -> List[str]:
    return [row_text(row) for row in group_rows(page)]


def document_text(pages: List[Page]) -> str:
    return '\n'.join(line for page in pages for line in page_lines(page))
