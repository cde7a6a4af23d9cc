"""
Race result repository

``get_race_results(path, members)`` is the single entry point the domain
layer uses: extract, detect the layout, parse, clean up and serialize to
canonical records keyed 0 (header), 1 (reference line, when present) and
2.. (participants in position order).
"""

import logging
import re
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .config import settings
from .detect import detect
from .extract import Page, check_path, extract, page_lines
from .filename import resolve_metadata
from .models import Member, ParsedRow
from .normalize import parse_time, remove_diacritics
from .records import field_count_consistency, header_record, reference_record, row_to_record

logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(
    r'(?:\bTREF\b|temps\s+de\s+reference)\D*?(\d{1,2}:\d{2}(?::\d{2})?)', re.IGNORECASE)


def find_reference_time(pages: Sequence[Page]) -> Optional[timedelta]:
    """A "TREF" / "Temps de référence" line anywhere in the document."""
    for page in pages:
        for line in page_lines(page):
            m = _REFERENCE_RE.search(remove_diacritics(line))
            if m:
                reference = parse_time(m.group(1))
                if reference is not None:
                    return reference
    return None


def deduplicate(rows: List[ParsedRow]) -> List[ParsedRow]:
    """Keep the most complete row for each position."""
    best: Dict[int, ParsedRow] = {}
    for row in rows:
        kept = best.get(row.position)
        if kept is None or row.completeness() > kept.completeness():
            best[row.position] = row
    if len(best) < len(rows):
        logger.debug("Dropped %d duplicate row(s)", len(rows) - len(best))
    return sorted(best.values(), key=lambda r: r.position)


def filter_non_representative(rows: List[ParsedRow]) -> List[ParsedRow]:
    """Drop rows whose race time is too short to be a real result."""
    minimum = timedelta(minutes=settings.min_race_minutes)
    kept = [r for r in rows if r.race_time is None or r.race_time >= minimum]
    if len(kept) < len(rows):
        logger.debug("Dropped %d row(s) with implausible race times", len(rows) - len(kept))
    return kept


def get_race_results(file_path: Union[str, Path], members: Sequence[Member] = ()) -> Dict[int, str]:
    """Parse a results document into canonical records."""
    path = check_path(file_path)
    metadata = resolve_metadata(path)
    pages = extract(path)

    parser = detect(pages, metadata, path.name)
    rows = parser.parse_pages(pages, list(members or ()))
    rows = filter_non_representative(deduplicate(rows))

    results = {0: header_record()}
    reference = find_reference_time(pages)
    if reference is not None:
        results[1] = reference_record(reference)

    records = [row_to_record(row) for row in rows]
    for key, record in enumerate(records, start=2):
        results[key] = record

    _check_quality(path, pages, records)
    logger.info("%s: %d participant record(s) via %s parser", path.name, len(records), parser.name)
    return results


def _check_quality(path: Path, pages: Sequence[Page], records: List[str]):
    consistency = field_count_consistency(records)
    if consistency < settings.field_count_consistency:
        logger.warning("%s: only %.0f%% of records share a field count",
                       path.name, consistency * 100)
    line_count = sum(len(page_lines(page)) for page in pages)
    if len(records) < 5 and line_count > 20:
        logger.warning("%s: %d record(s) from %d lines, layout may not be supported",
                       path.name, len(records), line_count)
