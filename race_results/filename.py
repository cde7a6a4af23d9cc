"""Race identity and metadata recovered from file names."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .config import settings
from .models import RaceDistance, RaceMetadata

logger = logging.getLogger(__name__)

_COMPACT_DATE_RE = re.compile(r'^(\d{8})(.*)$')
_CLASSEMENT_RE = re.compile(r'^Classement-(\d+(?:[.,]\d+)?)km-(.+)$', re.IGNORECASE)


def _parse_date(text: str, fmt: str):
    try:
        return datetime.strptime(text, fmt).date()
    except ValueError:
        return None


def _parse_distance(text: str) -> Optional[float]:
    m = re.search(r'\d+(?:[.,]\d+)?', text or '')
    if not m:
        return None
    return float(m.group(0).replace(',', '.'))


def resolve_metadata(path: Union[str, Path]) -> RaceMetadata:
    """Read date, name, location, category and distance from a file name.

    Conventions, tried in order:
      2026-01-25_Jogging de la CrossCup_Hannut_CJPL_10.20.pdf
      20250421SeraingGC.pdf
      Classement-10km-Jogging-de-lAn-Neuf.pdf
    Anything else yields just the race name.
    """
    stem = Path(path).stem
    metadata = RaceMetadata()

    parts = stem.split('_')
    if len(parts) >= 2:
        metadata.race_date = _parse_date(parts[0], '%Y-%m-%d')
        metadata.race_name = parts[1] or None
        metadata.location = parts[2] if len(parts) > 2 else None
        metadata.category = parts[3] if len(parts) > 3 else None
        if len(parts) > 4:
            metadata.distance_km = _parse_distance(parts[-1])
        return metadata

    m = _COMPACT_DATE_RE.match(stem)
    if m:
        race_date = _parse_date(m.group(1), '%Y%m%d')
        if race_date is not None:
            metadata.race_date = race_date
            remaining = m.group(2)
            if remaining.upper().endswith('GC'):
                metadata.category = 'GC'
                remaining = remaining[:-2]
            metadata.race_name = remaining or None
            return metadata

    m = _CLASSEMENT_RE.match(stem)
    if m:
        metadata.distance_km = _parse_distance(m.group(1))
        metadata.race_name = m.group(2)
        return metadata

    metadata.race_name = stem
    return metadata


def race_distance_from_path(path: Union[str, Path]) -> RaceDistance:
    """Build the race identity used as the classification key.

    "3.21.Seraing.pdf" is race 3, 21 km, "Seraing". Other names fall back
    to the metadata conventions and the default distance.
    """
    stem = Path(path).stem
    parts = stem.split('.')
    if len(parts) >= 3 and parts[0].isdigit():
        distance = int(parts[1]) if parts[1].isdigit() else settings.default_distance_km
        return RaceDistance(int(parts[0]), '.'.join(parts[2:]), distance)

    metadata = resolve_metadata(path)
    distance = settings.default_distance_km
    if metadata.distance_km:
        distance = max(1, int(round(metadata.distance_km)))
    name = metadata.race_name or stem
    logger.debug("Race identity for %s: %s, %d km", Path(path).name, name, distance)
    return RaceDistance(0, name, distance)
