"""
Canonical record wire format

Every format parser ends in the same semicolon-delimited text records:

    Header;Position;Name;Time;Team;Speed;
    TREF;00:31:12;RACETYPE;RACE_TIME;
    TMEM;4;DUPONT;Jean;00:38:40;RACETYPE;RACE_TIME;RACETIME;00:38:40;POS;4;...;ISMEMBER;1;

The kind is TMEM when the row was matched against the roster, TWINNER
otherwise. After the four positional fields (position, last name, first
name, primary time) comes a tail of KEY;VALUE pairs.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from .errors import MalformedRecord
from .models import ParsedRow
from .normalize import format_pace, format_time, is_pace

KIND_HEADER = 'Header'
KIND_REFERENCE = 'TREF'
KIND_MEMBER = 'TMEM'
KIND_WINNER = 'TWINNER'

RACE_TIME = 'RACE_TIME'
TIME_PER_KM = 'TIME_PER_KM'

RECORD_KEYS = ('POS', 'RACETYPE', 'RACETIME', 'TIMEPERKM', 'TEAM', 'SPEED', 'SEX',
               'POSITIONSEX', 'CATEGORY', 'POSITIONCAT', 'ISMEMBER')

# position, last name, first name, primary time
PARTICIPANT_POSITIONAL = 4

HEADER_RECORD = 'Header;Position;Name;Time;Team;Speed;'
ZERO_TIME = '00:00:00'


def _field(value) -> str:
    """Keep delimiters out of free-text values."""
    return str(value).replace(';', ',').strip()


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def header_record() -> str:
    return HEADER_RECORD


def reference_record(reference: timedelta) -> str:
    race_type = TIME_PER_KM if is_pace(reference) else RACE_TIME
    return f"{KIND_REFERENCE};{format_time(reference)};RACETYPE;{race_type};"


def row_to_record(row: ParsedRow) -> str:
    """Serialize one participant row."""
    kind = KIND_MEMBER if row.is_member else KIND_WINNER
    pace_race = row.race_time is None and row.time_per_km is not None
    primary = row.race_time or row.time_per_km

    fields = [
        kind,
        str(row.position) if row.position is not None else '',
        _field(row.last_name or ''),
        _field(row.first_name or ''),
        format_time(primary) if primary else ZERO_TIME,
        'RACETYPE', TIME_PER_KM if pace_race else RACE_TIME,
    ]
    if row.race_time is not None:
        fields += ['RACETIME', format_time(row.race_time)]
    if row.time_per_km is not None:
        fields += ['TIMEPERKM', format_pace(row.time_per_km)]
    if row.position is not None:
        fields += ['POS', str(row.position)]
    if row.team:
        fields += ['TEAM', _field(row.team)]
    if row.speed is not None:
        fields += ['SPEED', f"{row.speed:.2f}"]
    if row.sex:
        fields += ['SEX', row.sex]
    if row.position_by_sex is not None:
        fields += ['POSITIONSEX', str(row.position_by_sex)]
    if row.age_category:
        fields += ['CATEGORY', _field(row.age_category)]
    if row.position_by_category is not None:
        fields += ['POSITIONCAT', str(row.position_by_category)]
    fields += ['ISMEMBER', '1' if row.is_member else '0']
    return ';'.join(fields) + ';'


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

@dataclass
class CanonicalRecord:
    """A record split back into its parts.

    ``positional`` holds every field that is not part of a recognised
    KEY;VALUE pair, starting with the kind.
    """
    raw: str
    kind: str
    positional: List[str] = field(default_factory=list)
    values: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        value = self.values.get(key.upper())
        return value if value else None

    @property
    def is_header(self) -> bool:
        return self.kind.lower() == KIND_HEADER.lower()

    @property
    def is_reference(self) -> bool:
        return self.kind.upper() == KIND_REFERENCE


def split_fields(record: str) -> List[str]:
    fields = record.split(';')
    if fields and fields[-1] == '':
        fields.pop()
    return fields


def parse_record(record: Optional[str]) -> CanonicalRecord:
    """Read a canonical record; keys are case-insensitive, first one wins."""
    if record is None or not record.strip():
        raise MalformedRecord("Empty record")
    fields = split_fields(record.strip())
    kind = fields[0].strip()
    if not kind:
        raise MalformedRecord(f"Record without a kind: {record!r}")
    if len(fields) < 2:
        raise MalformedRecord(f"Record without fields: {record!r}")

    parsed = CanonicalRecord(raw=record, kind=kind, positional=[kind])
    # the fixed fields ahead of the KEY;VALUE tail are never read as keys
    fixed = 1 if parsed.is_reference else PARTICIPANT_POSITIONAL
    i = 1
    while i < len(fields):
        token = fields[i].strip()
        key = token.upper()
        if i > fixed and key in RECORD_KEYS and i + 1 < len(fields):
            parsed.values.setdefault(key, fields[i + 1].strip())
            i += 2
            continue
        parsed.positional.append(token)
        i += 1
    return parsed


def field_count_consistency(records: Iterable[str]) -> float:
    """Share of records having the most common field count (1.0 when empty)."""
    counts = Counter(len(split_fields(r)) for r in records)
    total = sum(counts.values())
    if not total:
        return 1.0
    return counts.most_common(1)[0][1] / total
