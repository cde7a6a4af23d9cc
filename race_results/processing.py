"""
Race processing

Reads the canonical records of one race, resolves the reference time,
matches participants against the roster and feeds points into a
Classification.

Two passes per file: the first reads every record and finds the winner's
time, the second scores everyone once that time is known.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from .classification import Classification
from .config import settings
from .errors import MalformedRecord
from .filename import race_distance_from_path
from .models import ExternalParticipant, Member, RaceDistance
from .normalize import clean_name, parse_time
from .points import calculate_points, is_valid_race_time
from .records import KIND_WINNER, TIME_PER_KM, CanonicalRecord, parse_record
from .repository import get_race_results

logger = logging.getLogger(__name__)

Repository = Callable[[Union[str, Path], Sequence[Member]], Dict[int, str]]


@dataclass
class ParsedRaceResult:
    """One participant's result as read back from a canonical record."""
    time: Optional[timedelta] = None
    position: Optional[int] = None
    team: Optional[str] = None
    speed: Optional[float] = None
    sex: Optional[str] = None
    position_by_sex: Optional[int] = None
    age_category: Optional[str] = None
    position_by_category: Optional[int] = None
    is_member: bool = True
    extracted_race_time: Optional[timedelta] = None
    extracted_time_per_km: Optional[timedelta] = None
    pace_race: bool = False
    members: List[Member] = field(default_factory=list)

    @property
    def is_reference(self) -> bool:
        return self.position == 1

    @property
    def is_valid(self) -> bool:
        return self.time is not None and bool(self.members)

    @property
    def final_race_time(self) -> Optional[timedelta]:
        if self.extracted_race_time is not None:
            return self.extracted_race_time
        return None if self.pace_race else self.time

    @property
    def final_time_per_km(self) -> Optional[timedelta]:
        if self.extracted_time_per_km is not None:
            return self.extracted_time_per_km
        return self.time if self.pace_race else None


def find_matching_members(members: Iterable[Member], text: str) -> List[Member]:
    """Every roster member whose first and last names both occur in the text."""
    return [m for m in members if m.matches(text)]


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_record_speed(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        speed = float(value.replace(',', '.'))
    except ValueError:
        return None
    return speed if 0.0 <= speed <= settings.max_record_speed_kmh else None


class RaceResultParser:
    """Reads the canonical records of one file in key order.

    ``pace_race`` is file scoped: once a record declares RACETYPE
    TIME_PER_KM, that record and every later one store their primary time
    as a pace.
    """

    def __init__(self, members: Sequence[Member]):
        self.members = list(members)
        self.pace_race = False
        self.reference_line: Optional[timedelta] = None

    def parse(self, record: str) -> Optional[ParsedRaceResult]:
        """Parse one raw record; header, reference and broken records give None."""
        try:
            parsed = parse_record(record)
        except MalformedRecord as exc:
            logger.debug("Dropping record: %s", exc)
            return None
        if parsed.is_header:
            return None
        if parsed.is_reference:
            self.read_reference(parsed)
            return None
        return self.parse_record(parsed)

    def read_reference(self, record: CanonicalRecord) -> Optional[timedelta]:
        """Time of a TREF line; its RACETYPE applies to the whole file."""
        race_type = record.get('RACETYPE')
        if race_type and race_type.upper() == TIME_PER_KM:
            self.pace_race = True
        for value in record.positional[1:]:
            reference = parse_time(value)
            if reference is not None:
                self.reference_line = reference
                return reference
        return None

    def parse_record(self, record: CanonicalRecord) -> Optional[ParsedRaceResult]:
        result = ParsedRaceResult()
        self._read_values(result, record)

        for value in record.positional[1:]:
            candidate = parse_time(value)
            if candidate is not None and is_valid_race_time(candidate):
                result.time = candidate
                break

        if result.time is None:
            # explicit RACETIME, then TIMEPERKM
            result.time = result.extracted_race_time or result.extracted_time_per_km
            if result.time is None:
                logger.debug("No usable time in record: %s", record.raw)
                return None

        result.members = find_matching_members(self.members, record.raw)
        if not result.members and not result.is_member and record.kind.upper() == KIND_WINNER:
            result.members = [self.external_participant(record)]
        return result

    def _read_values(self, result: ParsedRaceResult, record: CanonicalRecord):
        result.position = _parse_int(record.get('POS'))
        race_type = record.get('RACETYPE')
        if race_type and race_type.upper() == TIME_PER_KM:
            self.pace_race = True
        result.pace_race = self.pace_race
        result.team = record.get('TEAM')
        result.speed = _parse_record_speed(record.get('SPEED'))
        if record.get('ISMEMBER') is not None:
            result.is_member = record.get('ISMEMBER') == '1'
        result.extracted_race_time = parse_time(record.get('RACETIME'))
        result.extracted_time_per_km = parse_time(record.get('TIMEPERKM'))
        result.sex = record.get('SEX')
        result.position_by_sex = _parse_int(record.get('POSITIONSEX'))
        result.age_category = record.get('CATEGORY')
        result.position_by_category = _parse_int(record.get('POSITIONCAT'))

    @staticmethod
    def external_participant(record: CanonicalRecord) -> ExternalParticipant:
        """Placeholder person for a winner who is not on the roster."""
        fields = record.positional
        last = clean_name(fields[2]) if len(fields) > 2 else ''
        first = clean_name(fields[3]) if len(fields) > 3 else ''
        return ExternalParticipant(first_name=first or 'Winner', last_name=last or 'External',
                                   email=settings.external_email)


def resolve_reference_time(results: Sequence[ParsedRaceResult],
                           reference_line: Optional[timedelta]) -> Optional[timedelta]:
    """Winner's time, else the document's reference line, else the fastest time."""
    for result in results:
        if result.is_reference and result.time is not None:
            return result.time
    if reference_line is not None:
        return reference_line
    times = [r.time for r in results if r.time is not None and is_valid_race_time(r.time)]
    if times:
        logger.warning("No winner or reference line found; using the fastest time")
        return min(times)
    return None


def process_race(file_path: Union[str, Path], race: Optional[RaceDistance], members: Sequence[Member],
                 classification: Optional[Classification] = None,
                 repository: Repository = get_race_results) -> Classification:
    """Parse one results file and score every matched participant."""
    classification = classification if classification is not None else Classification()
    if race is None:
        race = race_distance_from_path(file_path)

    records = repository(file_path, members)
    parser = RaceResultParser(members)
    results = []
    for key in sorted(records):
        result = parser.parse(records[key])
        if result is not None:
            results.append(result)

    reference = resolve_reference_time(results, parser.reference_line)
    if reference is None:
        logger.warning("%s: no usable times, nothing to score", Path(file_path).name)
        return classification

    scored = 0
    for result in results:
        if not result.is_valid:
            continue
        points = calculate_points(reference, result.time)
        for member in result.members:
            classification.add_or_update_result(
                member, race, points,
                result.final_race_time, result.final_time_per_km,
                result.position, result.team, result.speed, result.is_member,
                result.sex, result.position_by_sex, result.age_category,
                result.position_by_category)
            scored += 1

    logger.info("%s: %d result(s) scored against reference %s", race.name, scored, reference)
    return classification


def process_races(file_paths: Iterable[Union[str, Path]], members: Sequence[Member],
                  repository: Repository = get_race_results) -> Classification:
    """Process several files into one classification, race identity from file names."""
    classification = Classification()
    for file_path in file_paths:
        process_race(file_path, None, members, classification, repository)
    return classification
