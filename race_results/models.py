"""Data model shared by the extraction and classification layers."""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .errors import InvalidArgument
from .normalize import normalize_for_comparison


@dataclass
class RawToken:
    """A positioned string on a page.

    PDF tokens carry x-coordinates in points; spreadsheet tokens carry the
    cell's column index in both x0 and ``column``.
    """
    text: str
    x0: float
    x1: float
    top: float
    page: int
    row: int
    column: Optional[int] = None


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Member:
    """A person from the club roster.

    Two members are the same person when their first and last names match
    once accents, hyphens and case are ignored.
    """
    first_name: str
    last_name: str
    email: Optional[str] = None
    is_member: bool = False
    is_challenger: bool = False

    is_external = False

    def __post_init__(self):
        if not self.last_name or not self.last_name.strip():
            raise InvalidArgument("Last name cannot be empty")
        self.first_name = self.first_name or ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name.upper()}"

    @property
    def identity(self):
        return (normalize_for_comparison(self.first_name),
                normalize_for_comparison(self.last_name))

    def matches(self, text: Optional[str]) -> bool:
        """True when both names occur in the text, ignoring accents and case."""
        folded = normalize_for_comparison(text)
        first, last = self.identity
        if not folded or not last or last not in folded:
            return False
        return not first or first in folded

    def __eq__(self, other):
        if not isinstance(other, Member):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self):
        return hash(self.identity)

    def __str__(self):
        return self.full_name


@dataclass(eq=False)
class ExternalParticipant(Member):
    """Placeholder for a winner who is not on the roster.

    Kept as its own type so reports can tell roster members from people
    synthesized out of a result row.
    """
    is_external = True


# ---------------------------------------------------------------------------
# Races
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RaceDistance:
    race_number: int
    name: str
    distance_km: int

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise InvalidArgument("Race name cannot be empty")
        if self.distance_km <= 0:
            raise InvalidArgument("Distance must be positive")

    def __str__(self):
        return f"{self.race_number}.{self.distance_km}.{self.name}"


@dataclass
class RaceMetadata:
    """What the file name tells us about a race."""
    race_date: Optional[date] = None
    race_name: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None
    distance_km: Optional[float] = None


# ---------------------------------------------------------------------------
# Parser output
# ---------------------------------------------------------------------------

@dataclass
class ParsedRow:
    """One participant row recovered by a format parser."""
    position: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    race_time: Optional[timedelta] = None
    time_per_km: Optional[timedelta] = None
    team: Optional[str] = None
    speed: Optional[float] = None
    sex: Optional[str] = None
    position_by_sex: Optional[int] = None
    age_category: Optional[str] = None
    position_by_category: Optional[int] = None
    is_member: bool = False
    synthesized_position: bool = field(default=False, repr=False)

    def completeness(self) -> int:
        """Score used to pick one row among several sharing a position."""
        score = 0
        if self.race_time is not None:
            score += 10
        if self.speed is not None:
            score += 5
        if self.time_per_km is not None:
            score += 5
        if self.team:
            score += 3
        if self.sex:
            score += 2
        if self.age_category:
            score += 2
        if self.first_name and self.first_name != "Unknown":
            score += 20
        if self.last_name and self.last_name != "Unknown":
            score += 20
        return score
