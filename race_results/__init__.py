"""
Race results parser

Turns organizer result documents (PDF layouts from Otop, Global Pacing,
Challenge La Meuse and Goal Timing, or spreadsheets) into canonical
records and a season points classification.
"""

from .classification import Classification, MemberClassification
from .errors import (
    DocumentUnreadable,
    FormatUnrecognized,
    InvalidArgument,
    MalformedRecord,
    NotFound,
    RaceResultsError,
)
from .models import ExternalParticipant, Member, RaceDistance
from .points import calculate_points
from .processing import process_race, process_races
from .repository import get_race_results
from .roster import load_members

__all__ = [
    'Classification', 'MemberClassification',
    'DocumentUnreadable', 'FormatUnrecognized', 'InvalidArgument', 'MalformedRecord',
    'NotFound', 'RaceResultsError',
    'ExternalParticipant', 'Member', 'RaceDistance',
    'calculate_points', 'process_race', 'process_races', 'get_race_results', 'load_members',
]
