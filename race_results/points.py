"""Points: the winner scores 1000, everyone else in proportion to their time."""

from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .config import settings
from .errors import InvalidArgument


def calculate_points(reference: timedelta, participant: timedelta) -> int:
    """round(reference / participant * 1000), halves rounded up."""
    if participant is None or participant.total_seconds() == 0:
        raise InvalidArgument("Participant time cannot be zero")
    ratio = Decimal(reference.total_seconds()) / Decimal(participant.total_seconds()) * 1000
    return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def is_valid_race_time(duration: Optional[timedelta]) -> bool:
    """Strictly between the configured minimum minutes and maximum hours."""
    if duration is None:
        return False
    return (timedelta(minutes=settings.min_race_minutes) < duration
            < timedelta(hours=settings.max_race_hours))
