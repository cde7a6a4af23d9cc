"""
Season classification

One MemberClassification per (member, race). Re-applying a result keeps
the best points but adds the race distance to the bonus kilometres every
time, so processing the same file twice doubles the bonus.

A Classification is not safe for concurrent updates; give each processing
job its own instance.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

import pandas as pd

from .models import Member, RaceDistance
from .normalize import format_pace, format_time, normalize_for_comparison


@dataclass
class MemberClassification:
    member: Member
    race_name: str
    points: int
    bonus_km: int
    race_time: Optional[timedelta] = None
    time_per_km: Optional[timedelta] = None
    position: Optional[int] = None
    team: Optional[str] = None
    speed: Optional[float] = None
    is_member: bool = True
    sex: Optional[str] = None
    position_by_sex: Optional[int] = None
    age_category: Optional[str] = None
    position_by_category: Optional[int] = None
    is_challenger: bool = field(default=False)

    def update(self, points: int, distance_km: int, race_time=None, time_per_km=None,
               position=None, team=None, speed=None, is_member=True, sex=None,
               position_by_sex=None, age_category=None, position_by_category=None):
        """Merge a repeated result in place."""
        self.points = max(self.points, points)
        self.bonus_km += distance_km
        self.race_time = race_time
        self.time_per_km = time_per_km
        self.position = position
        self.team = team
        self.speed = speed
        self.is_member = is_member
        self.sex = sex
        self.position_by_sex = position_by_sex
        self.age_category = age_category
        self.position_by_category = position_by_category

    def as_dict(self) -> dict:
        return {
            'first_name': self.member.first_name,
            'last_name': self.member.last_name,
            'email': self.member.email,
            'race_name': self.race_name,
            'points': self.points,
            'bonus_km': self.bonus_km,
            'race_time': format_time(self.race_time) if self.race_time else None,
            'time_per_km': format_pace(self.time_per_km) if self.time_per_km else None,
            'position': self.position,
            'team': self.team,
            'speed': self.speed,
            'sex': self.sex,
            'position_by_sex': self.position_by_sex,
            'age_category': self.age_category,
            'position_by_category': self.position_by_category,
            'is_member': self.is_member,
            'is_challenger': self.is_challenger,
            'is_external': self.member.is_external,
        }


class Classification:
    """Results of every member across the races processed so far."""

    def __init__(self):
        self._classifications: Dict[str, MemberClassification] = {}

    @staticmethod
    def _key(member: Member, race: RaceDistance) -> str:
        return f"{normalize_for_comparison(member.full_name)}_{race.name}"

    def add_or_update_result(self, member: Member, race: RaceDistance, points: int,
                             race_time: Optional[timedelta] = None,
                             time_per_km: Optional[timedelta] = None,
                             position: Optional[int] = None, team: Optional[str] = None,
                             speed: Optional[float] = None, is_member: bool = True,
                             sex: Optional[str] = None, position_by_sex: Optional[int] = None,
                             age_category: Optional[str] = None,
                             position_by_category: Optional[int] = None) -> MemberClassification:
        key = self._key(member, race)
        existing = self._classifications.get(key)
        if existing is not None:
            existing.update(points, race.distance_km, race_time, time_per_km, position, team,
                            speed, is_member, sex, position_by_sex, age_category,
                            position_by_category)
            return existing

        entry = MemberClassification(
            member=member, race_name=race.name, points=points, bonus_km=race.distance_km,
            race_time=race_time, time_per_km=time_per_km, position=position, team=team,
            speed=speed, is_member=is_member, sex=sex, position_by_sex=position_by_sex,
            age_category=age_category, position_by_category=position_by_category,
            is_challenger=member.is_challenger)
        self._classifications[key] = entry
        return entry

    def get_classification(self, member: Member, race: RaceDistance) -> Optional[MemberClassification]:
        return self._classifications.get(self._key(member, race))

    def get_all_classifications(self) -> List[MemberClassification]:
        """Ordered by last name, then first name."""
        return sorted(self._classifications.values(),
                      key=lambda c: (normalize_for_comparison(c.member.last_name),
                                     normalize_for_comparison(c.member.first_name),
                                     c.race_name))

    def get_distinct_race_names(self) -> List[str]:
        seen = []
        for entry in self._classifications.values():
            if entry.race_name not in seen:
                seen.append(entry.race_name)
        return seen

    def merge(self, other: 'Classification'):
        """Fold another job's classification into this one.

        The other entry's accumulated bonus is added as a whole; points
        still keep the maximum.
        """
        for entry in other.get_all_classifications():
            race = RaceDistance(0, entry.race_name, entry.bonus_km)
            self.add_or_update_result(
                entry.member, race, entry.points, entry.race_time, entry.time_per_km,
                entry.position, entry.team, entry.speed, entry.is_member, entry.sex,
                entry.position_by_sex, entry.age_category, entry.position_by_category)

    def __len__(self):
        return len(self._classifications)

    def __iter__(self):
        return iter(self.get_all_classifications())

    def to_dataframe(self) -> pd.DataFrame:
        """One row per (member, race), in classification order."""
        rows = [entry.as_dict() for entry in self.get_all_classifications()]
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame(rows)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------

def get_race_rows(df, race): return df[df['race_name'] == race].copy()
def get_member_rows(df, name): return df[(df['first_name'] + ' ' + df['last_name']).str.contains(name, case=False, na=False)].copy()
def get_members_only(df): return df[df['is_member']].copy()
def get_challengers(df): return df[df['is_challenger']].copy()


def season_totals(df) -> pd.DataFrame:
    """Points and bonus km summed per person, best first."""
    if df.empty:
        return df
    totals = (df.groupby(['last_name', 'first_name'], as_index=False)
                .agg(points=('points', 'sum'), bonus_km=('bonus_km', 'sum'), races=('race_name', 'nunique')))
    return totals.sort_values(['points', 'bonus_km'], ascending=False).reset_index(drop=True)


def summarize_classification(df) -> dict:
    if df.empty:
        return {'entries': 0, 'races': 0, 'people': 0, 'members': 0, 'external': 0}
    return {
        'entries': len(df),
        'races': df['race_name'].nunique(),
        'people': df[['last_name', 'first_name']].drop_duplicates().shape[0],
        'members': int(df['is_member'].sum()),
        'external': int(df['is_external'].sum()),
    }
