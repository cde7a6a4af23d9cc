"""
Tests for get_race_results, end to end from a file on disk.
"""

from datetime import timedelta

import pandas as pd
import pytest

from race_results.errors import InvalidArgument, NotFound
from race_results.models import ParsedRow
from race_results.records import HEADER_RECORD
from race_results.repository import (
    deduplicate,
    filter_non_representative,
    find_reference_time,
    get_race_results,
)
from tests.conftest import make_text_page


GOAL_TIMING_ROWS = [
    ["Résultats Jogging de Seraing"],
    ["Rank", "Dos", "Nom Prénom", "Sexe", "Club", "Cat", "Pl/Cat", "Temps", "T/Km", "Vitesse"],
    ["1", "7", "MARTIN Luc", "H", "AC Huy", "SH", "1", "00:31:12", "3:07", "19,23"],
    ["2", "9", "DUPONT Jean", "H", "RC Liège", "V1", "1", "00:35:40", "3:34", "16,82"],
    ["3", "11", "LAMBERT Marie", "D", "", "D1", "1", "00:41:05", "4:06", "14,60"],
    ["4", "12", "PETIT Paul", "H", "", "SH", "2", "DSQ", "", ""],
]


@pytest.fixture
def goal_timing_xlsx(tmp_path):
    path = tmp_path / "20250421SeraingGC.xlsx"
    pd.DataFrame(GOAL_TIMING_ROWS).to_excel(path, index=False, header=False)
    return path


class TestGetRaceResults:
    """Canonical records from spreadsheet and CSV documents."""

    def test_spreadsheet(self, goal_timing_xlsx, members):
        records = get_race_results(goal_timing_xlsx, members)
        assert sorted(records) == [0, 2, 3, 4]
        assert records[0] == HEADER_RECORD
        assert records[2].startswith("TWINNER;1;MARTIN;Luc;00:31:12;RACETYPE;RACE_TIME;")
        assert records[2].endswith("ISMEMBER;0;")
        assert records[3].startswith("TMEM;2;Dupont;Jean;00:35:40;")
        assert "TEAM;RC Liège;" in records[3]
        assert "TIMEPERKM;03:34;" in records[3]
        assert "SEX;F;" in records[4]
        assert "CATEGORY;D1;" in records[4]
        assert all("PETIT" not in r for r in records.values())

    def test_same_file_same_records(self, goal_timing_xlsx, members):
        first = get_race_results(goal_timing_xlsx, members)
        assert get_race_results(goal_timing_xlsx, members) == first

    def test_without_roster(self, goal_timing_xlsx):
        records = get_race_results(goal_timing_xlsx)
        assert all(not r.startswith("TMEM") for r in records.values())

    def test_generic_csv(self, tmp_path, members):
        path = tmp_path / "results.csv"
        path.write_text("1;DUPONT Jean;00:35:10\n2;MARTIN Luc;00:36:20\n", encoding="utf-8")
        records = get_race_results(path, members)
        assert sorted(records) == [0, 2, 3]
        assert records[2].startswith("TMEM;1;Dupont;Jean;00:35:10;")
        assert records[3].startswith("TWINNER;2;MARTIN;Luc;00:36:20;")

    def test_reference_line(self, tmp_path):
        path = tmp_path / "results.csv"
        path.write_text("TREF;00:30:00\n1;DUPONT Jean;00:35:10\n2;MARTIN Luc;00:36:20\n", encoding="utf-8")
        records = get_race_results(path)
        assert records[1] == "TREF;00:30:00;RACETYPE;RACE_TIME;"
        assert sorted(records) == [0, 1, 2, 3]

    def test_short_time_read_as_pace(self, tmp_path):
        path = tmp_path / "results.csv"
        path.write_text("1;DUPONT Jean;00:04:10\n2;MARTIN Luc;00:04:20\n", encoding="utf-8")
        records = get_race_results(path)
        assert "RACETYPE;TIME_PER_KM;TIMEPERKM;04:10;" in records[2]

    def test_title_line_and_comma_speeds(self, tmp_path):
        path = tmp_path / "results.csv"
        path.write_text("Jogging de Huy\n1;DUPONT Jean;00:35:10;16,82\n2;MARTIN Luc;00:36:20;16,28\n",
                        encoding="utf-8")
        records = get_race_results(path)
        assert sorted(records) == [0, 2, 3]
        assert "SPEED;16.82;" in records[2]

    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFound):
            get_race_results(tmp_path / "missing.pdf")

    def test_blank_path(self):
        with pytest.raises(InvalidArgument):
            get_race_results("")


class TestHelpers:
    """Tests for the clean-up steps between parsing and serialization."""

    def test_find_reference_time(self):
        page = make_text_page(["Jogging de Huy", "Temps de référence : 00:31:12"])
        assert find_reference_time([page]) == timedelta(minutes=31, seconds=12)

    def test_no_reference_time(self):
        assert find_reference_time([make_text_page(["1 MARTIN Luc 00:31:12"])]) is None

    def test_deduplicate_keeps_most_complete(self):
        sparse = ParsedRow(position=1, last_name="MARTIN")
        full = ParsedRow(position=1, first_name="Luc", last_name="MARTIN",
                         race_time=timedelta(minutes=31), speed=19.2)
        other = ParsedRow(position=2, last_name="DUPONT")
        rows = deduplicate([other, sparse, full])
        assert rows == [full, other]

    def test_filter_non_representative(self):
        short = ParsedRow(position=1, last_name="A", race_time=timedelta(minutes=5))
        pace_only = ParsedRow(position=2, last_name="B", time_per_km=timedelta(minutes=4))
        normal = ParsedRow(position=3, last_name="C", race_time=timedelta(minutes=40))
        assert filter_non_representative([short, pace_only, normal]) == [pace_only, normal]
