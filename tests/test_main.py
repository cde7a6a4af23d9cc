"""
Tests for the command line entry point.
"""

import json

import pandas as pd

from race_results.__main__ import main

ROWS = [
    ["Pl.", "Nom", "Temps"],
    ["1", "MARTIN Luc", "00:30:00"],
    ["2", "DUPONT Jean", "00:45:00"],
]


def write_roster(tmp_path):
    path = tmp_path / "members.json"
    path.write_text(json.dumps([{"FirstName": "Jean", "LastName": "Dupont"}]), encoding="utf-8")
    return path


class TestMain:
    """Tests for main()."""

    def test_usage(self, capsys):
        assert main([]) == 2
        assert "Usage" in capsys.readouterr().out

    def test_missing_roster(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.json"), "x.pdf"]) == 1
        assert "Cannot load roster" in capsys.readouterr().out

    def test_season_summary(self, tmp_path, capsys):
        results = tmp_path / "1.10.Hannut.xlsx"
        pd.DataFrame(ROWS).to_excel(results, index=False, header=False)
        assert main([str(write_roster(tmp_path)), str(results)]) == 0
        out = capsys.readouterr().out
        assert "=== Summary ===" in out
        assert "Hannut: 2 result(s)" in out
        assert "Dupont" in out

    def test_failed_file_is_reported(self, tmp_path, capsys):
        results = tmp_path / "1.10.Hannut.xlsx"
        pd.DataFrame(ROWS).to_excel(results, index=False, header=False)
        code = main([str(write_roster(tmp_path)), str(results), str(tmp_path / "missing.pdf")])
        out = capsys.readouterr().out
        assert code == 1
        assert "Failed" in out
        assert "Hannut: 2 result(s)" in out
