"""
Tests for roster loading and the Member model.
"""

import json

import pytest

from race_results.errors import DocumentUnreadable, InvalidArgument, NotFound
from race_results.models import Member
from race_results.roster import find_member, load_members


def write_roster(tmp_path, payload):
    path = tmp_path / "members.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestLoadMembers:
    """Tests for load_members."""

    def test_pascal_case_keys(self, tmp_path):
        path = write_roster(tmp_path, [
            {"FirstName": "Jean", "LastName": "Dupont", "Email": "jean@example.com",
             "IsMember": True, "IsChallenger": False},
        ])
        members = load_members(path)
        assert len(members) == 1
        assert members[0].full_name == "Jean DUPONT"
        assert members[0].email == "jean@example.com"
        assert members[0].is_member

    def test_snake_case_keys_and_defaults(self, tmp_path):
        path = write_roster(tmp_path, [{"first_name": "Marie", "last_name": "Lambert", "is_challenger": True}])
        member = load_members(path)[0]
        assert member.is_member
        assert member.is_challenger

    def test_entries_without_last_name_skipped(self, tmp_path, caplog):
        path = write_roster(tmp_path, [
            {"FirstName": "Jean", "LastName": "Dupont"},
            {"FirstName": "Nobody"},
            {"FirstName": "Blank", "LastName": "  "},
        ])
        assert len(load_members(path)) == 1
        assert "Skipped 2" in caplog.text

    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFound):
            load_members(tmp_path / "missing.json")

    def test_bad_json(self, tmp_path):
        path = tmp_path / "members.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DocumentUnreadable):
            load_members(path)

    def test_wrong_types(self, tmp_path):
        path = write_roster(tmp_path, [{"FirstName": "Jean", "LastName": "Dupont", "IsMember": "maybe"}])
        with pytest.raises(DocumentUnreadable):
            load_members(path)

    def test_empty_roster(self, tmp_path):
        assert load_members(write_roster(tmp_path, [])) == []


class TestMember:
    """Tests for Member identity."""

    def test_equality_ignores_accents(self):
        assert Member("René", "Dupré") == Member("rene", "DUPRE")
        assert len({Member("René", "Dupré"), Member("rene", "dupre")}) == 1

    def test_last_name_required(self):
        with pytest.raises(InvalidArgument):
            Member("Jean", "")

    def test_find_member(self, members):
        assert find_member(members, "jean", "DUPONT") is members[0]
        assert find_member(members, "Paul", "Petit") is None
