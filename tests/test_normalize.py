"""
Tests for the field normalizer.

Times, speeds, names, categories and DQ markers as they come out of
organizer documents.
"""

from datetime import timedelta

import pytest

from race_results.normalize import (
    clean_name,
    extract_category_fields,
    extract_team,
    format_pace,
    format_time,
    is_disqualified,
    is_pace,
    is_valid_category_code,
    is_valid_name,
    normalize_category,
    normalize_for_comparison,
    normalize_sex,
    normalize_token,
    parse_position,
    parse_speed,
    parse_time,
    remove_diacritics,
)


# =============================================================================
# Text folding
# =============================================================================

class TestFolding:
    """Tests for accent and case folding."""

    def test_remove_diacritics(self):
        assert remove_diacritics("Vétéran") == "Veteran"
        assert remove_diacritics("Liège") == "Liege"
        assert remove_diacritics(None) is None

    def test_normalize_for_comparison(self):
        assert normalize_for_comparison("Jean-Marc  Dupré") == "jean marc dupre"
        assert normalize_for_comparison("") == ""
        assert normalize_for_comparison(None) == ""

    def test_normalize_token_strips_punctuation(self):
        assert normalize_token("Catég.") == "categ"
        assert normalize_token("Pl./S") == "pl./s"
        assert normalize_token("Temps:") == "temps"


# =============================================================================
# Times
# =============================================================================

class TestParseTime:
    """Tests for parse_time."""

    def test_full_format(self):
        assert parse_time("01:02:03") == timedelta(hours=1, minutes=2, seconds=3)
        assert parse_time("1:02:03") == timedelta(hours=1, minutes=2, seconds=3)

    def test_minutes_seconds(self):
        assert parse_time("45:30") == timedelta(minutes=45, seconds=30)
        assert parse_time("3:54") == timedelta(minutes=3, seconds=54)

    def test_surrounding_noise(self):
        assert parse_time("00:45:30*") == timedelta(minutes=45, seconds=30)

    @pytest.mark.parametrize("text, hours, minutes, seconds", [
        ("1:02:03", 1, 2, 3),
        ("12:34:56", 12, 34, 56),
        ("4:05", 0, 4, 5),
        ("38:40", 0, 38, 40),
    ])
    def test_listed_forms(self, text, hours, minutes, seconds):
        parsed = parse_time(text)
        assert parsed == timedelta(hours=hours, minutes=minutes, seconds=seconds)
        assert parse_time(format_time(parsed)) == parsed

    def test_rejects_zero(self):
        assert parse_time("0:00") is None
        assert parse_time("00:00:00") is None

    def test_rejects_garbage(self):
        assert parse_time("12:75") is None
        assert parse_time("abc") is None
        assert parse_time("") is None
        assert parse_time(None) is None
        assert parse_time("-00:10:00") is None

    def test_format_time(self):
        assert format_time(timedelta(hours=1, minutes=2, seconds=3)) == "01:02:03"
        assert format_time(timedelta(minutes=38, seconds=40)) == "00:38:40"

    def test_format_pace(self):
        assert format_pace(timedelta(minutes=4, seconds=5)) == "04:05"

    def test_is_pace(self):
        assert is_pace(timedelta(minutes=3, seconds=54))
        assert not is_pace(timedelta(minutes=31, seconds=12))


# =============================================================================
# Speeds and positions
# =============================================================================

class TestParseSpeed:
    """Tests for parse_speed."""

    @pytest.mark.parametrize("text", ["12,5", "12.5", "12.5 km/h", "12,5 Km/h", "1250"])
    def test_accepted_forms(self, text):
        assert parse_speed(text) == 12.5

    def test_integer_speed(self):
        assert parse_speed("15") == 15.0

    @pytest.mark.parametrize("text", ["0.5", "35.0", "-5.0", "abc", "", None])
    def test_rejected(self, text):
        assert parse_speed(text) is None

    def test_custom_separator(self):
        assert parse_speed("12,5", decimal_separators=(',',)) == 12.5


class TestParsePosition:
    """Tests for parse_position."""

    def test_trailing_punctuation(self):
        assert parse_position("12") == 12
        assert parse_position("12.") == 12
        assert parse_position(" 3, ") == 3

    def test_rejects_non_positions(self):
        assert parse_position("0") is None
        assert parse_position("DSQ") is None
        assert parse_position(None) is None


# =============================================================================
# Sex and categories
# =============================================================================

class TestCategories:
    """Tests for sex and age category helpers."""

    def test_normalize_sex(self):
        assert normalize_sex("H") == "M"
        assert normalize_sex("d") == "F"
        assert normalize_sex("M") == "M"
        assert normalize_sex("X") is None
        assert normalize_sex(None) is None

    @pytest.mark.parametrize("code", ["SH", "V1", "ESPH", "JUNF", "M40", "D2", "sen"])
    def test_valid_codes(self, code):
        assert is_valid_category_code(code)

    @pytest.mark.parametrize("code", ["JEAN", "TOOLONG", "V-1", "", None])
    def test_invalid_codes(self, code):
        assert not is_valid_category_code(code)

    def test_normalize_category(self):
        assert normalize_category("v1") == "V1"
        assert normalize_category("Vétéran 2") == "Vétéran 2"
        assert normalize_category("Moins16 D") == "Moins16 D"
        assert normalize_category("Paris") is None
        assert normalize_category(None) is None

    def test_extract_category_fields_code(self):
        fields = extract_category_fields("H SH 3")
        assert fields['sex'] == "M"
        assert fields['age_category'] == "SH"
        assert fields['position_by_category'] == 3

    def test_extract_category_fields_sex_position(self):
        fields = extract_category_fields("M 12 V1 4")
        assert fields['sex'] == "M"
        assert fields['position_by_sex'] == 12
        assert fields['age_category'] == "V1"
        assert fields['position_by_category'] == 4

    def test_extract_category_fields_phrase(self):
        fields = extract_category_fields("Senior H 7")
        assert fields['age_category'] == "Senior H"
        assert fields['position_by_category'] == 7

    def test_extract_category_fields_empty(self):
        assert extract_category_fields(None)['age_category'] is None


# =============================================================================
# Teams and names
# =============================================================================

class TestTeams:
    """Tests for extract_team."""

    def test_brackets(self):
        assert extract_team("DUPONT Jean (AC Huy)") == ("AC Huy", "DUPONT Jean")
        assert extract_team("DUPONT Jean [RC Liège]") == ("RC Liège", "DUPONT Jean")

    def test_keyword(self):
        assert extract_team("DUPONT Jean Club: RC Liège") == ("RC Liège", "DUPONT Jean")

    def test_no_team(self):
        assert extract_team("DUPONT Jean") == (None, "DUPONT Jean")


class TestCleanName:
    """Tests for clean_name."""

    def test_strips_times_and_speeds(self):
        assert clean_name("DUPONT Jean 00:35:40 16,82") == "DUPONT Jean"

    def test_strips_bib_and_category(self):
        assert clean_name("12 DUPONT Jean V1") == "DUPONT Jean"

    def test_strips_trailing_sex(self):
        assert clean_name("Dupont Jean H") == "Dupont Jean"

    def test_strips_category_phrase(self):
        assert clean_name("Dupont Jean Senior H") == "Dupont Jean"

    @pytest.mark.parametrize("raw", ["DUPONT Ben", "LEE Jun", "KIM Min", "NGUYEN Han"])
    def test_keeps_first_names_spelled_like_codes(self, raw):
        assert clean_name(raw) == raw

    def test_strips_upper_case_codes(self):
        assert clean_name("DUPONT Jean ESPH") == "DUPONT Jean"
        assert clean_name("DUPONT Jean MIN") == "DUPONT Jean"

    def test_keeps_word_order(self):
        assert clean_name("Jean DUPONT") == "Jean DUPONT"

    def test_empty(self):
        assert clean_name("") == ""
        assert clean_name(None) == ""

    def test_is_valid_name(self):
        assert is_valid_name("Dupont")
        assert not is_valid_name("123")
        assert not is_valid_name("  ")
        assert not is_valid_name(None)


class TestDisqualification:
    """Tests for is_disqualified."""

    @pytest.mark.parametrize("text", ["DSQ", "4 PETIT Paul DNF", "Abandon", "disqualifié", "DNS"])
    def test_markers(self, text):
        assert is_disqualified(text)

    def test_regular_row(self):
        assert not is_disqualified("1 MARTIN Luc 00:31:12")
        assert not is_disqualified(None)
