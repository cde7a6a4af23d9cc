"""
Field normalizer

Shared value cleanup for every format parser: diacritics folding, times,
speeds, positions, names, sex markers, age categories and disqualification
markers. All helpers are pure functions; nothing here depends on the
process locale.
"""

import re
import unicodedata
from datetime import timedelta
from typing import Dict, Optional, Sequence, Tuple

from .config import settings


# ---------------------------------------------------------------------------
# Text folding
# ---------------------------------------------------------------------------

def remove_diacritics(text: Optional[str]) -> Optional[str]:
    """Strip combining accents: "Vétéran" -> "Veteran"."""
    if text is None:
        return None
    decomposed = unicodedata.normalize('NFD', text)
    stripped = ''.join(ch for ch in decomposed if unicodedata.category(ch) != 'Mn')
    return unicodedata.normalize('NFC', stripped)


def normalize_for_comparison(text: Optional[str]) -> str:
    """Fold a name for comparison ("Jean-Marc  Dupré" -> "jean marc dupre")."""
    if not text:
        return ""
    folded = remove_diacritics(text).replace('-', ' ')
    return re.sub(r'\s+', ' ', folded).strip().casefold()


def normalize_token(text: str) -> str:
    """Fold a header cell for vocabulary lookups ("Catég." -> "categ")."""
    folded = remove_diacritics(text or "").strip().casefold()
    return folded.rstrip('.:')


# ---------------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------------

_HMS_RE = re.compile(r'^(\d{1,2}):([0-5]\d):([0-5]\d)$')
_MS_RE = re.compile(r'^(\d{1,2}):([0-5]\d)$')
TIME_PATTERN = re.compile(r'(?<![\d:])(\d{1,2}:\d{2}:\d{2}|\d{1,2}:\d{2})(?![\d:])')


def parse_time(text: Optional[str]) -> Optional[timedelta]:
    """Parse h:mm:ss, hh:mm:ss, m:ss or mm:ss into a timedelta.

    Surrounding noise is tolerated ("00:45:30*"), zero and negative
    durations are rejected.
    """
    if not text:
        return None
    text = text.strip()
    if text.startswith('-'):
        return None
    text = re.sub(r'^[^\d:]+|[^\d:]+$', '', text)
    if not text:
        return None

    m = _HMS_RE.match(text)
    if m:
        hours, minutes, seconds = (int(g) for g in m.groups())
    else:
        m = _MS_RE.match(text)
        if not m:
            return None
        hours = 0
        minutes, seconds = (int(g) for g in m.groups())

    duration = timedelta(hours=hours, minutes=minutes, seconds=seconds)
    if duration <= timedelta(0):
        return None
    return duration


def format_time(duration: timedelta) -> str:
    """timedelta -> "hh:mm:ss"."""
    total = int(duration.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_pace(duration: timedelta) -> str:
    """timedelta -> "mm:ss" (paces never reach an hour)."""
    total = int(duration.total_seconds())
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02d}:{seconds:02d}"


def is_pace(duration: timedelta) -> bool:
    """True when a duration is short enough to be a min/km pace."""
    return duration.total_seconds() < settings.pace_threshold_minutes * 60


# ---------------------------------------------------------------------------
# Speeds and numbers
# ---------------------------------------------------------------------------

_SPEED_UNIT_RE = re.compile(r'\s*km\s*/\s*h.*$', re.IGNORECASE)
_NUMBER_RE = re.compile(r'^[+\-]?\d+(?:\.\d+)?$')


def parse_speed(text: Optional[str], decimal_separators: Sequence[str] = (',', '.')) -> Optional[float]:
    """Parse a speed in km/h.

    "12,5", "12.5", "12.5 km/h" and "1250" (decimal point lost in
    extraction) all give 12.5. Values outside the plausible window for a
    foot race are rejected.
    """
    if not text:
        return None
    cleaned = _SPEED_UNIT_RE.sub('', text.strip())
    for sep in decimal_separators:
        cleaned = cleaned.replace(sep, '.')
    cleaned = cleaned.strip()
    if not _NUMBER_RE.match(cleaned):
        return None

    speed = float(cleaned)
    if '.' not in cleaned and 100 <= speed <= 3000:
        speed = speed / 100.0

    if settings.min_speed_kmh <= speed <= settings.max_speed_kmh:
        return round(speed, 2)
    return None


def parse_position(text: Optional[str]) -> Optional[int]:
    """Parse a rank cell: "12", "12.", "12," -> 12."""
    if not text:
        return None
    text = text.strip().rstrip('.,')
    if not re.fullmatch(r'\d{1,5}', text):
        return None
    value = int(text)
    return value if value > 0 else None


def parse_int(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    text = text.strip().rstrip('.,')
    return int(text) if re.fullmatch(r'\d{1,5}', text) else None


# ---------------------------------------------------------------------------
# Sex and categories
# ---------------------------------------------------------------------------

_SEX_MAP = {'M': 'M', 'H': 'M', 'F': 'F', 'D': 'F'}


def normalize_sex(text: Optional[str]) -> Optional[str]:
    """H -> M, D -> F; M and F pass through; anything else is dropped."""
    if not text:
        return None
    return _SEX_MAP.get(text.strip().upper())


_CATEGORY_CODE_PATTERNS = [
    re.compile(p) for p in [
        r'^S[HMFD]$',          # SH, SF, SD
        r'^SEN[HFD]?$',
        r'^(?:HOM|DAM)$',
        r'^V[1-9]$',
        r'^VET[1-9HF]?$',
        r'^[DA][1-9]$',        # D1, A2 (ladies' veteran classes)
        r'^AINEE[1-9]?$',
        r'^ESP[HFGD]?$',
        r'^ES[HFGD]$',
        r'^JUN[HFD]?$',
        r'^CAD[HFD]?$',
        r'^(?:SCO|BEN|PUP|MIN)$',
        r'^[MW]\d{2}$',        # M35, W40
        r'^(?:HAN|HAND|REC|FUN|WAL)$',
    ]
]

_CATEGORY_PHRASE_PATTERNS = [
    re.compile(p) for p in [
        r'^SENIORS?\s+[HFD]$',
        r'^VETERANS?\s+[1-9]$',
        r'^AINEES?\s+[1-9]$',
        r'^ESPOIRS?\s+(?:[HFGD]|GARCONS|FILLES)$',
        r'^ESP\s+[HFGD]$',
        r'^JUNIORS?\s+[HFD]$',
        r'^CADETS?\s+[HFD]$',
        r'^MASTER\s+\d{2}\+?$',
        r'^WOMEN\s+\d{2}\+?$',
        r'^MOINS\d{2}(?:\s+[HFD])?$',
    ]
]


def is_valid_category_code(code: Optional[str]) -> bool:
    """Short alphanumeric age-category codes: SH, V1, D2, ESPH, JUNF, M40..."""
    if not code:
        return False
    upper = remove_diacritics(code.strip()).upper()
    if len(upper) > 5 or not upper.isalnum():
        return False
    return any(p.match(upper) for p in _CATEGORY_CODE_PATTERNS)


def is_valid_category_phrase(phrase: Optional[str]) -> bool:
    """Spelled-out categories such as "Senior H", "Vétéran 2", "Moins16 D"."""
    if not phrase:
        return False
    upper = re.sub(r'\s+', ' ', remove_diacritics(phrase.strip()).upper())
    return any(p.match(upper) for p in _CATEGORY_PHRASE_PATTERNS)


def normalize_category(text: Optional[str]) -> Optional[str]:
    """Return a recognised category (codes upper-cased, phrases as printed).

    Unrecognised values are treated as absent rather than invalid.
    """
    if not text:
        return None
    collapsed = re.sub(r'\s+', ' ', text.strip())
    if is_valid_category_code(collapsed):
        return remove_diacritics(collapsed).upper()
    if is_valid_category_phrase(collapsed):
        return collapsed
    return None


def extract_category_fields(text: Optional[str]) -> Dict[str, object]:
    """Pull sex, category and their positions out of a free-text span.

    Used by line-based parsing where there are no columns to rely on: a
    lone sex letter, a category code or phrase, and the small integers
    right after them.
    """
    fields = {'sex': None, 'age_category': None,
              'position_by_sex': None, 'position_by_category': None}
    if not text:
        return fields

    parts = text.split()
    i = 0
    while i < len(parts):
        token = parts[i]
        upper = remove_diacritics(token).upper()

        if re.fullmatch(r'\d{1,4}', token):
            number = int(token)
            if number < 500:
                if fields['age_category'] and fields['position_by_category'] is None:
                    fields['position_by_category'] = number
                elif fields['sex'] and fields['position_by_sex'] is None:
                    fields['position_by_sex'] = number
            i += 1
            continue

        if TIME_PATTERN.match(token) or re.fullmatch(r'\d+[.,]\d+', token):
            i += 1
            continue

        if fields['sex'] is None and upper in _SEX_MAP:
            fields['sex'] = _SEX_MAP[upper]
            i += 1
            continue

        if fields['age_category'] is None and i + 1 < len(parts):
            combined = f"{token} {parts[i + 1]}"
            if is_valid_category_phrase(combined):
                fields['age_category'] = combined
                i += 2
                if i < len(parts) and re.fullmatch(r'\d{1,3}', parts[i]):
                    fields['position_by_category'] = int(parts[i])
                    i += 1
                continue

        if fields['age_category'] is None and is_valid_category_code(token):
            fields['age_category'] = upper
            i += 1
            if i < len(parts) and re.fullmatch(r'\d{1,3}', parts[i]):
                fields['position_by_category'] = int(parts[i])
                i += 1
            continue

        i += 1

    return fields


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

_TEAM_BRACKET_RE = re.compile(r'\((.*?)\)|\[(.*?)\]')
_TEAM_KEYWORD_RE = re.compile(
    r'\b(?:club|[ée]quipe|team|soci[eé]t[eé])[:\s\-]+([^\d:]{2,60})', re.IGNORECASE)


def extract_team(text: str) -> Tuple[Optional[str], str]:
    """Find a team in "(Team)", "[Team]" or "Club: Team" form.

    Returns (team, text_without_team).
    """
    m = _TEAM_BRACKET_RE.search(text)
    if m:
        team = (m.group(1) or m.group(2) or '').strip()
        if team:
            return team, (text[:m.start()] + ' ' + text[m.end():]).strip()
    m = _TEAM_KEYWORD_RE.search(text)
    if m:
        team = m.group(1).strip().rstrip('.,;:')
        if team:
            return team, text[:m.start()].strip()
    return None, text


def clean_team(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    team = re.sub(r'\s+', ' ', text).strip().strip('.,;:')
    return team or None


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

_TIME_FRAGMENT_RE = re.compile(r':\d+(?::\d+)?')
_SPEED_FRAGMENT_RE = re.compile(r'\d+\.?\d*\s*km/h', re.IGNORECASE)
_TRAILING_DECIMAL_RE = re.compile(r'\s*[.,]\d+\s*$')
_TRAILING_INTEGER_RE = re.compile(r'\s+\d+\s*$')
_LEADING_BIB_RE = re.compile(r'^\d{1,5}\s+')
_TEAM_PREFIX_RE = re.compile(r'\b(?:Team|Equipe|Équipe|Club)\s+\w+(?:\s+\w+)?\b', re.IGNORECASE)
_AGE_CATEGORY_RE = re.compile(
    r'\b(?:Espoirs?|Seniors?|Juniors?|Cadets?|Masters?|V[ée]t[ée]rans?|V\d+|M\d+|W\d+)'
    r'(?:\s+[HFDhfd])?\b',
    re.IGNORECASE)
_TRAILING_SEX_RE = re.compile(r'\s+[HFMDhfmd]\s*$')
_TRAILING_CODE_RE = re.compile(r'\s+([A-Z]{1,4}\d*)\s*$')


def clean_name(raw: Optional[str]) -> str:
    """Strip everything that is not part of a person's name from a span.

    Removes time and speed fragments, trailing numbers, team prefixes,
    age categories and trailing sex/category codes. Word order is left
    untouched; deciding which part is the first name is up to the parser.
    """
    if not raw:
        return ""
    name = _TIME_FRAGMENT_RE.sub(' ', raw)
    name = _SPEED_FRAGMENT_RE.sub(' ', name)
    name = _TEAM_PREFIX_RE.sub(' ', name)
    name = _AGE_CATEGORY_RE.sub(' ', name)
    name = re.sub(r'\s+', ' ', name).strip()

    previous = None
    while name != previous:
        previous = name
        name = _TRAILING_DECIMAL_RE.sub('', name)
        name = _TRAILING_INTEGER_RE.sub('', name)
        name = _TRAILING_SEX_RE.sub('', name)
        m = _TRAILING_CODE_RE.search(name)
        if m and is_valid_category_code(m.group(1)):
            name = name[:m.start()]
        name = _LEADING_BIB_RE.sub('', name)
        name = name.strip().strip('.,;:').strip()

    return re.sub(r'\s+', ' ', name)


def is_valid_name(name: Optional[str]) -> bool:
    """A name needs at least one letter."""
    if not name or not name.strip():
        return False
    return any(ch.isalpha() for ch in name)


# ---------------------------------------------------------------------------
# Disqualification
# ---------------------------------------------------------------------------

DISQUALIFICATION_MARKERS = ('DSQ', 'DNF', 'DNS', 'Abandon', 'Disqualifié')
_FOLDED_MARKERS = tuple(remove_diacritics(m).casefold() for m in DISQUALIFICATION_MARKERS)


def is_disqualified(text: Optional[str]) -> bool:
    """True when the text carries a DSQ/DNF/DNS/abandon marker anywhere."""
    if not text:
        return False
    folded = remove_diacritics(text).casefold()
    return any(marker in folded for marker in _FOLDED_MARKERS)
