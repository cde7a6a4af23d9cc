"""
Organizer layout parsers

One parser per known results layout (Otop, Global Pacing, Challenge La
Meuse, Goal Timing, plain French columns, CrossCup, Grand Challenge)
plus a generic fallback. They all share the same machinery: find the
header row, turn its cells into column anchors, drop every data token
into the column whose x-interval holds it, and hand the cell text to the
normalizer. Rows that cannot be read through columns go through a
line-based parse instead.
"""

import logging
import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .config import settings
from .extract import Page, document_text, group_rows, row_text
from .models import Member, ParsedRow, RaceMetadata, RawToken
from .normalize import (
    TIME_PATTERN,
    clean_name,
    clean_team,
    extract_category_fields,
    extract_team,
    is_disqualified,
    is_pace,
    is_valid_category_code,
    is_valid_name,
    normalize_category,
    normalize_sex,
    normalize_token,
    parse_int,
    parse_position,
    parse_speed,
    parse_time,
    remove_diacritics,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Header / skip-line detection
# ---------------------------------------------------------------------------

_SKIP_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in [
        r'\bpage\s+\d+',
        r'www\.',
        r'https?://',
        r'imprim[ée]',
        r'printed\s+on',
        r'temps\s+de\s+r[ée]f[ée]rence',
        r'^\s*TREF\b',
        r'^\s*classement',
        r'^\s*r[ée]sultats?\b',
    ]
]

_ORPHAN_TIME_RE = re.compile(r'^\s*\d{1,2}:\d{2}(?::\d{2})?(?:\s+\d+)?\s*$')
_POSITION_RE = re.compile(r'^\s*(\d{1,5})[.,]?\s+')
_SPEED_RE = re.compile(r'(?<![\d:])\d{1,4}(?:[.,]\d{1,2})?(?:\s*km/h)?(?![\d:])', re.IGNORECASE)


def is_skip_line(line: str) -> bool:
    """Page headers, footers and title lines that never hold a result."""
    line = line.strip()
    if not line:
        return True
    return any(p.search(line) for p in _SKIP_PATTERNS)


# ---------------------------------------------------------------------------
# Name order
# ---------------------------------------------------------------------------

_PARTICLES = {'de', 'van', 'von', 'del', 'der', 'den', 'le', 'la', 'du', 'di',
              'da', 'dos', 'das', 'des', 'ter', 'ten', 'vanden', 'vander'}
_TITLES = {'mr', 'mme', 'mlle', 'mrs', 'ms', 'dr', 'jr', 'sr', 'ii', 'iii', 'iv'}


def _is_particle(word: str) -> bool:
    lower = word.lower()
    return lower in _PARTICLES or lower in ("d'", "d’")


def _is_upper_word(word: str) -> bool:
    letters = [c for c in word if c.isalpha()]
    return len(letters) > 1 and word.isupper()


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------

@dataclass
class HeaderCell:
    """A header cell; ``field`` is None for columns we do not read."""
    label: str
    field: Optional[str]
    x0: float
    x1: float


def assign_columns(tokens: Sequence[RawToken], anchors: Sequence[HeaderCell]) -> Dict[str, str]:
    """Group a row's tokens by the header column whose interval contains them.

    A column starts a little before its header (at most 10 points, never
    past the middle of the gap with the previous header) so right-aligned
    numbers still land in their own column.
    """
    bounds = [float('-inf')]
    for prev, cur in zip(anchors, anchors[1:]):
        bounds.append(cur.x0 - min(10.0, max(0.0, (cur.x0 - prev.x1) / 2)))

    cells: Dict[str, str] = {}
    for token in tokens:
        idx = max(0, bisect_right(bounds, token.x0) - 1)
        name = anchors[idx].field
        if name:
            cells[name] = f"{cells[name]} {token.text}" if name in cells else token.text
    return cells


# ---------------------------------------------------------------------------
# Base parser
# ---------------------------------------------------------------------------

class FormatParser:
    """Column-anchored parser driven by a header vocabulary.

    Subclasses set ``vocabulary`` (folded header label -> field), the
    ``distinctive`` labels no other layout uses, the ``signatures`` (label
    sets that identify the layout on their own) and the ``markers`` that
    identify the layout from document text alone.
    """
    name = 'Generic'
    vocabulary: Dict[str, str] = {}
    distinctive: Tuple[str, ...] = ()
    signatures: Tuple[FrozenSet[str], ...] = ()
    markers: Tuple[str, ...] = ()
    min_header_cells = 3
    hint_coverage = 0.5

    # -- detection ---------------------------------------------------------

    def _field_for(self, label: str) -> Tuple[str, Optional[str]]:
        if label in self.vocabulary:
            return label, self.vocabulary[label]
        compact = label.replace(' ', '')
        if compact in self.vocabulary:
            return compact, self.vocabulary[compact]
        return label, None

    def header_cells(self, tokens: Sequence[RawToken]) -> List[HeaderCell]:
        """Read a row as header cells, merging two-word labels ("Clas. Sexe")."""
        cells = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            merged = None
            if i + 1 < len(tokens) and token.column is None:
                for joiner in (' ', ''):
                    label, field = self._field_for(normalize_token(token.text + joiner + tokens[i + 1].text))
                    if field:
                        merged = HeaderCell(label, field, token.x0, tokens[i + 1].x1)
                        break
            if merged:
                cells.append(merged)
                i += 2
                continue
            label, field = self._field_for(normalize_token(token.text))
            cells.append(HeaderCell(label, field, token.x0, token.x1))
            i += 1
        return cells

    def is_header(self, cells: Sequence[HeaderCell]) -> bool:
        return sum(1 for c in cells if c.field) >= self.min_header_cells

    def find_header(self, pages: Sequence[Page]) -> Optional[List[HeaderCell]]:
        for page in pages:
            for tokens in group_rows(page):
                cells = self.header_cells(tokens)
                if self.is_header(cells):
                    return cells
        return None

    def coverage(self, cells: Optional[Sequence[HeaderCell]]) -> float:
        """Share of header cells this layout recognises."""
        if not cells:
            return 0.0
        return sum(1 for c in cells if c.field) / len(cells)

    def filename_hint(self, metadata: Optional[RaceMetadata], filename: Optional[str]) -> bool:
        return False

    def detect_signature(self, pages: Sequence[Page], metadata: Optional[RaceMetadata] = None,
                         filename: Optional[str] = None, text: Optional[str] = None) -> bool:
        """Decide whether this layout produced the document."""
        if text is None:
            text = document_text(pages)
        folded = remove_diacritics(text).casefold()
        for marker in self.markers:
            if marker in folded:
                logger.debug("%s: text marker '%s' found", self.name, marker)
                return True

        cells = self.find_header(pages)
        coverage = self.coverage(cells)
        labels = {c.label for c in cells or ()}
        has_distinctive = bool(labels.intersection(self.distinctive))
        logger.debug("%s: header coverage %.2f, distinctive=%s", self.name, coverage, has_distinctive)

        threshold = settings.signature_threshold
        if coverage >= threshold and has_distinctive:
            return True
        if any(signature <= labels for signature in self.signatures):
            logger.debug("%s: header signature found", self.name)
            return True
        if self.filename_hint(metadata, filename) and coverage >= threshold * self.hint_coverage:
            return True
        return False

    # -- parsing -----------------------------------------------------------

    def parse_pages(self, pages: Sequence[Page], members: Sequence[Member] = ()) -> List[ParsedRow]:
        """Parse every page into rows, in document order.

        Pages without their own header reuse the last one seen; repeated
        header rows are skipped. Missing positions are synthesized so they
        keep ascending across page breaks.
        """
        rows = []
        anchors = None
        for page in pages:
            pending: List[RawToken] = []
            for tokens in group_rows(page):
                cells = self.header_cells(tokens)
                if self.is_header(cells):
                    anchors = sorted(cells, key=lambda c: c.x0)
                    pending = []
                    continue

                line = row_text(tokens)
                if _ORPHAN_TIME_RE.match(line):
                    pending = list(tokens)
                    continue

                if anchors:
                    merged = sorted(pending + list(tokens), key=lambda t: t.x0)
                    line = row_text(merged)
                    row = self.parse_row(merged, anchors, line)
                else:
                    if pending:
                        line = f"{line}  {row_text(pending)}"
                    row = self.parse_line(line)
                pending = []

                if row is None:
                    continue
                self.match_member(row, line, members)
                rows.append(row)

        self.synthesize_positions(rows)
        logger.info("%s parser read %d row(s)", self.name, len(rows))
        return rows

    def parse_row(self, tokens: Sequence[RawToken], anchors: Sequence[HeaderCell],
                  line: str) -> Optional[ParsedRow]:
        if is_skip_line(line):
            return None
        if is_disqualified(line):
            logger.debug("Disqualified row skipped: %s", line)
            return None
        row = self.parse_cells(assign_columns(tokens, anchors), line)
        if row is None:
            return self.parse_line(line)
        if row.race_time is None and row.time_per_km is None:
            # time printed outside its column
            fallback = self.parse_line(line)
            if fallback is not None:
                row.race_time = fallback.race_time
                row.time_per_km = fallback.time_per_km
        return row

    def parse_cells(self, cells: Dict[str, str], line: str) -> Optional[ParsedRow]:
        """Build a row from column cells; None when no name or no time/position."""
        row = ParsedRow()
        row.position = parse_position(cells.get('position'))
        self.fill_names(row, cells)
        if not is_valid_name(row.last_name):
            logger.debug("No usable name in row: %s", line)
            return None

        elapsed = parse_time(cells.get('time'))
        if elapsed is not None:
            if is_pace(elapsed):
                row.time_per_km = elapsed
            else:
                row.race_time = elapsed
        pace = parse_time(cells.get('pace'))
        if pace is not None and is_pace(pace):
            row.time_per_km = pace

        if row.position is None and row.race_time is None and row.time_per_km is None:
            logger.debug("No position or time in row: %s", line)
            return None

        row.speed = parse_speed(cells.get('speed'))
        row.team = clean_team(cells.get('team'))
        row.sex = normalize_sex(cells.get('sex'))
        row.position_by_sex = parse_int(cells.get('position_by_sex'))
        row.age_category = self.normalize_category(cells.get('category'))
        row.position_by_category = parse_int(cells.get('position_by_category'))
        return row

    def fill_names(self, row: ParsedRow, cells: Dict[str, str]):
        first = clean_name(cells.get('firstname'))
        last = clean_name(cells.get('lastname') or cells.get('name'))
        if first and last:
            row.first_name, row.last_name = first, last
        else:
            row.first_name, row.last_name = self.split_name(last or first)
        row.full_name = ' '.join(p for p in (row.first_name, row.last_name) if p)

    def parse_line(self, line: str) -> Optional[ParsedRow]:
        """Best-effort parse of a row flattened to text."""
        if is_skip_line(line):
            return None
        if is_disqualified(line):
            logger.debug("Disqualified row skipped: %s", line)
            return None

        row = ParsedRow()
        work = line.strip()
        m = _POSITION_RE.match(work)
        if m:
            row.position = int(m.group(1))
            work = work[m.end():]

        times = []
        for tm in TIME_PATTERN.finditer(work):
            parsed = parse_time(tm.group(0))
            if parsed is not None:
                times.append((tm.start(), parsed))
        if not times:
            return None
        for _, parsed in times:
            if is_pace(parsed):
                if row.time_per_km is None:
                    row.time_per_km = parsed
            elif row.race_time is None:
                row.race_time = parsed

        head, tail = work[:times[0][0]], TIME_PATTERN.sub(' ', work[times[0][0]:])
        for sm in _SPEED_RE.finditer(tail):
            speed = parse_speed(sm.group(0)) if re.search(r'[.,]|km', sm.group(0)) else None
            if speed is not None:
                row.speed = speed
                break

        team, head = extract_team(head)
        if team is None:
            team, head = self._trailing_column_team(head)
        row.team = clean_team(team)

        fields = extract_category_fields(f"{head} {tail}")
        row.sex = fields['sex']
        row.age_category = self.normalize_category(fields['age_category'])
        row.position_by_sex = fields['position_by_sex']
        row.position_by_category = fields['position_by_category']

        row.first_name, row.last_name = self.split_name(clean_name(head))
        if not is_valid_name(row.last_name):
            return None
        row.full_name = ' '.join(p for p in (row.first_name, row.last_name) if p)
        return row

    @staticmethod
    def _trailing_column_team(head: str) -> Tuple[Optional[str], str]:
        # With three or more text columns the last one is usually the club
        columns = [c.strip() for c in re.split(r'\s{2,}', head) if c.strip()]
        words = [c for c in columns if any(ch.isalpha() for ch in c)]
        if len(words) < 3:
            return None, head
        last = words[-1]
        if len(last) <= 2 or is_valid_category_code(last) or normalize_category(last):
            return None, head
        return last, head[:head.rfind(last)].strip()

    def split_name(self, full: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        """Split a cleaned name into (first, last).

        Handles "LAST, First", all-caps last names on either side and
        particles ("de Backer Jean"). Otherwise the last name comes first,
        as every supported layout prints it.
        """
        if not full:
            return None, None
        if ',' in full:
            last, _, first = full.partition(',')
            return first.strip() or None, last.strip() or None

        words = [w for w in full.split() if w.strip('.').lower() not in _TITLES]
        if not words:
            return None, None
        if len(words) == 1:
            return None, words[0]

        alpha = [w for w in words if any(c.isalpha() for c in w)]
        all_upper = all(w.isupper() for w in alpha)
        if not all_upper and any(_is_upper_word(w) for w in words):
            i = 0
            while i < len(words) - 1 and (_is_upper_word(words[i]) or _is_particle(words[i])):
                i += 1
            if i > 0 and _is_upper_word(words[i - 1]):
                return ' '.join(words[i:]), ' '.join(words[:i])
            j = len(words)
            while j > 1 and (_is_upper_word(words[j - 1]) or _is_particle(words[j - 1])):
                j -= 1
            if j < len(words):
                return ' '.join(words[:j]), ' '.join(words[j:])

        k = 1
        while k < len(words) - 1 and _is_particle(words[k - 1]):
            k += 1
        return ' '.join(words[k:]), ' '.join(words[:k])

    def normalize_category(self, text: Optional[str]) -> Optional[str]:
        return normalize_category(text)

    @staticmethod
    def match_member(row: ParsedRow, line: str, members: Sequence[Member]):
        """Use the roster spelling when a member's names appear in the row."""
        for member in members:
            if member.matches(line):
                row.first_name = member.first_name
                row.last_name = member.last_name
                row.full_name = member.full_name
                row.is_member = True
                return

    @staticmethod
    def synthesize_positions(rows: List[ParsedRow]):
        last = 0
        for row in rows:
            if row.position is None:
                row.position = last + 1
                row.synthesized_position = True
            last = max(last, row.position)


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------

class OtopParser(FormatParser):
    """Otop timing: Place | Dos | Nom | Prénom | Sexe | Pl./S | Catég. | Pl./C | Temps | Vitesse | Moy."""
    name = 'Otop'
    vocabulary = {
        'place': 'position', 'pl': 'position', 'dos': 'bib', 'dossard': 'bib',
        'nom': 'lastname', 'prenom': 'firstname', 'sexe': 'sex', 'pl./s': 'position_by_sex',
        'categ': 'category', 'categorie': 'category', 'cat': 'category',
        'pl./c': 'position_by_category', 'temps': 'time', 'vitesse': 'speed',
        'moy': 'pace', 'moy/km': 'pace', 'min/km': 'pace', 'allure': 'pace', 'points': 'points', 'jetons': None,
    }
    distinctive = ('pl./s', 'pl./c')
    signatures = (frozenset({'categ', 'prenom', 'dos', 'sexe'}),)
    markers = ('otop timing', 'www.otop.be')

    def filename_hint(self, metadata, filename):
        return bool(metadata and metadata.category and metadata.category.upper() == 'CJPL')


class GlobalPacingParser(FormatParser):
    """Global Pacing: Pl. | Dos | Nom ("DUPONT, Jean") | Sexe | Clas.Sexe | Cat | Clas.Cat | Club | ..."""
    name = 'GlobalPacing'
    vocabulary = {
        'pl': 'position', 'place': 'position', 'dos': 'bib', 'nom': 'name',
        'sexe': 'sex', 'clas.sexe': 'position_by_sex', 'cat': 'category',
        'clas.cat': 'position_by_category', 'club': 'team', 'equipe': 'team',
        'vitesse': 'speed', 'min/km': 'pace', 'allure': 'pace', 'temps': 'time', 'points': 'points',
    }
    distinctive = ('clas.sexe', 'clas.cat')
    markers = ('global pacing', 'globalpacing', 'www.globalpacing')

    def filename_hint(self, metadata, filename):
        return bool(filename) and filename.lower().startswith('classement')


CHALLENGE_LA_MEUSE_CATEGORIES = (
    'Séniors', 'Vétérans 1', 'Vétérans 2', 'Vétérans 3', 'Vétérans 4',
    'Espoirs Garçons', 'Espoirs Filles', 'Dames',
    'Ainées 1', 'Ainées 2', 'Ainées 3', 'Ainées 4',
)


def _fold_category(text: str) -> str:
    folded = re.sub(r'\s+', ' ', remove_diacritics(text)).strip().casefold()
    return re.sub(r's\b', '', folded)


_CANONICAL_CATEGORIES = {_fold_category(c): c for c in CHALLENGE_LA_MEUSE_CATEGORIES}


class ChallengeLaMeuseParser(FormatParser):
    """Challenge La Meuse: Pos. | Nom | Dos. | Temps | Vitesse | Allure | Club | Catégorie | P.Ca | D.Cha"""
    name = 'ChallengeLaMeuse'
    vocabulary = {
        'pos': 'position', 'nom': 'name', 'dos': 'bib', 'temps': 'time',
        'vitesse': 'speed', 'allure': 'pace', 'club': 'team', 'categorie': 'category',
        'p.ca': 'position_by_category', 'd.cha': None,
    }
    distinctive = ('p.ca', 'd.cha')
    markers = ('zatopek',)

    def normalize_category(self, text):
        if not text:
            return None
        canonical = _CANONICAL_CATEGORIES.get(_fold_category(text))
        return canonical or super().normalize_category(text)

    def parse_line(self, line):
        row = super().parse_line(line)
        if row is not None and row.age_category is None:
            folded = _fold_category(line)
            for key, label in _CANONICAL_CATEGORIES.items():
                m = re.search(rf'\b{re.escape(key)}\b\s*(\d{{1,3}})?', folded)
                if m:
                    row.age_category = label
                    if m.group(1):
                        row.position_by_category = int(m.group(1))
                    break
        return row


# Grand Challenge races are timed by Goal Timing
GRAND_CHALLENGE_RACES = ('grand challenge', 'seraing', 'gravier')


class GoalTimingParser(FormatParser):
    """Goal Timing: Rank | Dos | Nom Prénom | Sexe | Club | Cat | Pl/Cat | Temps | T/Km | Vitesse | Points"""
    name = 'GoalTiming'
    vocabulary = {
        'rank': 'position', 'dos': 'bib', 'nom prenom': 'name', 'nom': 'name',
        'prenom': 'firstname', 'sexe': 'sex', 'club': 'team', 'cat': 'category',
        'pl/cat': 'position_by_category', 'temps': 'time', 't/km': 'pace',
        'vitesse': 'speed', 'points': 'points',
    }
    distinctive = ('rank', 'pl/cat', 't/km')
    markers = ('goal timing', 'goaltiming', 'www.goaltiming')

    def filename_hint(self, metadata, filename):
        if not metadata:
            return False
        if metadata.category and metadata.category.upper() == 'GC':
            return True
        race = remove_diacritics(metadata.race_name or '').casefold()
        return any(place in race for place in GRAND_CHALLENGE_RACES)


class FrenchColumnParser(FormatParser):
    """Plain French columns: Pl. | Dos | Nom | ... | Vitesse | min/km | Temps"""
    name = 'FrenchColumn'
    vocabulary = {
        'pl': 'position', 'place': 'position', 'pos': 'position', 'rang': 'position',
        'dos': 'bib', 'dossard': 'bib', 'nom': 'name', 'prenom': 'firstname',
        'sexe': 'sex', 'cat': 'category', 'categ': 'category', 'categorie': 'category',
        'club': 'team', 'equipe': 'team', 'vitesse': 'speed', 'min/km': 'pace',
        'allure': 'pace', 'temps': 'time', 'chrono': 'time', 'points': 'points',
    }
    signatures = (
        frozenset({'pl', 'dos', 'nom', 'vitesse', 'min/km'}),
        frozenset({'pl', 'dos', 'nom', 'temps', 'min/km'}),
    )

    def detect_signature(self, pages, metadata=None, filename=None, text=None):
        # Classement-10km exports are Global Pacing sheets
        if filename and filename.lower().startswith('classement') and 'km' in filename.lower():
            return False
        return super().detect_signature(pages, metadata, filename, text)


class GenericParser(FormatParser):
    """Fallback for unknown layouts: any recognisable header, else line by line."""
    name = 'Generic'
    vocabulary = {
        **OtopParser.vocabulary,
        **GlobalPacingParser.vocabulary,
        **ChallengeLaMeuseParser.vocabulary,
        **GoalTimingParser.vocabulary,
        **FrenchColumnParser.vocabulary,
        'nom': 'name', 'prenom': 'firstname', 'position': 'position', 'rang': 'position',
        'name': 'name', 'first name': 'firstname', 'firstname': 'firstname',
        'last name': 'lastname', 'lastname': 'lastname', 'time': 'time', 'chrono': 'time',
        'team': 'team', 'speed': 'speed', 'pace': 'pace', 'category': 'category',
        'sex': 'sex', 'gender': 'sex', 'bib': 'bib',
    }

    def detect_signature(self, pages, metadata=None, filename=None, text=None):
        return True


class CrossCupParser(FormatParser):
    """CJPL / CrossCup sheets; known from their title or file name, read like unknown layouts."""
    name = 'CrossCup'
    vocabulary = GenericParser.vocabulary
    markers = ('cjpl', 'crosscup', 'cross cup')
    hint_coverage = 0.0

    def filename_hint(self, metadata, filename):
        return bool(metadata and metadata.category and 'cjpl' in metadata.category.lower())


class GrandChallengeParser(FormatParser):
    """Grand Challenge (Condroz) results without a Goal Timing header."""
    name = 'GrandChallenge'
    vocabulary = GenericParser.vocabulary
    markers = ('grand challenge', 'grande challenge', 'seraing', 'blanc gravier', 'blancgravier')
    hint_coverage = 0.0

    def filename_hint(self, metadata, filename):
        return bool(metadata and metadata.category and metadata.category.upper() == 'GC')
