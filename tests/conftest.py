"""
Shared fixtures: synthetic token pages standing in for pdfplumber output.

Words are laid out 5 points per character with 3-point spaces, so words of
one cell stay closer together than the column gap.
"""

import pytest

from race_results.models import Member, RawToken

CHAR_WIDTH = 5.0
SPACE = 3.0
LINE_HEIGHT = 12.0


def make_row(cells, xs, row, page=1):
    """Place each cell's words starting at the matching x position."""
    tokens = []
    for text, x in zip(cells, xs):
        if text is None or str(text) == '':
            continue
        x0 = float(x)
        for word in str(text).split():
            x1 = x0 + len(word) * CHAR_WIDTH
            tokens.append(RawToken(text=word, x0=x0, x1=x1, top=row * LINE_HEIGHT, page=page, row=row))
            x0 = x1 + SPACE
    return tokens


def make_page(rows, xs, page=1):
    tokens = []
    for i, cells in enumerate(rows):
        tokens.extend(make_row(cells, xs, i, page))
    return tokens


def make_text_page(lines, page=1):
    """A page of free text, one line per row, starting at x=10."""
    return make_page([[line] for line in lines], [10], page)


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------

OTOP_XS = [10, 50, 90, 190, 270, 310, 350, 410, 450, 510, 560]
OTOP_HEADER = ['Place', 'Dos', 'Nom', 'Prénom', 'Sexe', 'Pl./S', 'Catég.', 'Pl./C', 'Temps', 'Vitesse', 'Moy.']

GLOBAL_PACING_XS = [10, 40, 70, 180, 220, 280, 310, 360, 440, 490, 540]
GLOBAL_PACING_HEADER = ['Pl.', 'Dos', 'Nom', 'Sexe', 'Clas.Sexe', 'Cat', 'Clas.Cat', 'Club', 'Vitesse', 'min/km', 'Temps']

GOAL_TIMING_XS = [10, 45, 70, 190, 220, 300, 330, 370, 420, 460, 510]
GOAL_TIMING_HEADER = ['Rank', 'Dos', 'Nom Prénom', 'Sexe', 'Club', 'Cat', 'Pl/Cat', 'Temps', 'T/Km', 'Vitesse', 'Points']

LA_MEUSE_XS = [10, 40, 160, 200, 260, 310, 350, 440, 510, 550]
LA_MEUSE_HEADER = ['Pos.', 'Nom', 'Dos.', 'Temps', 'Vitesse', 'Allure', 'Club', 'Catégorie', 'P.Ca', 'D.Cha']


@pytest.fixture
def otop_page():
    return make_page([
        ['Jogging de Hannut'],
        OTOP_HEADER,
        ['1', '101', 'MARTIN', 'Luc', 'H', '1', 'SH', '1', '00:31:12', '19,23', '3:07'],
        ['2', '102', 'DUPONT', 'Jean', 'H', '2', 'V1', '1', '00:35:40', '16,82', '3:34'],
        ['3', '103', 'LAMBERT', 'Marie', 'D', '1', 'D1', '1', '00:41:05', '14,60', '4:06'],
        ['4', '104', 'PETIT', 'Paul', 'H', '3', 'SH', '2', 'DSQ', '', ''],
    ], OTOP_XS)


@pytest.fixture
def global_pacing_page():
    return make_page([
        GLOBAL_PACING_HEADER,
        ['1', '12', 'MARTIN, Luc', 'M', '1', 'SEN', '1', 'AC Huy', '15,20', '3:57', '00:39:28'],
        ['2', '15', 'LAMBERT, Marie', 'F', '1', 'A2', '1', '', '12,10', '4:58', '00:49:35'],
    ], GLOBAL_PACING_XS)


@pytest.fixture
def goal_timing_page():
    return make_page([
        GOAL_TIMING_HEADER,
        ['1', '7', 'MARTIN Luc', 'H', 'AC Huy', 'SH', '1', '00:31:12', '3:07', '19,23', '1000'],
        ['2', '9', 'DUPONT Jean', 'H', 'RC Liège', 'V1', '1', '00:35:40', '3:34', '16,82', '875'],
    ], GOAL_TIMING_XS)


@pytest.fixture
def la_meuse_page():
    return make_page([
        LA_MEUSE_HEADER,
        ['1', 'MARTIN Luc', '25', '00:31:12', '15,38', '3:54', 'AC Huy', 'Séniors', '1', '1'],
        ['2', 'LAMBERT Marie', '31', '00:44:02', '13,63', '4:24', 'RC Liège', 'Ainées 1', '1', '1'],
    ], LA_MEUSE_XS)


@pytest.fixture
def members():
    return [
        Member('Jean', 'Dupont', 'jean.dupont@example.com', is_member=True),
        Member('Marie', 'Lambert', 'marie@example.com', is_member=True, is_challenger=True),
    ]
